from __future__ import annotations

import math
from typing import Sequence

import numpy as np


def cosine_similarity(u: Sequence[float] | np.ndarray, v: Sequence[float] | np.ndarray) -> float:
    """
    dot(u, v) / (|u| * |v|).

    Unequal lengths, empty vectors and zero norms are a hard mismatch and score 0.0.
    Computed in float64 and clamped to [-1, 1] so self-similarity never exceeds 1.
    """
    a = np.asarray(u, dtype=np.float64).ravel()
    b = np.asarray(v, dtype=np.float64).ravel()
    if a.size == 0 or a.shape != b.shape:
        return 0.0
    na = float(np.linalg.norm(a))
    nb = float(np.linalg.norm(b))
    if na == 0.0 or nb == 0.0:
        return 0.0
    s = float(np.dot(a, b) / (na * nb))
    if not math.isfinite(s):
        return 0.0
    return max(-1.0, min(1.0, s))
