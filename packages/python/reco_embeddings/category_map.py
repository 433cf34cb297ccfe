from __future__ import annotations

import json
from pathlib import Path
from typing import Mapping, Sequence

import numpy as np

from reco_core.config import CATEGORY_MAP_PATH
from reco_core.types import normalize_category


class CategoryMap:
    """
    Category -> soft membership vector lookup.

    Keys are matched after trimming and lower-casing; blended sub-categories simply carry
    several non-zero components. Unknown categories map to the all-zero vector.
    """

    def __init__(self, vectors: Mapping[str, Sequence[float]]):
        table: dict[str, np.ndarray] = {}
        dim: int | None = None
        for name, vec in vectors.items():
            arr = np.asarray(vec, dtype=np.float32)
            if arr.ndim != 1:
                raise ValueError(f"category '{name}' must map to a flat vector")
            if dim is None:
                dim = int(arr.shape[0])
            elif arr.shape[0] != dim:
                raise ValueError(
                    f"category '{name}' has length {arr.shape[0]}, expected {dim}"
                )
            table[normalize_category(name)] = arr
        if not table or not dim:
            raise ValueError("category map is empty")
        self._table = table
        self._dim = dim
        self._zeros = np.zeros((dim,), dtype=np.float32)

    @property
    def dim(self) -> int:
        return self._dim

    @property
    def categories(self) -> list[str]:
        return list(self._table)

    def __contains__(self, category: object) -> bool:
        return isinstance(category, str) and normalize_category(category) in self._table

    def vector(self, category: str | None) -> np.ndarray:
        return self._table.get(normalize_category(category), self._zeros).copy()


def load_category_map(source: str | Path | Mapping[str, Sequence[float]] | None = None) -> CategoryMap:
    """Load a category map from a JSON file (keys starting with '_' are metadata) or a mapping."""
    if source is None:
        source = CATEGORY_MAP_PATH
    if isinstance(source, Mapping):
        return CategoryMap(source)

    with Path(source).open("r", encoding="utf-8") as fh:
        raw = json.load(fh)
    if not isinstance(raw, dict):
        raise ValueError("category map file must contain a JSON object")
    return CategoryMap({k: v for k, v in raw.items() if not k.startswith("_")})
