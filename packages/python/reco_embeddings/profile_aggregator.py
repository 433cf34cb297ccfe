from __future__ import annotations

from typing import Any, Iterable, Mapping, Sequence

import numpy as np

from reco_core.config import DEFAULT_UNRATED_WEIGHT, DEFAULT_USER_VECTOR_VALUE
from reco_core.types import InteractionRecord, Item, ItemId

from .item_encoder import FeatureEncoder

Embed = np.ndarray


# ---- small utils ----
def default_user_vector(dim: int) -> Embed:
    return np.full((dim,), DEFAULT_USER_VECTOR_VALUE, dtype=np.float32)


# weighted average vectors
def _wmean(vecs: list[np.ndarray], w: list[float]) -> np.ndarray:
    acc = np.zeros_like(vecs[0], dtype=np.float32)
    for v, ww in zip(vecs, w):
        acc += v * ww
    return acc / float(sum(w))


def interaction_weight(record: InteractionRecord) -> float | None:
    """Rating value as weight, 3.0 when unrated. Skipped plays do not qualify."""
    if record.skipped:
        return None
    if record.rating is None:
        return DEFAULT_UNRATED_WEIGHT
    return float(record.rating)


def rated_items(
    records: Iterable[InteractionRecord],
    items: Mapping[ItemId, Item],
) -> list[tuple[Item, float]]:
    """Pair each qualifying interaction with its catalog item."""
    by_key = {it.key: it for it in items.values()}
    out: list[tuple[Item, float]] = []
    for r in records:
        w = interaction_weight(r)
        if w is None:
            continue
        item = items.get(r.resolved_item_id) or by_key.get(r.key)
        if item is None:
            continue
        out.append((item, w))
    return out


# ---- main builder ----
def build_user_embedding(
    pairs: Sequence[tuple[Item, float]],
    *,
    encoder: FeatureEncoder,
    item_embeddings: Mapping[ItemId, Embed] | None = None,
) -> tuple[Embed, dict[str, Any]]:
    """
    Rating-weighted element-wise mean of the encoded vectors of the rated items.

    Falls back to the constant default vector when there is nothing to average or the
    weights do not sum to a positive number. Stored item embeddings are preferred over
    re-encoding when their length matches the encoder.
    """
    dim = encoder.dim
    vecs: list[Embed] = []
    weights: list[float] = []
    for item, w in pairs:
        if w <= 0:
            continue
        v = (item_embeddings or {}).get(item.item_id)
        if v is None or len(v) != dim:
            v = encoder.encode(item)
        vecs.append(np.asarray(v, dtype=np.float32))
        weights.append(float(w))

    used_default = not vecs or sum(weights) <= 0
    vec = default_user_vector(dim) if used_default else _wmean(vecs, weights)
    debug = {
        "dim": dim,
        "n_items": len(vecs),
        "weight_sum": float(sum(weights)),
        "default": used_default,
    }
    return vec.astype(np.float32), debug
