from __future__ import annotations

import numpy as np

from reco_core.config import TEMPO_SCALE
from reco_core.types import Item

from .category_map import CategoryMap, load_category_map

NUMERIC_FEATURES = ("tempo", "energy", "danceability", "valence", "popularity")


class FeatureEncoder:
    """
    Deterministic item tower: [category soft vector] ++ [tempo/200, energy,
    danceability, valence, popularity]. Missing numeric inputs encode as 0.
    """

    def __init__(self, category_map: CategoryMap | None = None):
        self.category_map = category_map or load_category_map()

    @property
    def dim(self) -> int:
        return self.category_map.dim + len(NUMERIC_FEATURES)

    def numeric_features(self, item: Item) -> np.ndarray:
        f = item.features
        return np.asarray(
            [
                float(f.tempo or 0.0) / TEMPO_SCALE,
                float(f.energy or 0.0),
                float(f.danceability or 0.0),
                float(f.valence or 0.0),
                float(item.popularity or 0.0),
            ],
            dtype=np.float32,
        )

    def encode(self, item: Item) -> np.ndarray:
        cat = self.category_map.vector(item.category)
        return np.concatenate([cat, self.numeric_features(item)]).astype(np.float32)

    def encode_many(self, items: list[Item]) -> dict[str, np.ndarray]:
        return {it.item_id: self.encode(it) for it in items}
