from __future__ import annotations

from typing import Mapping, Sequence

import numpy as np
from numpy.typing import NDArray
from reco_core.types import InteractionRecord, Item, ItemId, normalize_category
from reco_user.patterns.schemas import BehavioralProfile

from .base import EmbedMap


class InMemoryRecoStore:
    """
    Process-local store. Used when no Supabase credentials are configured and in tests.
    Catalog order is insertion order, which keeps candidate tie-breaks deterministic.
    """

    kind = "memory"

    def __init__(self) -> None:
        self._items: dict[ItemId, Item] = {}
        self._item_vecs: dict[ItemId, NDArray[np.float32]] = {}
        self._user_vecs: dict[str, NDArray[np.float32]] = {}
        self._profiles: dict[str, BehavioralProfile] = {}
        self._interactions: dict[str, list[InteractionRecord]] = {}

    async def get_item(self, item_id: ItemId) -> Item | None:
        return self._items.get(item_id)

    async def list_items(
        self, *, category: str | None = None, item_ids: Sequence[ItemId] | None = None
    ) -> list[Item]:
        items = list(self._items.values())
        if item_ids is not None:
            wanted = set(item_ids)
            items = [it for it in items if it.item_id in wanted]
        if category is not None:
            cat = normalize_category(category)
            items = [it for it in items if normalize_category(it.category) == cat]
        return items

    async def put_items(self, items: Sequence[Item]) -> None:
        for it in items:
            self._items[it.item_id] = it

    async def get_item_embeddings(self) -> EmbedMap:
        return {k: v.copy() for k, v in self._item_vecs.items()}

    async def put_item_embeddings(self, vectors: Mapping[ItemId, np.ndarray]) -> None:
        for item_id, vec in vectors.items():
            self._item_vecs[item_id] = np.asarray(vec, dtype=np.float32)

    async def get_user_embedding(self, user_id: str) -> NDArray[np.float32] | None:
        vec = self._user_vecs.get(user_id)
        return None if vec is None else vec.copy()

    async def put_user_embedding(self, user_id: str, vector: np.ndarray) -> None:
        self._user_vecs[user_id] = np.asarray(vector, dtype=np.float32)

    async def get_behavioral_profile(self, user_id: str) -> BehavioralProfile | None:
        return self._profiles.get(user_id)

    async def replace_behavioral_profile(
        self, user_id: str, profile: BehavioralProfile
    ) -> None:
        self._profiles[user_id] = profile

    async def list_interactions(self, user_id: str) -> list[InteractionRecord]:
        return list(self._interactions.get(user_id, []))

    async def append_interactions(
        self, user_id: str, records: Sequence[InteractionRecord]
    ) -> None:
        self._interactions.setdefault(user_id, []).extend(records)
