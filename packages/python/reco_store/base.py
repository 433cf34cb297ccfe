from __future__ import annotations

from typing import Dict, Mapping, Protocol, Sequence

import numpy as np
from numpy.typing import NDArray
from reco_core.types import InteractionRecord, Item, ItemId
from reco_user.patterns.schemas import BehavioralProfile

EmbedMap = Dict[ItemId, NDArray[np.float32]]


class RecoStore(Protocol):
    """
    Key-value/row store the recommender reads from and writes derived data to.

    Implementations raise reco_core.errors.StoreUnavailable on backend failure; absence is
    reported as None / empty, never as an error.
    """

    kind: str

    async def get_item(self, item_id: ItemId) -> Item | None: ...

    async def list_items(
        self, *, category: str | None = None, item_ids: Sequence[ItemId] | None = None
    ) -> list[Item]: ...

    async def put_items(self, items: Sequence[Item]) -> None: ...

    async def get_item_embeddings(self) -> EmbedMap: ...

    async def put_item_embeddings(self, vectors: Mapping[ItemId, np.ndarray]) -> None: ...

    async def get_user_embedding(self, user_id: str) -> NDArray[np.float32] | None: ...

    async def put_user_embedding(self, user_id: str, vector: np.ndarray) -> None: ...

    async def get_behavioral_profile(self, user_id: str) -> BehavioralProfile | None: ...

    async def replace_behavioral_profile(
        self, user_id: str, profile: BehavioralProfile
    ) -> None: ...

    async def list_interactions(self, user_id: str) -> list[InteractionRecord]: ...

    async def append_interactions(
        self, user_id: str, records: Sequence[InteractionRecord]
    ) -> None: ...
