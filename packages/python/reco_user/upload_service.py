from __future__ import annotations

import logging
from typing import Any, Iterable

import anyio
from pydantic import BaseModel, Field

from reco_core.config import UPLOAD_PREVIEW_N
from reco_embeddings.item_encoder import FeatureEncoder
from reco_embeddings.profile_aggregator import build_user_embedding, rated_items
from reco_store.base import RecoStore

from .catalog_service import CatalogService
from .interactions.validation import parse_interaction_rows
from .patterns.pattern_extractor import extract_behavioral_profile

log = logging.getLogger(__name__)


class TopItemPreview(BaseModel):
    item_id: str
    title: str
    creator: str
    score: float


class UploadSummary(BaseModel):
    user_id: str
    records_received: int
    records_accepted: int
    records_skipped: int
    items_created: int
    errors: list[str] = Field(default_factory=list)
    top_categories: list[str] = Field(default_factory=list)
    top_creators: list[str] = Field(default_factory=list)
    top_items: list[TopItemPreview] = Field(default_factory=list)
    user_embedding_default: bool = False


class UploadService:
    """
    Ingest one parsed interaction batch for a user:
      validate -> create unknown items -> replace profile -> append history
      -> rebuild user embedding.
    Writes for the same user are serialized; different users proceed concurrently.
    """

    def __init__(
        self,
        store: RecoStore,
        *,
        catalog: CatalogService | None = None,
        encoder: FeatureEncoder | None = None,
        locks: dict[str, anyio.Lock] | None = None,
    ):
        self.store = store
        self.encoder = encoder or (catalog.encoder if catalog else FeatureEncoder())
        self.catalog = catalog or CatalogService(store, self.encoder)
        # shared across service instances when the app builds one per request
        self._locks = locks if locks is not None else {}

    def _lock_for(self, user_id: str) -> anyio.Lock:
        lock = self._locks.get(user_id)
        if lock is None:
            lock = self._locks[user_id] = anyio.Lock()
        return lock

    def _release_idle(self, user_id: str, lock: anyio.Lock) -> None:
        stats = lock.statistics()
        if not stats.locked and not stats.tasks_waiting and self._locks.get(user_id) is lock:
            del self._locks[user_id]

    async def upload(
        self, user_id: str, rows: Iterable[Any]
    ) -> UploadSummary:
        batch = parse_interaction_rows(rows)

        lock = self._lock_for(user_id)
        try:
            async with lock:
                created = await self.catalog.ensure_items_for_records(batch.records)

                profile = extract_behavioral_profile(user_id, batch.records)
                await self.store.replace_behavioral_profile(user_id, profile)
                await self.store.append_interactions(user_id, batch.records)

                history = await self.store.list_interactions(user_id)
                items = {it.item_id: it for it in await self.store.list_items()}
                embeddings = await self.store.get_item_embeddings()
                vec, debug = build_user_embedding(
                    rated_items(history, items), encoder=self.encoder, item_embeddings=embeddings
                )
                await self.store.put_user_embedding(user_id, vec)
        finally:
            self._release_idle(user_id, lock)

        log.info(
            "Upload for user=%s: %d accepted, %d skipped, %d items created, embedding from %d items",
            user_id,
            len(batch.records),
            batch.skipped,
            len(created),
            debug["n_items"],
        )
        n = UPLOAD_PREVIEW_N
        return UploadSummary(
            user_id=user_id,
            records_received=batch.received,
            records_accepted=len(batch.records),
            records_skipped=batch.skipped,
            items_created=len(created),
            errors=batch.errors,
            top_categories=profile.top_categories(n),
            top_creators=[c.creator for c in profile.top_creators[:n]],
            top_items=[
                TopItemPreview(item_id=s.item_id, title=s.title, creator=s.creator, score=round(s.score, 4))
                for s in profile.top_items[:n]
            ],
            user_embedding_default=bool(debug["default"]),
        )
