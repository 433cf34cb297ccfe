from __future__ import annotations

import logging
from typing import Iterable, Sequence

from reco_core.types import InteractionRecord, Item, normalize_category
from reco_embeddings.item_encoder import FeatureEncoder
from reco_store.base import RecoStore

log = logging.getLogger(__name__)


def item_from_record(r: InteractionRecord) -> Item:
    return Item(
        item_id=r.resolved_item_id,
        title=r.title.strip(),
        creator=r.creator.strip(),
        category=normalize_category(r.category) or "unknown",
    )


class CatalogService:
    """Catalog writes. Every item write is followed by its embedding write."""

    def __init__(self, store: RecoStore, encoder: FeatureEncoder | None = None):
        self.store = store
        self.encoder = encoder or FeatureEncoder()

    async def ingest_items(self, items: Sequence[Item]) -> int:
        if not items:
            return 0
        await self.store.put_items(items)
        await self.store.put_item_embeddings(self.encoder.encode_many(list(items)))
        log.info("Ingested %d catalog items", len(items))
        return len(items)

    async def ensure_items_for_records(
        self, records: Iterable[InteractionRecord]
    ) -> list[Item]:
        """Create catalog items for records whose id and (title, creator) are both unknown."""
        existing = await self.store.list_items()
        known_ids = {it.item_id for it in existing}
        known_keys = {it.key for it in existing}

        created: list[Item] = []
        for r in records:
            if r.resolved_item_id in known_ids or r.key in known_keys:
                continue
            item = item_from_record(r)
            created.append(item)
            known_ids.add(item.item_id)
            known_keys.add(item.key)

        await self.ingest_items(created)
        return created

    async def regenerate_embeddings(self) -> int:
        """Re-encode the whole catalog, e.g. after the category map changed."""
        items = await self.store.list_items()
        if not items:
            return 0
        await self.store.put_item_embeddings(self.encoder.encode_many(items))
        log.info("Regenerated %d item embeddings (dim=%d)", len(items), self.encoder.dim)
        return len(items)
