from __future__ import annotations

import logging
from dataclasses import asdict
from datetime import datetime, timezone
from typing import Any, Callable, Mapping, Sequence, TypeVar

import httpx
import numpy as np
from anyio import to_thread
from numpy.typing import NDArray
from postgrest.exceptions import APIError as PostgrestAPIError
from reco_core.config import (
    TABLE_INTERACTIONS,
    TABLE_ITEM_EMBEDDINGS,
    TABLE_ITEMS,
    TABLE_PROFILES,
    TABLE_USER_EMBEDDINGS,
)
from reco_core.errors import StoreUnavailable
from reco_core.types import InteractionRecord, Item, ItemId, normalize_category
from reco_user.patterns.schemas import BehavioralProfile

from .base import EmbedMap

log = logging.getLogger(__name__)

T = TypeVar("T")
PAGE = 1000  # PostgREST default max rows per response
MAX_IN = 200  # keep matches PostgREST URL/param safety


def _ensure_ts(value) -> datetime | None:
    """Normalize timestamps coming from Postgres/Supabase into tz-aware datetimes."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, str):
        raw = value.strip()
        if not raw:
            return None
        normalized = raw.replace("Z", "+00:00") if raw.endswith("Z") else raw
        try:
            parsed = datetime.fromisoformat(normalized)
        except ValueError:
            return None
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
    return None


def _record_to_row(user_id: str, r: InteractionRecord) -> dict[str, Any]:
    row = asdict(r)
    row["user_id"] = user_id
    row["item_id"] = r.resolved_item_id
    row["occurred_at"] = r.occurred_at.isoformat() if r.occurred_at else None
    return row


def _row_to_record(row: dict[str, Any]) -> InteractionRecord:
    return InteractionRecord(
        item_id=row.get("item_id"),
        title=str(row["title"]),
        creator=str(row["creator"]),
        category=str(row.get("category") or "unknown"),
        mood=row.get("mood"),
        activity=row.get("activity"),
        hour=int(row.get("hour") or 0),
        is_weekend=bool(row.get("is_weekend")),
        rating=row.get("rating"),
        completion=float(row.get("completion") or 0.0),
        liked=bool(row.get("liked")),
        skipped=bool(row.get("skipped")),
        added_to_collection=bool(row.get("added_to_collection")),
        previously_seen=bool(row.get("previously_seen")),
        occurred_at=_ensure_ts(row.get("occurred_at")),
    )


def _vec(value) -> NDArray[np.float32]:
    # pgvector columns come back as "[0.1,0.2,...]" strings through PostgREST
    if isinstance(value, str):
        value = [float(x) for x in value.strip("[]").split(",") if x.strip()]
    return np.asarray(value, dtype=np.float32)


class SupabaseRecoStore:
    """
    Supabase-backed store. The supabase-py client is sync, so every call runs in a
    worker thread behind an async facade. Backend failures surface as StoreUnavailable.
    """

    kind = "supabase"

    def __init__(self, client):
        self.client = client

    async def _run(self, fn: Callable[..., T], *args: Any) -> T:
        try:
            return await to_thread.run_sync(fn, *args)
        except PostgrestAPIError as e:
            log.exception("Store call %s failed (code=%s)", fn.__name__, getattr(e, "code", None))
            raise StoreUnavailable(f"store error: {getattr(e, 'message', e)}") from e
        except httpx.HTTPError as e:
            log.exception("Store call %s failed", fn.__name__)
            raise StoreUnavailable(f"store unreachable: {e}") from e

    # ---------- Async facade ----------
    async def get_item(self, item_id: ItemId) -> Item | None:
        return await self._run(self._get_item_sync, item_id)

    async def list_items(
        self, *, category: str | None = None, item_ids: Sequence[ItemId] | None = None
    ) -> list[Item]:
        return await self._run(self._list_items_sync, category, item_ids)

    async def put_items(self, items: Sequence[Item]) -> None:
        if items:
            await self._run(self._put_items_sync, list(items))

    async def get_item_embeddings(self) -> EmbedMap:
        return await self._run(self._get_item_embeddings_sync)

    async def put_item_embeddings(self, vectors: Mapping[ItemId, np.ndarray]) -> None:
        if vectors:
            await self._run(self._put_item_embeddings_sync, dict(vectors))

    async def get_user_embedding(self, user_id: str) -> NDArray[np.float32] | None:
        return await self._run(self._get_user_embedding_sync, user_id)

    async def put_user_embedding(self, user_id: str, vector: np.ndarray) -> None:
        await self._run(self._put_user_embedding_sync, user_id, vector)

    async def get_behavioral_profile(self, user_id: str) -> BehavioralProfile | None:
        return await self._run(self._get_profile_sync, user_id)

    async def replace_behavioral_profile(
        self, user_id: str, profile: BehavioralProfile
    ) -> None:
        await self._run(self._replace_profile_sync, user_id, profile)

    async def list_interactions(self, user_id: str) -> list[InteractionRecord]:
        return await self._run(self._list_interactions_sync, user_id)

    async def append_interactions(
        self, user_id: str, records: Sequence[InteractionRecord]
    ) -> None:
        if records:
            await self._run(self._append_interactions_sync, user_id, list(records))

    # ---------- Private sync impls ----------
    def _get_item_sync(self, item_id: ItemId) -> Item | None:
        res = (
            self.client.table(TABLE_ITEMS)
            .select("*")
            .eq("item_id", item_id)
            .limit(1)
            .execute()
        )
        rows = res.data or []
        return Item.model_validate(rows[0]) if rows else None

    def _list_items_sync(
        self, category: str | None, item_ids: Sequence[ItemId] | None
    ) -> list[Item]:
        if item_ids is not None:
            out: list[Item] = []
            ids = list(item_ids)
            for i in range(0, len(ids), MAX_IN):
                q = self.client.table(TABLE_ITEMS).select("*").in_("item_id", ids[i : i + MAX_IN])
                if category is not None:
                    q = q.eq("category", normalize_category(category))
                out.extend(Item.model_validate(r) for r in (q.execute().data or []))
            return out

        rows: list[dict] = []
        start = 0
        while True:
            q = self.client.table(TABLE_ITEMS).select("*")
            if category is not None:
                q = q.eq("category", normalize_category(category))
            batch = q.order("created_at").range(start, start + PAGE - 1).execute().data or []
            rows.extend(batch)
            if len(batch) < PAGE:
                break
            start += PAGE
        return [Item.model_validate(r) for r in rows]

    def _put_items_sync(self, items: list[Item]) -> None:
        payload = [
            {**it.model_dump(mode="json"), "category": normalize_category(it.category)}
            for it in items
        ]
        self.client.table(TABLE_ITEMS).upsert(payload, on_conflict="item_id").execute()

    def _get_item_embeddings_sync(self) -> EmbedMap:
        out: EmbedMap = {}
        start = 0
        while True:
            batch = (
                self.client.table(TABLE_ITEM_EMBEDDINGS)
                .select("item_id, dense")
                .order("item_id")
                .range(start, start + PAGE - 1)
                .execute()
            ).data or []
            for row in batch:
                out[str(row["item_id"])] = _vec(row["dense"])
            if len(batch) < PAGE:
                break
            start += PAGE
        return out

    def _put_item_embeddings_sync(self, vectors: dict[ItemId, np.ndarray]) -> None:
        payload = [
            {"item_id": item_id, "dense": list(map(float, vec)), "dim": int(len(vec))}
            for item_id, vec in vectors.items()
        ]
        self.client.table(TABLE_ITEM_EMBEDDINGS).upsert(payload, on_conflict="item_id").execute()

    def _get_user_embedding_sync(self, user_id: str) -> NDArray[np.float32] | None:
        res = (
            self.client.table(TABLE_USER_EMBEDDINGS)
            .select("dense")
            .eq("user_id", user_id)
            .limit(1)
            .execute()
        )
        rows = res.data or []
        return _vec(rows[0]["dense"]) if rows and rows[0].get("dense") is not None else None

    def _put_user_embedding_sync(self, user_id: str, vector: np.ndarray) -> None:
        payload = {
            "user_id": user_id,
            "dense": list(map(float, vector)),
            "dim": int(len(vector)),
            "last_built_at": "now()",
        }
        self.client.table(TABLE_USER_EMBEDDINGS).upsert(payload, on_conflict="user_id").execute()

    def _get_profile_sync(self, user_id: str) -> BehavioralProfile | None:
        res = (
            self.client.table(TABLE_PROFILES)
            .select("profile")
            .eq("user_id", user_id)
            .limit(1)
            .execute()
        )
        rows = res.data or []
        if not rows or not rows[0].get("profile"):
            return None
        return BehavioralProfile.model_validate(rows[0]["profile"])

    def _replace_profile_sync(self, user_id: str, profile: BehavioralProfile) -> None:
        # one row per user; upsert overwrites the whole document
        payload = {
            "user_id": user_id,
            "profile": profile.model_dump(mode="json"),
            "built_at": profile.built_at.isoformat(),
        }
        self.client.table(TABLE_PROFILES).upsert(payload, on_conflict="user_id").execute()

    def _list_interactions_sync(self, user_id: str) -> list[InteractionRecord]:
        rows: list[dict] = []
        start = 0
        while True:
            batch = (
                self.client.table(TABLE_INTERACTIONS)
                .select("*")
                .eq("user_id", user_id)
                .order("id")
                .range(start, start + PAGE - 1)
                .execute()
            ).data or []
            rows.extend(batch)
            if len(batch) < PAGE:
                break
            start += PAGE
        return [_row_to_record(r) for r in rows]

    def _append_interactions_sync(self, user_id: str, records: list[InteractionRecord]) -> None:
        payload = [_record_to_row(user_id, r) for r in records]
        self.client.table(TABLE_INTERACTIONS).insert(payload).execute()
