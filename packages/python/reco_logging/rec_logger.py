from __future__ import annotations

import logging
import random
from typing import Any, Literal

import httpx
from fastapi.encoders import jsonable_encoder
from reco_core.types import RecContext
from reco_ranking.types import Candidate

log = logging.getLogger(__name__)

Endpoint = Literal[
    "recommendations",
    "recommendations/with-videos",
]


class TelemetryLogger:
    """
    Best-effort recommendation telemetry written to Supabase REST.

    - rec_queries: one row per request
    - rec_results: one row per returned candidate

    Never raises; disabled when url/key are missing or sample is 0.
    """

    def __init__(
        self,
        supabase_url: str | None,
        api_key: str | None,
        client: httpx.AsyncClient | None = None,
        *,
        sample: float = 1.0,
        timeout_s: float = 5.0,
    ):
        self.supabase_url = (supabase_url or "").rstrip("/")
        self.api_key = api_key or ""
        self.client = client
        self.sample = float(max(0.0, min(1.0, sample)))
        self.timeout_s = timeout_s

    def _enabled(self) -> bool:
        return bool(self.supabase_url and self.api_key and self.sample > 0)

    def _sampled(self) -> bool:
        return self.sample >= 1.0 or random.random() < self.sample

    def _headers(self) -> dict[str, str]:
        return {
            "apikey": self.api_key,
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
            "Prefer": "resolution=merge-duplicates",
        }

    async def _post(self, path: str, payload: list[dict[str, Any]]) -> None:
        if not self._enabled() or not payload:
            return
        try:
            if self.client is not None:
                r = await self._send(self.client, path, payload)
            else:
                async with httpx.AsyncClient() as client:
                    r = await self._send(client, path, payload)
            if r.status_code not in (200, 201, 204):
                log.warning("rec_logger POST %s failed %s: %s", path, r.status_code, r.text)
        except Exception:
            log.exception("rec_logger POST %s error", path)

    async def _send(self, client: httpx.AsyncClient, path: str, payload: list[dict[str, Any]]):
        return await client.post(
            f"{self.supabase_url}/rest/v1/{path}",
            headers=self._headers(),
            json=payload,
            timeout=self.timeout_s,
        )

    @staticmethod
    def to_jsonable(x):
        return jsonable_encoder(x, exclude_none=True)

    # ---------- Public APIs ----------
    async def log_query_intake(
        self,
        *,
        endpoint: Endpoint,
        query_id: str,
        user_id: str | None,
        ctx: RecContext | None,
        offset: int,
        limit: int,
        pipeline_version: str | None = None,
        request_meta: dict[str, Any] | None = None,
    ) -> bool:
        """Insert into rec_queries (one row). Returns whether this query was sampled."""
        if not self._enabled() or not self._sampled():
            return False
        row = {
            "endpoint": endpoint,
            "query_id": query_id,
            "user_id": user_id,
            "ctx_log": self.to_jsonable(ctx) if ctx is not None else None,
            "offset": int(offset),
            "batch_size": int(limit),
            "pipeline_version": pipeline_version,
            "request_meta": dict(request_meta or {}),
        }
        await self._post("rec_queries", [row])
        return True

    async def log_candidates(
        self,
        *,
        endpoint: Endpoint,
        query_id: str,
        candidates: list[Candidate],
        offset: int = 0,
    ) -> None:
        """Insert N rows into rec_results."""
        if not self._enabled():
            return
        rows = []
        for r, c in enumerate(candidates, start=offset + 1):
            rows.append(
                {
                    "endpoint": endpoint,
                    "query_id": query_id,
                    "item_id": c.id,
                    "rank": r,
                    "title": c.item.title,
                    "score_final": c.score,
                    "score_similarity": c.similarity,
                    "score_boost": c.boost,
                    "tier": c.tier.value,
                    "stage": c.source.value,
                    "boost_breakdown": c.breakdown.contributions() if c.breakdown else None,
                }
            )
        await self._post("rec_results", rows)
