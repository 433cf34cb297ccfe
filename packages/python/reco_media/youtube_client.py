from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass
from typing import Optional

import httpx

log = logging.getLogger(__name__)

_ISO_DURATION = re.compile(r"^PT(?:(\d+)H)?(?:(\d+)M)?(?:(\d+)S)?$")


@dataclass
class MediaLookup:
    id: str
    title: str
    url: str
    thumbnail: str | None = None
    duration_s: int | None = None


def parse_iso_duration(value: str | None) -> int | None:
    """'PT4M13S' -> 253. Returns None for anything it cannot parse."""
    if not value:
        return None
    m = _ISO_DURATION.match(value)
    if not m:
        return None
    h, mi, s = (int(x) if x else 0 for x in m.groups())
    return h * 3600 + mi * 60 + s


def _best_thumbnail(snippet: dict) -> str | None:
    thumbs = snippet.get("thumbnails") or {}
    for size in ("high", "medium", "default"):
        url = (thumbs.get(size) or {}).get("url")
        if url:
            return url
    return None


class YouTubeClient:
    """
    Media lookup over the YouTube Data API v3: one search call for the best video match,
    one videos call for its duration. Any failure returns None.
    """

    BASE_URL = "https://www.googleapis.com/youtube/v3"
    WATCH_URL = "https://www.youtube.com/watch?v="

    def __init__(
        self,
        api_key: str,
        max_connections: int = 4,
        timeout: float = 5.0,
        client: httpx.AsyncClient | None = None,
    ):
        self.api_key = api_key
        limits = httpx.Limits(
            max_connections=max_connections, max_keepalive_connections=max_connections
        )
        self.client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(timeout),
            limits=limits,
            headers={"Accept": "application/json"},
        )
        self.semaphore = asyncio.Semaphore(max_connections)

    async def aclose(self) -> None:
        await self.client.aclose()

    async def get(self, path: str, params: dict) -> Optional[dict]:
        async with self.semaphore:
            try:
                response = await self.client.get(
                    f"{self.BASE_URL}/{path}", params={**params, "key": self.api_key}
                )
                response.raise_for_status()
                return response.json()
            except httpx.HTTPStatusError as e:
                log.warning("YouTube HTTP %s on /%s", e.response.status_code, path)
            except httpx.RequestError as e:
                log.warning("YouTube request error on /%s: %s", path, e)
        return None

    async def get_with_retry(
        self, path: str, params: dict, retries: int = 1, delay: float = 0.5
    ) -> Optional[dict]:
        for attempt in range(retries + 1):
            result = await self.get(path, params)
            if result:
                return result
            if attempt < retries:
                await asyncio.sleep(delay * (2**attempt))  # Exponential backoff
        return None

    async def lookup(self, title: str, creator: str) -> MediaLookup | None:
        query = f"{title} {creator}".strip()
        if not query:
            return None
        data = await self.get_with_retry(
            "search",
            {"part": "snippet", "q": query, "type": "video", "maxResults": 1},
        )
        items = (data or {}).get("items") or []
        if not items:
            return None
        first = items[0]
        video_id = (first.get("id") or {}).get("videoId")
        if not video_id:
            return None
        snippet = first.get("snippet") or {}

        details = await self.get("videos", {"part": "contentDetails", "id": video_id})
        duration = None
        if details and details.get("items"):
            duration = parse_iso_duration(
                (details["items"][0].get("contentDetails") or {}).get("duration")
            )

        return MediaLookup(
            id=video_id,
            title=snippet.get("title") or title,
            url=f"{self.WATCH_URL}{video_id}",
            thumbnail=_best_thumbnail(snippet),
            duration_s=duration,
        )
