from typing import Any, Dict, List

import os

import pytest
from fastapi.testclient import TestClient

from reco_core.errors import StoreUnavailable
from reco_core.types import FeatureBag, InteractionRecord, Item, stable_item_id
from reco_embeddings.item_encoder import FeatureEncoder
from reco_media.youtube_client import MediaLookup
from reco_store.memory_store import InMemoryRecoStore

os.environ.setdefault("RECO_SKIP_SERVICE_INIT", "1")


@pytest.fixture
def anyio_backend():
    return "asyncio"


def make_item(
    title: str,
    creator: str,
    category: str,
    *,
    item_id: str | None = None,
    popularity: float | None = 0.5,
    tempo: float | None = 120.0,
    energy: float | None = 0.5,
    danceability: float | None = 0.5,
    valence: float | None = 0.5,
) -> Item:
    return Item(
        item_id=item_id or stable_item_id(title, creator),
        title=title,
        creator=creator,
        category=category,
        popularity=popularity,
        features=FeatureBag(
            tempo=tempo, energy=energy, danceability=danceability, valence=valence
        ),
    )


def make_record(title: str, creator: str, category: str, **kw: Any) -> InteractionRecord:
    kw.setdefault("hour", 14)
    return InteractionRecord(title=title, creator=creator, category=category, **kw)


async def seed_catalog(store: InMemoryRecoStore, items: List[Item], encoder: FeatureEncoder) -> None:
    await store.put_items(items)
    await store.put_item_embeddings(encoder.encode_many(items))


class FakeLLM:
    """Stands in for LlmClient.complete_text."""

    def __init__(self, text: str | None = "Because it matches your afternoon groove.", delay: float = 0.0, exc: Exception | None = None):
        self.text = text
        self.delay = delay
        self.exc = exc
        self.calls: List[Dict[str, Any]] = []

    async def complete_text(self, **kwargs):
        import anyio

        self.calls.append(kwargs)
        if self.delay:
            await anyio.sleep(self.delay)
        if self.exc is not None:
            raise self.exc
        return self.text


class FakeMediaLookup:
    def __init__(self, fail_titles: set[str] | None = None, delay_titles: set[str] | None = None):
        self.fail_titles = fail_titles or set()
        self.delay_titles = delay_titles or set()
        self.calls: List[tuple[str, str]] = []

    async def lookup(self, title: str, creator: str) -> MediaLookup | None:
        import anyio

        self.calls.append((title, creator))
        if title in self.fail_titles:
            raise RuntimeError("lookup failed")
        if title in self.delay_titles:
            await anyio.sleep(5)
        return MediaLookup(
            id=f"vid-{title}",
            title=f"{title} (Official Video)",
            url=f"https://www.youtube.com/watch?v=vid-{title}",
            thumbnail=None,
            duration_s=200,
        )


class FailingStore(InMemoryRecoStore):
    kind = "failing"

    async def list_items(self, **kwargs):
        raise StoreUnavailable("store unreachable: connection refused")

    async def get_behavioral_profile(self, user_id: str):
        raise StoreUnavailable("store unreachable: connection refused")


@pytest.fixture()
def encoder() -> FeatureEncoder:
    return FeatureEncoder()


@pytest.fixture()
def store() -> InMemoryRecoStore:
    return InMemoryRecoStore()


@pytest.fixture()
def test_client(store):
    # Import after env is set so lifespan skips external clients
    from app.main import app  # type: ignore
    from app.deps.deps import get_store  # type: ignore

    app.dependency_overrides[get_store] = lambda: store

    try:
        with TestClient(app) as client:
            yield client
    finally:
        app.dependency_overrides.clear()
