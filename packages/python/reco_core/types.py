import hashlib
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Annotated, Dict, Tuple

from pydantic import AfterValidator, BaseModel, Field

ItemId = str
DedupKey = Tuple[str, str]


class TimeOfDay(str, Enum):
    MORNING = "morning"
    AFTERNOON = "afternoon"
    EVENING = "evening"
    NIGHT = "night"


class MatchTier(str, Enum):
    HIGH = "high"
    MODERATE = "moderate"
    EXPLORATORY = "exploratory"


class ScoringMode(str, Enum):
    EMBEDDING = "embedding"  # similarity only
    BEHAVIORAL = "behavioral"  # similarity + behavioral boost
    WEIGHTED = "weighted"  # similarity + fixed-weight feature match


def normalize_category(value: str | None) -> str:
    return (value or "").strip().lower()


def title_creator_key(title: str | None, creator: str | None) -> DedupKey:
    """Case-insensitive (title, creator) identity used for dedup and song matching."""
    return ((title or "").strip().casefold(), (creator or "").strip().casefold())


def stable_item_id(title: str, creator: str) -> ItemId:
    t, c = title_creator_key(title, creator)
    digest = hashlib.sha1(f"{t}\x1f{c}".encode("utf-8")).hexdigest()
    return f"itm_{digest[:16]}"


def _validate_unit(x: float | None) -> float | None:
    if x is None:
        return None
    if x < 0.0 or x > 1.0:
        raise ValueError("value must be within [0, 1]")
    return x


Unit = Annotated[float | None, AfterValidator(_validate_unit)]


class FeatureBag(BaseModel):
    tempo: float | None = Field(default=None, ge=0)  # bpm
    energy: Unit = None
    danceability: Unit = None
    valence: Unit = None


class Item(BaseModel):
    item_id: ItemId
    title: str
    creator: str
    category: str = "unknown"
    collection: str | None = None
    duration_s: float | None = None
    year: int | None = None
    popularity: Unit = None
    features: FeatureBag = Field(default_factory=FeatureBag)

    @property
    def key(self) -> DedupKey:
        return title_creator_key(self.title, self.creator)


@dataclass(frozen=True)
class InteractionRecord:
    """One observed listening event from an uploaded batch (immutable)."""

    title: str
    creator: str
    category: str
    hour: int
    item_id: ItemId | None = None
    mood: str | None = None
    activity: str | None = None
    is_weekend: bool = False
    rating: float | None = None  # 0-5
    completion: float = 0.0  # 0-1
    liked: bool = False
    skipped: bool = False
    added_to_collection: bool = False
    previously_seen: bool = False
    occurred_at: datetime | None = None

    @property
    def key(self) -> DedupKey:
        return title_creator_key(self.title, self.creator)

    @property
    def resolved_item_id(self) -> ItemId:
        return self.item_id or stable_item_id(self.title, self.creator)


class RecContext(BaseModel):
    time_of_day: TimeOfDay | None = None
    mood: str | None = None
    activity: str | None = None

    def is_empty(self) -> bool:
        return self.time_of_day is None and not self.mood and not self.activity


@dataclass
class ScoringParams:
    mode: ScoringMode = ScoringMode.BEHAVIORAL
    similarity_weight: float = 0.7
    boost_weight: float = 0.3
    high_tier: float = 0.80
    moderate_tier: float = 0.65
    jitter_amplitude: float = 0.02  # presentation only, see ranking.jitter
    tier_tolerance: float = 0.0
    # behavioral boost contributions
    w_bucket_category: float = 0.3
    w_bucket_song: float = 0.4
    w_category_affinity: float = 0.2
    w_mood: float = 0.25
    w_activity: float = 0.25
    w_top_creator: float = 0.2
    w_top_item: float = 0.3
    boost_cap: float = 1.0
    # weighted-feature combination
    feature_weights: Dict[str, float] = field(
        default_factory=lambda: dict(
            category=0.35, mood=0.25, mood_partial=0.15, activity=0.15, rating=0.15, completion=0.10
        )
    )
    feature_similarity_weight: float = 0.7
