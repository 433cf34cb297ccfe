from __future__ import annotations

from datetime import datetime, timezone

from pydantic import BaseModel, Field
from reco_core.types import DedupKey, TimeOfDay, title_creator_key


class SongRef(BaseModel):
    item_id: str
    title: str
    creator: str
    category: str
    rating: float | None = None

    @property
    def key(self) -> DedupKey:
        return title_creator_key(self.title, self.creator)


class PreferenceSlice(BaseModel):
    """Ranked categories + qualifying songs for one time bucket, mood or activity."""

    categories: list[str] = Field(default_factory=list)
    songs: list[SongRef] = Field(default_factory=list)
    plays: int = 0


class CreatorStat(BaseModel):
    creator: str
    count: int


class ItemStat(BaseModel):
    item_id: str
    title: str
    creator: str
    category: str
    count: int
    skipped_count: int = 0
    liked_count: int = 0
    added_count: int = 0
    avg_rating: float = 0.0
    avg_completion: float = 0.0
    previously_seen: bool = False
    score: float = 0.0

    @property
    def key(self) -> DedupKey:
        return title_creator_key(self.title, self.creator)


def _empty_buckets() -> dict[TimeOfDay, PreferenceSlice]:
    return {tod: PreferenceSlice() for tod in TimeOfDay}


class BehavioralProfile(BaseModel):
    user_id: str
    time_of_day: dict[TimeOfDay, PreferenceSlice] = Field(default_factory=_empty_buckets)
    category_weights: dict[str, float] = Field(default_factory=dict)
    moods: dict[str, PreferenceSlice] = Field(default_factory=dict)
    activities: dict[str, PreferenceSlice] = Field(default_factory=dict)
    top_creators: list[CreatorStat] = Field(default_factory=list)
    top_items: list[ItemStat] = Field(default_factory=list)
    weekend: PreferenceSlice = Field(default_factory=PreferenceSlice)
    weekday: PreferenceSlice = Field(default_factory=PreferenceSlice)
    total_interactions: int = 0
    engaged_interactions: int = 0
    built_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def bucket(self, tod: TimeOfDay) -> PreferenceSlice:
        return self.time_of_day.get(tod) or PreferenceSlice()

    def top_categories(self, n: int = 5) -> list[str]:
        """Categories by accumulated engagement weight, heaviest first."""
        ranked = sorted(self.category_weights.items(), key=lambda kv: kv[1], reverse=True)
        return [cat for cat, _ in ranked[:n]]

    @property
    def max_category_weight(self) -> float:
        return max(self.category_weights.values(), default=0.0)
