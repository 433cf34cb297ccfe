from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Protocol, runtime_checkable

from reco_core.types import (
    DedupKey,
    Item,
    RecContext,
    ScoringParams,
    TimeOfDay,
    normalize_category,
)
from reco_user.patterns.schemas import BehavioralProfile, ItemStat, PreferenceSlice

from .types import FeatureContribution, ScoreBreakdown


@dataclass
class _SliceIndex:
    categories: set[str] = field(default_factory=set)
    song_ids: set[str] = field(default_factory=set)
    song_keys: set[DedupKey] = field(default_factory=set)

    @classmethod
    def of(cls, s: PreferenceSlice) -> "_SliceIndex":
        return cls(
            categories={normalize_category(c) for c in s.categories},
            song_ids={song.item_id for song in s.songs},
            song_keys={song.key for song in s.songs},
        )

    def has_song(self, item: Item) -> bool:
        return item.item_id in self.song_ids or item.key in self.song_keys


@dataclass
class ProfileIndex:
    """Membership sets over a BehavioralProfile, built once per request."""

    profile: BehavioralProfile
    buckets: Dict[TimeOfDay, _SliceIndex]
    moods: Dict[str, _SliceIndex]
    activities: Dict[str, _SliceIndex]
    top_creators: set[str]
    top_item_ids: Dict[str, ItemStat]
    top_item_keys: Dict[DedupKey, ItemStat]
    top_categories: list[str]
    max_weight: float

    @classmethod
    def from_profile(cls, profile: BehavioralProfile) -> "ProfileIndex":
        return cls(
            profile=profile,
            buckets={tod: _SliceIndex.of(profile.bucket(tod)) for tod in TimeOfDay},
            moods={k.lower(): _SliceIndex.of(v) for k, v in profile.moods.items()},
            activities={k.lower(): _SliceIndex.of(v) for k, v in profile.activities.items()},
            top_creators={c.creator.strip().casefold() for c in profile.top_creators},
            top_item_ids={s.item_id: s for s in profile.top_items},
            top_item_keys={s.key: s for s in profile.top_items},
            top_categories=[normalize_category(c) for c in profile.top_categories(5)],
            max_weight=profile.max_category_weight,
        )

    def category_weight(self, category: str) -> float:
        return self.profile.category_weights.get(normalize_category(category), 0.0)

    def item_stat(self, item: Item) -> ItemStat | None:
        return self.top_item_ids.get(item.item_id) or self.top_item_keys.get(item.key)


def _fc(feature: str, value: float, weight: float) -> FeatureContribution:
    return FeatureContribution(
        feature=feature, value=value, weight=weight, contribution=weight * value
    )


@runtime_checkable
class BoostStrategy(Protocol):
    name: str
    similarity_weight: float
    boost_weight: float

    def boost(
        self, item: Item, index: ProfileIndex, ctx: RecContext
    ) -> ScoreBreakdown: ...


class BehavioralBoost:
    """
    Additive boost from listening patterns, capped at 1.0:
    time-bucket category/song, proportional category affinity, mood, activity,
    top creator and top item.
    """

    name = "behavioral"

    def __init__(self, params: ScoringParams | None = None):
        self.params = params or ScoringParams()
        self.similarity_weight = self.params.similarity_weight
        self.boost_weight = self.params.boost_weight

    def boost(self, item: Item, index: ProfileIndex, ctx: RecContext) -> ScoreBreakdown:
        p = self.params
        cat = normalize_category(item.category)

        in_bucket = in_bucket_song = 0.0
        if ctx.time_of_day is not None:
            b = index.buckets.get(ctx.time_of_day)
            if b is not None:
                in_bucket = 1.0 if cat in b.categories else 0.0
                in_bucket_song = 1.0 if b.has_song(item) else 0.0

        affinity = index.category_weight(cat) / index.max_weight if index.max_weight > 0 else 0.0

        mood = 0.0
        if ctx.mood:
            m = index.moods.get(ctx.mood.lower())
            mood = 1.0 if m is not None and cat in m.categories else 0.0

        activity = 0.0
        if ctx.activity:
            a = index.activities.get(ctx.activity.lower())
            activity = 1.0 if a is not None and cat in a.categories else 0.0

        creator = 1.0 if item.creator.strip().casefold() in index.top_creators else 0.0
        top_item = 1.0 if index.item_stat(item) is not None else 0.0

        feats = {
            "bucket_category": _fc("bucket_category", in_bucket, p.w_bucket_category),
            "bucket_song": _fc("bucket_song", in_bucket_song, p.w_bucket_song),
            "category_affinity": _fc("category_affinity", affinity, p.w_category_affinity),
            "mood": _fc("mood", mood, p.w_mood),
            "activity": _fc("activity", activity, p.w_activity),
            "top_creator": _fc("top_creator", creator, p.w_top_creator),
            "top_item": _fc("top_item", top_item, p.w_top_item),
        }
        return ScoreBreakdown(features=feats, cap=p.boost_cap)


class WeightedFeatureBoost:
    """
    Fixed-weight feature match: category 0.35, mood 0.25 (0.15 partial), activity 0.15,
    rating quality 0.15, completion quality 0.10. Blended 70/30 with similarity.
    """

    name = "weighted"

    def __init__(self, params: ScoringParams | None = None):
        self.params = params or ScoringParams()
        self.similarity_weight = self.params.feature_similarity_weight
        self.boost_weight = 1.0 - self.params.feature_similarity_weight

    def boost(self, item: Item, index: ProfileIndex, ctx: RecContext) -> ScoreBreakdown:
        w = self.params.feature_weights
        cat = normalize_category(item.category)

        if ctx.time_of_day is not None:
            category = 1.0 if cat in index.buckets[ctx.time_of_day].categories else 0.0
        else:
            category = 1.0 if cat in index.top_categories else 0.0

        mood_w = 0.0
        if ctx.mood and cat in index.moods.get(ctx.mood.lower(), _SliceIndex()).categories:
            mood_w = w.get("mood", 0.0)
        elif any(cat in m.categories for m in index.moods.values()):
            mood_w = w.get("mood_partial", 0.0)

        activity = 0.0
        if ctx.activity:
            a = index.activities.get(ctx.activity.lower())
            activity = 1.0 if a is not None and cat in a.categories else 0.0

        stat = index.item_stat(item)
        rating = stat.avg_rating / 5.0 if stat else 0.0
        completion = stat.avg_completion if stat else 0.0

        feats = {
            "category": _fc("category", category, w.get("category", 0.0)),
            "mood": _fc("mood", 1.0 if mood_w else 0.0, mood_w),
            "activity": _fc("activity", activity, w.get("activity", 0.0)),
            "rating": _fc("rating", rating, w.get("rating", 0.0)),
            "completion": _fc("completion", completion, w.get("completion", 0.0)),
        }
        return ScoreBreakdown(features=feats, cap=1.0)
