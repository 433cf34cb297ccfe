from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from typing import Iterable

from reco_core.config import (
    MIN_ENGAGED_COMPLETION,
    QUALIFYING_COMPLETION,
    QUALIFYING_RATING,
    TOP_CREATORS,
    TOP_ITEMS,
    TOP_SLICE_CATEGORIES,
    TOP_SLICE_SONGS,
)
from reco_core.types import DedupKey, InteractionRecord, TimeOfDay, normalize_category

from .schemas import (
    BehavioralProfile,
    CreatorStat,
    ItemStat,
    PreferenceSlice,
    SongRef,
)
from .time_buckets import bucket_for_hour


# ---- per-record predicates ----
def is_engaged(r: InteractionRecord) -> bool:
    """Skips and short listens do not feed category/mood/activity aggregates."""
    return not r.skipped and r.completion >= MIN_ENGAGED_COMPLETION


def is_qualifying_song(r: InteractionRecord) -> bool:
    if r.completion > QUALIFYING_COMPLETION and r.liked:
        return True
    if r.added_to_collection:
        return True
    return r.rating is not None and r.rating >= QUALIFYING_RATING


def is_highly_rated(r: InteractionRecord) -> bool:
    return r.rating is not None and r.rating >= QUALIFYING_RATING


def engagement_weight(r: InteractionRecord) -> float:
    rating = (r.rating or 0.0) / 5.0
    return 0.4 * rating + 0.4 * r.completion + 0.2 * (1.0 if r.liked else 0.0)


def _song_ref(r: InteractionRecord) -> SongRef:
    return SongRef(
        item_id=r.resolved_item_id,
        title=r.title,
        creator=r.creator,
        category=normalize_category(r.category),
        rating=r.rating,
    )


# ---- accumulators ----
@dataclass
class _SliceAcc:
    category_counts: Counter = field(default_factory=Counter)
    songs: dict[DedupKey, SongRef] = field(default_factory=dict)
    plays: int = 0

    def add(self, r: InteractionRecord, qualifies: bool) -> None:
        self.plays += 1
        self.category_counts[normalize_category(r.category)] += 1
        if not qualifies:
            return
        prev = self.songs.get(r.key)
        if prev is None or (r.rating or 0.0) > (prev.rating or 0.0):
            self.songs[r.key] = _song_ref(r)

    def finalize(self) -> PreferenceSlice:
        categories = [c for c, _ in self.category_counts.most_common(TOP_SLICE_CATEGORIES)]
        songs = sorted(self.songs.values(), key=lambda s: s.rating or 0.0, reverse=True)
        return PreferenceSlice(
            categories=categories, songs=songs[:TOP_SLICE_SONGS], plays=self.plays
        )


@dataclass
class _ItemAcc:
    item_id: str
    title: str
    creator: str
    category: str
    count: int = 0
    rating_sum: float = 0.0
    rated_n: int = 0
    completion_sum: float = 0.0
    liked: int = 0
    added: int = 0
    skipped: int = 0
    previously_seen: bool = False

    def add(self, r: InteractionRecord) -> None:
        self.previously_seen = self.previously_seen or r.previously_seen
        if r.skipped:
            self.skipped += 1
            return
        self.count += 1
        if r.rating is not None:
            self.rating_sum += r.rating
            self.rated_n += 1
        self.completion_sum += r.completion
        self.liked += int(r.liked)
        self.added += int(r.added_to_collection)

    def to_stat(self) -> ItemStat:
        avg_rating = self.rating_sum / self.rated_n if self.rated_n else 0.0
        avg_completion = self.completion_sum / self.count
        score = (
            0.35 * min(self.count / 10.0, 1.0)
            + 0.15 * (avg_rating / 5.0)
            + 0.10 * avg_completion
            + 0.15 * (self.liked / self.count)
            + 0.10 * (self.added / self.count)
            - 0.2 * (self.skipped / (self.count + self.skipped))
        )
        return ItemStat(
            item_id=self.item_id,
            title=self.title,
            creator=self.creator,
            category=self.category,
            count=self.count,
            skipped_count=self.skipped,
            liked_count=self.liked,
            added_count=self.added,
            avg_rating=avg_rating,
            avg_completion=avg_completion,
            previously_seen=self.previously_seen,
            score=score,
        )


# ---- main extractor ----
def extract_behavioral_profile(
    user_id: str, records: Iterable[InteractionRecord]
) -> BehavioralProfile:
    """
    Build a fresh BehavioralProfile from one batch of interactions.

    The result is meant to replace any stored profile wholesale. Skipped or short
    (< 50% completion) plays are excluded from the category/mood/activity aggregates but
    still count toward each item's skip penalty.
    """
    buckets = {tod: _SliceAcc() for tod in TimeOfDay}
    moods: dict[str, _SliceAcc] = {}
    activities: dict[str, _SliceAcc] = {}
    weekend, weekday = _SliceAcc(), _SliceAcc()
    category_weights: dict[str, float] = {}
    items: dict[DedupKey, _ItemAcc] = {}
    creator_counts: Counter = Counter()
    creator_names: dict[str, str] = {}
    total = engaged = 0

    for r in records:
        total += 1
        acc = items.get(r.key)
        if acc is None:
            acc = items[r.key] = _ItemAcc(
                item_id=r.resolved_item_id,
                title=r.title,
                creator=r.creator,
                category=normalize_category(r.category),
            )
        acc.add(r)

        if not is_engaged(r):
            continue
        engaged += 1

        qualifies = is_qualifying_song(r)
        buckets[bucket_for_hour(r.hour)].add(r, qualifies)
        if r.mood:
            moods.setdefault(r.mood, _SliceAcc()).add(r, qualifies)
        if r.activity:
            activities.setdefault(r.activity, _SliceAcc()).add(r, qualifies)

        cat = normalize_category(r.category)
        category_weights[cat] = category_weights.get(cat, 0.0) + engagement_weight(r)

        creator_key = r.creator.strip().casefold()
        creator_names.setdefault(creator_key, r.creator.strip())
        creator_counts[creator_key] += 1

        (weekend if r.is_weekend else weekday).add(r, is_highly_rated(r))

    stats = [a.to_stat() for a in items.values() if a.count > 0]
    stats.sort(key=lambda s: (s.score, s.count, s.avg_rating), reverse=True)

    return BehavioralProfile(
        user_id=user_id,
        time_of_day={tod: acc.finalize() for tod, acc in buckets.items()},
        category_weights=category_weights,
        moods={k: v.finalize() for k, v in moods.items()},
        activities={k: v.finalize() for k, v in activities.items()},
        top_creators=[
            CreatorStat(creator=creator_names[k], count=n)
            for k, n in creator_counts.most_common(TOP_CREATORS)
        ],
        top_items=stats[:TOP_ITEMS],
        weekend=weekend.finalize(),
        weekday=weekday.finalize(),
        total_interactions=total,
        engaged_interactions=engaged,
    )
