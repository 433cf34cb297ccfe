from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict

from reco_core.types import DedupKey, Item, MatchTier


class CandidateSource(str, Enum):
    EMBEDDING = "embedding"  # primary: similarity (+ boost)
    BEHAVIORAL = "behavioral"  # fallback: top-category filter
    POPULARITY = "popularity"  # fallback: global popularity


@dataclass(frozen=True)
class FeatureContribution:
    feature: str  # "bucket_category", "mood", "top_item", ...
    value: float  # feature value (pre-weight)
    weight: float  # weight used in this run
    contribution: float  # weight * value


@dataclass(frozen=True)
class ScoreBreakdown:
    features: Dict[str, FeatureContribution]  # keyed by feature name
    cap: float | None = None

    @property
    def raw_total(self) -> float:
        return sum(fc.contribution for fc in self.features.values())

    @property
    def total(self) -> float:
        t = self.raw_total
        return min(t, self.cap) if self.cap is not None else t

    def contributions(self) -> Dict[str, float]:
        return {
            name: round(fc.contribution, 6)
            for name, fc in self.features.items()
            if fc.contribution
        }


@dataclass
class Candidate:
    """Transient per-request scoring result for one catalog item."""

    item: Item
    similarity: float = 0.0
    boost: float = 0.0
    score: float = 0.0  # ranking score, jitter-free
    tier: MatchTier = MatchTier.EXPLORATORY
    source: CandidateSource = CandidateSource.EMBEDDING
    breakdown: ScoreBreakdown | None = None
    display_score: float | None = None  # score with presentation jitter
    extras: Dict[str, object] = field(default_factory=dict)

    @property
    def id(self) -> str:
        return self.item.item_id

    @property
    def key(self) -> DedupKey:
        return self.item.key
