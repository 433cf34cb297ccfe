from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Protocol, runtime_checkable

from reco_agent.explanation.explanation_agent import Explanation
from reco_core.config import DEFAULT_PAGE_SIZE
from reco_core.types import MatchTier, RecContext
from reco_media.youtube_client import MediaLookup
from reco_ranking.types import Candidate
from reco_user.patterns.schemas import BehavioralProfile


class PipelineState(str, Enum):
    NO_EMBEDDING = "no_embedding"
    BEHAVIORAL_FALLBACK = "behavioral_fallback"
    POPULARITY_FALLBACK = "popularity_fallback"
    DONE = "done"


@dataclass
class RecommendationRequest:
    user_id: str
    offset: int = 0
    limit: int = DEFAULT_PAGE_SIZE
    ctx: RecContext = field(default_factory=RecContext)


@dataclass
class RecommendationPage:
    candidates: list[Candidate]
    offset: int
    limit: int
    has_more: bool
    total_collected: int
    states: list[PipelineState] = field(default_factory=list)
    profile: BehavioralProfile | None = None
    pruned: list[dict] = field(default_factory=list)


@dataclass
class EnrichedCandidate:
    candidate: Candidate
    explanation: Explanation | None = None
    media: MediaLookup | None = None


@runtime_checkable
class MediaLookupService(Protocol):
    async def lookup(self, title: str, creator: str) -> MediaLookup | None: ...


@runtime_checkable
class Explainer(Protocol):
    async def explain(
        self,
        *,
        title: str,
        creator: str,
        category: str,
        score: float,
        tier: MatchTier,
        ctx: RecContext | None = None,
        profile: BehavioralProfile | None = None,
    ) -> Explanation: ...
