from __future__ import annotations

from typing import Any, Dict, List

from pydantic import BaseModel, ConfigDict, Field

from reco_core.types import Item, MatchTier
from reco_ranking.types import CandidateSource
from reco_recommendation.types import EnrichedCandidate


class MediaView(BaseModel):
    id: str
    title: str
    url: str
    thumbnail: str | None = None
    duration_s: int | None = None


class RecommendationView(BaseModel):
    item_id: str
    title: str
    creator: str
    category: str
    collection: str | None = None
    similarity: float
    boost: float
    score: float
    display_score: float | None = None
    tier: MatchTier
    source: CandidateSource
    contributions: Dict[str, float] = Field(default_factory=dict)
    explanation: str | None = None
    explanation_source: str | None = None
    media: MediaView | None = None

    @classmethod
    def from_enriched(cls, e: EnrichedCandidate) -> "RecommendationView":
        c = e.candidate
        media = None
        if e.media is not None:
            media = MediaView(
                id=e.media.id,
                title=e.media.title,
                url=e.media.url,
                thumbnail=e.media.thumbnail,
                duration_s=e.media.duration_s,
            )
        return cls(
            item_id=c.id,
            title=c.item.title,
            creator=c.item.creator,
            category=c.item.category,
            collection=c.item.collection,
            similarity=round(c.similarity, 6),
            boost=round(c.boost, 6),
            score=round(c.score, 6),
            display_score=round(c.display_score, 6) if c.display_score is not None else None,
            tier=c.tier,
            source=c.source,
            contributions=c.breakdown.contributions() if c.breakdown else {},
            explanation=e.explanation.text if e.explanation else None,
            explanation_source=e.explanation.source if e.explanation else None,
            media=media,
        )


class RecommendationsResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    recommendations: List[RecommendationView]
    has_more: bool = Field(alias="hasMore")
    offset: int
    limit: int
    query_id: str


class UploadRequest(BaseModel):
    # rows are validated one by one downstream so a malformed row is skipped, not rejected
    rows: List[Any] = Field(
        ...,
        examples=[
            [
                {
                    "Title": "Midnight City",
                    "Artist": "M83",
                    "Genre": "Electronic",
                    "Hour": 14,
                    "Rating": 5,
                    "Completion": 0.9,
                    "Liked": "yes",
                }
            ]
        ],
    )


class CatalogIngestRequest(BaseModel):
    items: List[Item]


class CatalogIngestResponse(BaseModel):
    items_written: int
    embedding_dim: int
