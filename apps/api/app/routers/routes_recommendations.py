import asyncio
import uuid

from fastapi import APIRouter, Depends, Query

from reco_core.config import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE, VIDEO_PAGE_SIZE
from reco_core.types import RecContext, TimeOfDay
from reco_recommendation.enrichment import enrich_page
from reco_recommendation.recommend import RecommendPipeline
from reco_recommendation.types import RecommendationPage, RecommendationRequest

from app.deps.deps import (
    get_explainer,
    get_logger,
    get_media_lookup,
    get_recommend_pipeline,
    get_settings,
)
from app.schemas import RecommendationsResponse, RecommendationView

router = APIRouter(prefix="/v2/recommendations", tags=["recommendations"])

PIPELINE_VERSION = "RecommendPipeline@v1"


def _context(time_of_day: TimeOfDay | None, mood: str | None, activity: str | None) -> RecContext:
    return RecContext(
        time_of_day=time_of_day,
        mood=(mood or "").strip().lower() or None,
        activity=(activity or "").strip().lower() or None,
    )


async def _log_page(logger, *, endpoint: str, query_id: str, user_id: str, ctx: RecContext, page: RecommendationPage) -> None:
    sampled = await logger.log_query_intake(
        endpoint=endpoint,
        query_id=query_id,
        user_id=user_id,
        ctx=ctx,
        offset=page.offset,
        limit=page.limit,
        pipeline_version=PIPELINE_VERSION,
        request_meta={"states": [s.value for s in page.states]},
    )
    if sampled:
        await logger.log_candidates(
            endpoint=endpoint,
            query_id=query_id,
            candidates=page.candidates,
            offset=page.offset,
        )


def _log(logger, *, endpoint: str, query_id: str, user_id: str, ctx: RecContext, page: RecommendationPage) -> None:
    # fire-and-forget; telemetry never blocks or fails the request
    asyncio.create_task(
        _log_page(logger, endpoint=endpoint, query_id=query_id, user_id=user_id, ctx=ctx, page=page)
    )


@router.get("", response_model=RecommendationsResponse)
async def recommend(
    user_id: str = Query(..., min_length=1),
    offset: int = Query(0, ge=0),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    time_of_day: TimeOfDay | None = None,
    mood: str | None = None,
    activity: str | None = None,
    explain: bool = True,
    pipeline: RecommendPipeline = Depends(get_recommend_pipeline),
    explainer=Depends(get_explainer),
    logger=Depends(get_logger),
    settings=Depends(get_settings),
):
    ctx = _context(time_of_day, mood, activity)
    page = await pipeline.run(
        RecommendationRequest(user_id=user_id, offset=offset, limit=limit, ctx=ctx)
    )
    enriched = await enrich_page(
        page.candidates,
        explainer=explainer if explain else None,
        ctx=ctx,
        profile=page.profile,
        timeout_s=settings.enrichment_timeout_s,
    )

    query_id = str(uuid.uuid4())
    _log(logger, endpoint="recommendations", query_id=query_id, user_id=user_id, ctx=ctx, page=page)
    return RecommendationsResponse(
        recommendations=[RecommendationView.from_enriched(e) for e in enriched],
        has_more=page.has_more,
        offset=page.offset,
        limit=page.limit,
        query_id=query_id,
    )


@router.get("/with-videos", response_model=RecommendationsResponse)
async def recommend_with_videos(
    user_id: str = Query(..., min_length=1),
    offset: int = Query(0, ge=0),
    time_of_day: TimeOfDay | None = None,
    mood: str | None = None,
    activity: str | None = None,
    pipeline: RecommendPipeline = Depends(get_recommend_pipeline),
    explainer=Depends(get_explainer),
    media=Depends(get_media_lookup),
    logger=Depends(get_logger),
    settings=Depends(get_settings),
):
    """Fixed page of 4, each paired with a video lookup and an explanation."""
    ctx = _context(time_of_day, mood, activity)
    page = await pipeline.run(
        RecommendationRequest(user_id=user_id, offset=offset, limit=VIDEO_PAGE_SIZE, ctx=ctx)
    )
    enriched = await enrich_page(
        page.candidates,
        explainer=explainer,
        media=media,
        ctx=ctx,
        profile=page.profile,
        timeout_s=settings.enrichment_timeout_s,
    )

    query_id = str(uuid.uuid4())
    _log(
        logger,
        endpoint="recommendations/with-videos",
        query_id=query_id,
        user_id=user_id,
        ctx=ctx,
        page=page,
    )
    return RecommendationsResponse(
        recommendations=[RecommendationView.from_enriched(e) for e in enriched],
        has_more=page.has_more,
        offset=page.offset,
        limit=page.limit,
        query_id=query_id,
    )
