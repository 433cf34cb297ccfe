from typing import Any, cast

from fastapi import Depends, HTTPException, Request, status

from reco_agent.explanation.explanation_agent import ExplanationComposer
from reco_core.types import ScoringParams
from reco_embeddings.item_encoder import FeatureEncoder
from reco_logging.rec_logger import TelemetryLogger
from reco_recommendation.recommend import RecommendPipeline
from reco_recommendation.types import MediaLookupService
from reco_store.base import RecoStore
from reco_user.catalog_service import CatalogService
from reco_user.upload_service import UploadService


def _get_state_attr(request: Request, name: str, error_detail: str) -> Any:
    value = getattr(request.app.state, name, None)
    if value is None:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=error_detail,
        )
    return value


def get_settings(request: Request) -> Any:
    return _get_state_attr(request, "settings", "Settings not initialized")


def get_store(request: Request) -> RecoStore:
    return cast(RecoStore, _get_state_attr(request, "store", "Store not initialized"))


def get_encoder(request: Request) -> FeatureEncoder:
    return cast(
        FeatureEncoder,
        _get_state_attr(request, "encoder", "Feature encoder not initialized"),
    )


def get_scoring_params(request: Request) -> ScoringParams:
    return cast(
        ScoringParams,
        _get_state_attr(request, "scoring_params", "Scoring params not initialized"),
    )


def get_explainer(request: Request) -> ExplanationComposer:
    return cast(
        ExplanationComposer,
        _get_state_attr(request, "explainer", "Explanation composer not initialized"),
    )


def get_media_lookup(request: Request) -> MediaLookupService | None:
    # optional collaborator: None disables video enrichment
    return getattr(request.app.state, "media_lookup", None)


def get_logger(request: Request) -> TelemetryLogger:
    return cast(
        TelemetryLogger,
        _get_state_attr(request, "telemetry", "Telemetry logger not initialized"),
    )


def get_recommend_pipeline(
    store: RecoStore = Depends(get_store),
    encoder: FeatureEncoder = Depends(get_encoder),
    params: ScoringParams = Depends(get_scoring_params),
) -> RecommendPipeline:
    return RecommendPipeline(store, encoder=encoder, params=params)


def get_catalog_service(
    store: RecoStore = Depends(get_store),
    encoder: FeatureEncoder = Depends(get_encoder),
) -> CatalogService:
    return CatalogService(store, encoder)


def get_upload_service(
    request: Request,
    catalog: CatalogService = Depends(get_catalog_service),
) -> UploadService:
    locks = getattr(request.app.state, "upload_locks", None)
    if locks is None:
        locks = request.app.state.upload_locks = {}
    return UploadService(catalog.store, catalog=catalog, locks=locks)
