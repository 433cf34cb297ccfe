import logging
import os
from contextlib import asynccontextmanager

from dotenv import find_dotenv, load_dotenv
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic_settings import BaseSettings, SettingsConfigDict

from reco_agent.explanation.explanation_agent import ExplanationComposer
from reco_core.config import ENRICHMENT_TIMEOUT_S, EXPLANATION_MODEL
from reco_core.errors import DomainError
from reco_core.types import ScoringMode, ScoringParams
from reco_embeddings.category_map import load_category_map
from reco_embeddings.item_encoder import FeatureEncoder
from reco_logging.rec_logger import TelemetryLogger
from reco_store.memory_store import InMemoryRecoStore

from .routers import all_routers

log = logging.getLogger(__name__)


class Settings(BaseSettings):
    app_name: str = "RecoEngine API"
    # credentials
    supabase_url: str | None = None
    supabase_api_key: str | None = None
    openai_api_key: str | None = None
    youtube_api_key: str | None = None
    # scoring
    category_map_path: str | None = None
    scoring_mode: ScoringMode = ScoringMode.BEHAVIORAL
    jitter_amplitude: float = 0.02
    # collaborators
    enrichment_timeout_s: float = ENRICHMENT_TIMEOUT_S
    explanation_model: str = EXPLANATION_MODEL
    telemetry_sample: float = 1.0
    # env conifg
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


def _should_init_services() -> bool:
    flag = os.getenv("RECO_SKIP_SERVICE_INIT", "")
    return flag.strip().lower() not in {"1", "true", "yes"}


def _has(value: str | None) -> bool:
    return bool(value and value.strip())


def _init_core(app: FastAPI) -> None:
    s: Settings = app.state.settings
    app.state.encoder = FeatureEncoder(load_category_map(s.category_map_path))
    app.state.scoring_params = ScoringParams(
        mode=s.scoring_mode, jitter_amplitude=s.jitter_amplitude
    )
    app.state.store = InMemoryRecoStore()
    app.state.explainer = ExplanationComposer(None, timeout_s=s.enrichment_timeout_s)
    app.state.media_lookup = None
    app.state.telemetry = TelemetryLogger(None, None)
    app.state.upload_locks = {}


def _init_external_services(app: FastAPI) -> None:
    s: Settings = app.state.settings

    if _has(s.supabase_url) and _has(s.supabase_api_key):
        from supabase import create_client

        from reco_store.supabase_store import SupabaseRecoStore

        app.state.store = SupabaseRecoStore(create_client(s.supabase_url, s.supabase_api_key))
        app.state.telemetry = TelemetryLogger(
            s.supabase_url, s.supabase_api_key, sample=s.telemetry_sample
        )
    else:
        log.warning("Supabase credentials missing; using the in-memory store")

    if _has(s.openai_api_key):
        from reco_core.llm_client import LlmClient

        app.state.explainer = ExplanationComposer(
            LlmClient(model=s.explanation_model, api_key=s.openai_api_key),
            timeout_s=s.enrichment_timeout_s,
        )
    else:
        log.warning("OPENAI_API_KEY missing; explanations use fallback templates")

    if _has(s.youtube_api_key):
        from reco_media.youtube_client import YouTubeClient

        app.state.media_lookup = YouTubeClient(
            s.youtube_api_key, timeout=s.enrichment_timeout_s
        )
    else:
        log.warning("YOUTUBE_API_KEY missing; video enrichment disabled")


@asynccontextmanager
async def lifespan(app: FastAPI):
    load_dotenv(find_dotenv(), override=False)

    settings = Settings()
    app.state.settings = settings
    _init_core(app)

    # Eager init of external clients
    if _should_init_services():
        _init_external_services(app)
    else:
        log.warning("External service initialization skipped by RECO_SKIP_SERVICE_INIT")

    try:
        yield
    finally:
        media = getattr(app.state, "media_lookup", None)
        if media is not None and hasattr(media, "aclose"):
            await media.aclose()


app = FastAPI(title="RecoEngine API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(DomainError)
async def domain_error_handler(request: Request, exc: DomainError):
    return JSONResponse(
        status_code=exc.status,
        content={"detail": str(exc), "code": exc.code},
    )


@app.get("/health")
def health():
    s = app.state.settings
    return {
        "status": "ok",
        "service": s.app_name,
        "store": getattr(app.state.store, "kind", "unknown"),
        "explanations_llm": app.state.explainer.enabled,
        "media_lookup": app.state.media_lookup is not None,
        "scoring_mode": app.state.scoring_params.mode.value,
    }


@app.get("/")
def read_root():
    return {"status": "ok"}


for r in all_routers:
    app.include_router(r)
