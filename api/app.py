import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.deps import require_api_key_factory, require_metrics_api_key_factory
from api.middlewares.request_context import register_request_context_middleware
from api.routes import build_game_router, build_health_router, build_metrics_router
from api.telemetry import InMemoryTelemetry
from core.config import load_settings
from core.engine import MatchEngine
from core.store import build_state_store

app = FastAPI(
    title="Random Match API",
    description="Simulacao de sorteios repetidos com ranking de quase-acertos",
    version="1.0.0",
)
logger = logging.getLogger("random_match.api")
settings = load_settings()
app.state.settings = settings

if settings.require_api_key and not settings.api_key:
    raise RuntimeError("RANDOM_MATCH_API_KEY obrigatoria neste ambiente.")

app.state.state_store = build_state_store(
    backend=settings.state_backend,
    redis_url=settings.redis_url or None,
    strict_redis=settings.require_redis_state,
    prefix=settings.redis_prefix,
    ttl_seconds=settings.session_ttl_seconds,
    max_sessions=settings.max_sessions,
    lock_timeout_seconds=settings.lock_timeout_seconds,
)
app.state.engine = MatchEngine()
app.state.telemetry = InMemoryTelemetry()

register_request_context_middleware(app=app, logger=logger)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_allowed_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "DELETE"],
    allow_headers=["X-API-Key", "Content-Type", "X-Request-ID", "X-Session-ID"],
    expose_headers=["X-Request-ID", "X-Session-ID"],
)

require_api_key = require_api_key_factory(settings)
require_metrics_api_key = require_metrics_api_key_factory(settings)

app.include_router(
    build_game_router(
        require_api_key_dep=require_api_key,
        settings=settings,
        logger=logger,
    )
)
app.include_router(
    build_metrics_router(
        require_metrics_api_key_dep=require_metrics_api_key, settings=settings
    )
)
app.include_router(build_health_router(settings=settings))
