import os
from dataclasses import dataclass


def _as_bool(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    """Representa contrato único de configuração operacional da aplicação."""

    app_env: str
    require_api_key: bool
    api_key: str
    metrics_api_key: str

    state_backend: str
    redis_url: str
    redis_prefix: str
    require_redis_state: bool
    session_ttl_seconds: int
    max_sessions: int
    lock_timeout_seconds: float

    session_cookie_name: str
    cookie_secure: bool
    cors_allowed_origins: list[str]
    enable_metrics_endpoint: bool


def load_settings() -> Settings:
    """
    Carrega configuração de ambiente, normaliza tipos e aplica defaults seguros.

    Efeito colateral: consolida políticas de segurança e limites em um único objeto.
    """
    app_env = os.getenv("RANDOM_MATCH_ENV", "dev").strip().lower()
    api_key = os.getenv("RANDOM_MATCH_API_KEY", "").strip()
    metrics_api_key = os.getenv("RANDOM_MATCH_METRICS_API_KEY", api_key).strip()

    require_api_key = _as_bool(
        os.getenv("RANDOM_MATCH_REQUIRE_API_KEY"), default=(app_env == "prod")
    )
    require_redis_state = _as_bool(
        os.getenv("RANDOM_MATCH_REQUIRE_REDIS_STATE"), default=False
    )

    cors_allowed_origins = [
        origin.strip()
        for origin in os.getenv(
            "RANDOM_MATCH_CORS_ALLOWED_ORIGINS",
            "http://localhost:3000,http://127.0.0.1:3000",
        ).split(",")
        if origin.strip()
    ]

    return Settings(
        app_env=app_env,
        require_api_key=require_api_key,
        api_key=api_key,
        metrics_api_key=metrics_api_key,
        state_backend=os.getenv("RANDOM_MATCH_STATE_BACKEND", "memory")
        .strip()
        .lower(),
        redis_url=os.getenv("RANDOM_MATCH_REDIS_URL", "").strip(),
        redis_prefix=os.getenv("RANDOM_MATCH_REDIS_PREFIX", "random_match").strip()
        or "random_match",
        require_redis_state=require_redis_state,
        session_ttl_seconds=max(
            60, int(os.getenv("RANDOM_MATCH_SESSION_TTL_SECONDS", "86400"))
        ),
        max_sessions=max(1, int(os.getenv("RANDOM_MATCH_MAX_SESSIONS", "10000"))),
        lock_timeout_seconds=max(
            0.1, float(os.getenv("RANDOM_MATCH_LOCK_TIMEOUT_SECONDS", "30"))
        ),
        session_cookie_name=os.getenv(
            "RANDOM_MATCH_SESSION_COOKIE_NAME", "random_match_sid"
        ).strip()
        or "random_match_sid",
        cookie_secure=_as_bool(
            os.getenv("RANDOM_MATCH_COOKIE_SECURE"), default=(app_env == "prod")
        ),
        cors_allowed_origins=cors_allowed_origins,
        enable_metrics_endpoint=_as_bool(
            os.getenv("RANDOM_MATCH_ENABLE_METRICS_ENDPOINT"), default=True
        ),
    )
