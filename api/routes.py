from collections.abc import Callable
from logging import Logger
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request, Response

from api.deps import resolve_session_id
from core.config import Settings
from core.generator import EntropyError
from core.service import execute_command
from core.store import StateLockTimeout


def _bind_session(request: Request, response: Response, settings: Settings) -> str:
    session_id, is_new = resolve_session_id(request)
    request.state.session_id = session_id
    response.headers["X-Session-ID"] = session_id
    if is_new:
        response.set_cookie(
            key=settings.session_cookie_name,
            value=session_id,
            max_age=settings.session_ttl_seconds,
            httponly=True,
            secure=settings.cookie_secure,
            samesite="lax",
        )
    return session_id


def build_game_router(
    require_api_key_dep: Callable[..., None],
    settings: Settings,
    logger: Logger,
) -> APIRouter:
    """
    Define superfície de comandos da partida (`/api/{action}`) e ciclo da sessão.

    Contrato: cada comando roda sob exclusão mútua da sessão e só persiste o estado
    após concluir; parâmetros chegam crus e são normalizados pelo motor.
    """
    router = APIRouter()

    @router.delete("/api/session")
    def clear_session(
        request: Request,
        response: Response,
        _auth: None = Depends(require_api_key_dep),
    ) -> dict[str, Any]:
        session_id = _bind_session(request, response, settings)
        store = request.app.state.state_store
        try:
            with store.locked(session_id):
                cleared = store.clear(session_id)
        except StateLockTimeout as exc:
            raise HTTPException(status_code=409, detail=str(exc)) from exc
        return {"ok": True, "cleared": cleared}

    @router.api_route("/api/{action}", methods=["GET", "POST"])
    def game_command(
        request: Request,
        response: Response,
        action: str,
        _auth: None = Depends(require_api_key_dep),
    ) -> dict[str, Any]:
        session_id = _bind_session(request, response, settings)
        store = request.app.state.state_store
        engine = request.app.state.engine
        params = dict(request.query_params)

        try:
            with store.locked(session_id):
                state = store.load(session_id)
                reply = execute_command(engine, state, action, params)
                store.save(session_id, state)
        except StateLockTimeout as exc:
            raise HTTPException(status_code=409, detail=str(exc)) from exc
        except EntropyError as exc:
            logger.error(
                "Sorteio abortado request_id=%s session=%s action=%s erro=%s",
                getattr(request.state, "request_id", "-"),
                session_id,
                action,
                exc,
            )
            raise HTTPException(status_code=503, detail=str(exc)) from exc
        except Exception as exc:
            logger.exception(
                "Falha interna no comando session=%s action=%s", session_id, action
            )
            raise HTTPException(
                status_code=500, detail="Erro interno ao executar comando."
            ) from exc

        request.app.state.telemetry.observe_command(action, reply)
        if reply.get("win"):
            logger.info(
                "Vitoria registrada request_id=%s session=%s tries=%s",
                getattr(request.state, "request_id", "-"),
                session_id,
                reply.get("tries"),
            )
        return reply

    return router


def build_health_router(settings: Settings) -> APIRouter:
    """
    Define endpoints de saúde e prontidão operacional.

    Contrato: readiness depende da disponibilidade do backend de estado.
    """
    router = APIRouter()

    @router.get("/healthz")
    def health_check():
        return {"status": "ok", "service": "Random Match API"}

    @router.get("/readyz")
    def readiness_check(request: Request):
        store_ok, store_msg = request.app.state.state_store.healthcheck()
        if not store_ok:
            raise HTTPException(
                status_code=503, detail=f"Estado de sessoes indisponivel: {store_msg}"
            )
        return {
            "status": "ready",
            "state_backend": settings.state_backend,
            "state_store": store_msg,
        }

    return router


def build_metrics_router(
    require_metrics_api_key_dep: Callable[..., None],
    settings: Settings,
) -> APIRouter:
    """
    Define endpoint de observabilidade com autenticação e chave de habilitação.

    Contrato: responde 404 quando a exposição de métricas estiver desativada.
    """
    router = APIRouter()

    @router.get("/metrics")
    def metrics(
        request: Request,
        _auth: None = Depends(require_metrics_api_key_dep),
    ):
        if not settings.enable_metrics_endpoint:
            raise HTTPException(
                status_code=404, detail="Endpoint de metricas desabilitado."
            )
        payload = request.app.state.telemetry.snapshot()
        store = getattr(request.app.state, "state_store", None)
        if store is not None and hasattr(store, "snapshot_metrics"):
            payload["state_store"] = store.snapshot_metrics()
        return payload

    return router
