import re
import uuid
from typing import Callable

from fastapi import Header, HTTPException, Request

_SESSION_ID_RE = re.compile(r"^[A-Za-z0-9_-]{8,64}$")


def resolve_session_id(request: Request) -> tuple[str, bool]:
    """
    Resolve identificador da sessão dona do estado de jogo.

    Contrato:
    - prioriza header `X-Session-ID` e depois o cookie de sessão;
    - identificador ausente ou fora do formato gera um novo id;
    - retorna `(session_id, is_new)` para que a rota emita o cookie quando necessário.
    """
    settings = getattr(request.app.state, "settings", None)
    cookie_name = getattr(settings, "session_cookie_name", "random_match_sid")
    candidate = request.headers.get("x-session-id") or request.cookies.get(cookie_name)
    if candidate and _SESSION_ID_RE.match(candidate):
        return candidate, False
    return uuid.uuid4().hex, True


def require_api_key_factory(settings) -> Callable:
    """
    Cria dependência de autenticação para os comandos de jogo.

    Contrato: quando `require_api_key` estiver desabilitado, a validação é bypassada;
    caso contrário, rejeita credencial ausente ou inválida com 401.
    """

    def require_api_key(
        x_api_key: str | None = Header(default=None, alias="X-API-Key")
    ) -> None:
        if not settings.require_api_key:
            return
        if x_api_key != settings.api_key:
            raise HTTPException(status_code=401, detail="Nao autorizado.")

    return require_api_key


def require_metrics_api_key_factory(settings) -> Callable:
    """
    Cria dependência de autenticação para endpoints de observabilidade.

    Contrato: protege métricas operacionais com chave dedicada para reduzir exposição.
    """

    def require_metrics_api_key(
        x_api_key: str | None = Header(default=None, alias="X-API-Key")
    ) -> None:
        if not settings.require_api_key:
            return
        if not settings.metrics_api_key:
            raise HTTPException(
                status_code=500, detail="Metrics API key nao configurada."
            )
        if x_api_key != settings.metrics_api_key:
            raise HTTPException(status_code=401, detail="Nao autorizado para metricas.")

    return require_metrics_api_key
