import copy
import importlib
import json
import logging
import threading
import time
import uuid
from collections.abc import Iterator
from contextlib import contextmanager

from core.state import GameState

logger = logging.getLogger("random_match.store")


class StateLockTimeout(RuntimeError):
    """Outro comando da mesma sessão ainda está em execução."""


class BaseStateStore:
    """Define contrato de persistência e exclusão mútua por sessão."""

    def load(self, session_id: str) -> GameState:
        raise NotImplementedError

    def save(self, session_id: str, state: GameState) -> None:
        raise NotImplementedError

    def clear(self, session_id: str) -> bool:
        raise NotImplementedError

    def locked(self, session_id: str):
        raise NotImplementedError

    def healthcheck(self) -> tuple[bool, str]:
        raise NotImplementedError

    def snapshot_metrics(self) -> dict[str, object]:
        return {}


class MemoryStateStore(BaseStateStore):
    """
    Backend local para execução single-node e desenvolvimento.

    Contrato: o lock de uma sessão só é descartado quando nenhum comando o usa ou
    aguarda e a sessão não tem mais estado armazenado.
    """

    def __init__(
        self,
        max_sessions: int = 10000,
        ttl_seconds: int = 86400,
        lock_timeout_seconds: float = 30.0,
    ):
        self._lock = threading.Lock()
        self._states: dict[str, GameState] = {}
        self._session_locks: dict[str, threading.Lock] = {}
        self._lock_users: dict[str, int] = {}
        self._last_seen: dict[str, float] = {}
        self._max_sessions = max(1, int(max_sessions))
        self._ttl_seconds = max(1, int(ttl_seconds))
        self._lock_timeout_seconds = float(lock_timeout_seconds)

    def _touch(self, session_id: str) -> None:
        self._last_seen[session_id] = time.time()

    def _release_lock_if_idle(self, session_id: str) -> None:
        if self._lock_users.get(session_id, 0) > 0:
            return
        self._lock_users.pop(session_id, None)
        if session_id not in self._states:
            self._session_locks.pop(session_id, None)

    def _drop(self, session_id: str) -> None:
        self._states.pop(session_id, None)
        self._last_seen.pop(session_id, None)
        self._release_lock_if_idle(session_id)

    def _is_expired(self, session_id: str, now: float) -> bool:
        seen = self._last_seen.get(session_id)
        return seen is not None and now - seen > self._ttl_seconds

    def _evict_if_needed(self) -> None:
        now = time.time()
        expired = [key for key in self._last_seen if self._is_expired(key, now)]
        for key in expired:
            self._drop(key)

        if len(self._states) <= self._max_sessions:
            return
        # Contém crescimento de memória sob alta cardinalidade de sessões.
        overflow = len(self._states) - self._max_sessions
        oldest = sorted(self._last_seen.items(), key=lambda item: item[1])[:overflow]
        for key, _ in oldest:
            self._drop(key)

    def load(self, session_id: str) -> GameState:
        with self._lock:
            if self._is_expired(session_id, time.time()):
                self._drop(session_id)
            state = self._states.get(session_id)
            if state is None:
                return GameState()
            self._touch(session_id)
            return copy.deepcopy(state)

    def save(self, session_id: str, state: GameState) -> None:
        with self._lock:
            self._states[session_id] = copy.deepcopy(state)
            self._touch(session_id)
            self._evict_if_needed()

    def clear(self, session_id: str) -> bool:
        with self._lock:
            existed = session_id in self._states
            self._drop(session_id)
            return existed

    @contextmanager
    def locked(self, session_id: str) -> Iterator[None]:
        with self._lock:
            session_lock = self._session_locks.setdefault(session_id, threading.Lock())
            self._lock_users[session_id] = self._lock_users.get(session_id, 0) + 1
        try:
            if not session_lock.acquire(timeout=self._lock_timeout_seconds):
                raise StateLockTimeout(
                    f"Sessao ocupada por outro comando: {session_id}"
                )
            try:
                yield
            finally:
                session_lock.release()
        finally:
            with self._lock:
                self._lock_users[session_id] -= 1
                self._release_lock_if_idle(session_id)

    def healthcheck(self) -> tuple[bool, str]:
        return True, "memory_ok"

    def snapshot_metrics(self) -> dict[str, object]:
        with self._lock:
            return {
                "backend": "memory",
                "sessions": len(self._states),
                "max_sessions": self._max_sessions,
            }


class RedisStateStore(BaseStateStore):
    """Backend distribuído com Redis para compartilhar sessões entre réplicas."""

    def __init__(
        self,
        redis_url: str | None = None,
        prefix: str = "random_match",
        ttl_seconds: int = 86400,
        lock_timeout_seconds: float = 30.0,
        client=None,
    ):
        if client is None:
            try:
                redis_module = importlib.import_module("redis")
                Redis = getattr(redis_module, "Redis")
            except Exception as exc:  # pragma: no cover
                raise RuntimeError("Pacote redis nao disponivel.") from exc
            client = Redis.from_url(redis_url, decode_responses=True)
            client.ping()
        self._client = client
        self._prefix = (prefix or "random_match").strip()
        self._ttl_seconds = max(1, int(ttl_seconds))
        self._lock_timeout_seconds = float(lock_timeout_seconds)

    def _state_key(self, session_id: str) -> str:
        return f"{self._prefix}:state:{session_id}"

    def _lock_key(self, session_id: str) -> str:
        return f"{self._prefix}:lock:{session_id}"

    def load(self, session_id: str) -> GameState:
        raw = self._client.get(self._state_key(session_id))
        if not raw:
            return GameState()
        try:
            return GameState.from_dict(json.loads(raw))
        except (ValueError, TypeError, KeyError) as exc:
            logger.warning(
                "Estado corrompido descartado session=%s erro=%s", session_id, exc
            )
            return GameState()

    def save(self, session_id: str, state: GameState) -> None:
        self._client.set(
            self._state_key(session_id),
            json.dumps(state.to_dict()),
            ex=self._ttl_seconds,
        )

    def clear(self, session_id: str) -> bool:
        return bool(self._client.delete(self._state_key(session_id)))

    def _acquire(self, key: str, token: str) -> bool:
        deadline = time.monotonic() + self._lock_timeout_seconds
        expire_seconds = max(1, int(self._lock_timeout_seconds * 2))
        while True:
            if self._client.set(key, token, nx=True, ex=expire_seconds):
                return True
            if time.monotonic() >= deadline:
                return False
            time.sleep(0.01)

    def _release(self, key: str, token: str) -> None:
        """Libera lock apenas quando o token ainda pertence a este comando."""
        try:
            if self._client.get(key) == token:
                self._client.delete(key)
        except Exception as exc:
            logger.warning("Falha ao liberar lock de sessao no Redis: %s", exc)

    @contextmanager
    def locked(self, session_id: str) -> Iterator[None]:
        key = self._lock_key(session_id)
        token = uuid.uuid4().hex
        if not self._acquire(key, token):
            raise StateLockTimeout(f"Sessao ocupada por outro comando: {session_id}")
        try:
            yield
        finally:
            self._release(key, token)

    def healthcheck(self) -> tuple[bool, str]:
        try:
            self._client.ping()
            return True, "redis_ok"
        except Exception as exc:
            return False, f"redis_unavailable: {exc}"

    def snapshot_metrics(self) -> dict[str, object]:
        return {"backend": "redis", "prefix": self._prefix}


def build_state_store(
    backend: str,
    redis_url: str | None,
    strict_redis: bool = False,
    prefix: str = "random_match",
    ttl_seconds: int = 86400,
    max_sessions: int = 10000,
    lock_timeout_seconds: float = 30.0,
) -> BaseStateStore:
    """
    Resolve backend de estado conforme configuração e política de fallback.

    Efeito colateral: pode falhar startup em modo estrito para evitar operação sem Redis.
    """
    selected = backend.strip().lower()
    if selected == "redis":
        if not redis_url:
            if strict_redis:
                raise RuntimeError("RANDOM_MATCH_REDIS_URL obrigatoria para estado redis.")
            logger.warning("Estado Redis selecionado sem REDIS_URL. Usando memoria.")
        else:
            try:
                store = RedisStateStore(
                    redis_url,
                    prefix=prefix,
                    ttl_seconds=ttl_seconds,
                    lock_timeout_seconds=lock_timeout_seconds,
                )
                logger.info("Estado de sessoes em Redis ativo.")
                return store
            except Exception as exc:
                if strict_redis:
                    raise RuntimeError(
                        f"Falha ao inicializar estado Redis: {exc}"
                    ) from exc
                logger.warning(
                    "Falha ao inicializar estado Redis: %s. Usando memoria.", exc
                )
    elif strict_redis:
        raise RuntimeError(
            "Em modo estrito, RANDOM_MATCH_STATE_BACKEND deve ser 'redis'."
        )
    else:
        logger.info("Estado de sessoes em memoria ativo.")

    return MemoryStateStore(
        max_sessions=max_sessions,
        ttl_seconds=ttl_seconds,
        lock_timeout_seconds=lock_timeout_seconds,
    )
