from contextlib import AbstractContextManager
from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from core.state import GameState

Draw = list[int]


class RandomSource(Protocol):
    """Porta de entropia usada pelo gerador de sorteios."""

    def randint(self, a: int, b: int) -> int:
        """Retorna inteiro uniforme no intervalo fechado [a, b]."""


class StateStore(Protocol):
    """Porta de persistência do estado de jogo por sessão."""

    def load(self, session_id: str) -> "GameState":
        """Devolve cópia independente do estado (default quando inexistente)."""

    def save(self, session_id: str, state: "GameState") -> None:
        """Persiste estado após o comando terminar."""

    def clear(self, session_id: str) -> bool:
        """Descarta estado da sessão; informa se havia algo armazenado."""

    def locked(self, session_id: str) -> AbstractContextManager[Any]:
        """Exclusão mútua para comandos sobre a mesma sessão."""

    def healthcheck(self) -> tuple[bool, str]:
        """Informa disponibilidade do backend."""
