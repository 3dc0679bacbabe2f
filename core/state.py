from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from core.clock import elapsed_ms
from core.leaderboard import LEADERBOARD_SIZE, LeaderboardEntry
from core.match_config import MatchConfig, parse_flag, parse_int


class GamePhase(str, Enum):
    SETUP = "setup"
    RUNNING = "running"
    STOPPED = "stopped"
    WON = "won"


def _as_draw(value: Any) -> list[int] | None:
    if value is None:
        return None
    return [int(n) for n in value]


@dataclass
class GameState:
    """
    Estado completo de uma partida, pertencente a uma única sessão.

    Invariantes: `start_ms` só é definido enquanto `running`; `won` implica
    `running` falso.
    """

    cfg: MatchConfig = field(default_factory=MatchConfig)
    tries: int = 0
    elapsed_ms: int = 0
    start_ms: int | None = None
    running: bool = False
    last_draw: list[int] | None = None
    leaderboard: list[LeaderboardEntry] = field(default_factory=list)
    won: bool = False
    win_draw: list[int] | None = None

    @property
    def phase(self) -> GamePhase:
        if self.won:
            return GamePhase.WON
        if self.running:
            return GamePhase.RUNNING
        if self.tries == 0 and self.elapsed_ms == 0 and self.last_draw is None:
            return GamePhase.SETUP
        return GamePhase.STOPPED

    def clear_run(self) -> None:
        """Zera progresso da partida mantendo a configuração."""
        self.tries = 0
        self.elapsed_ms = 0
        self.start_ms = None
        self.running = False
        self.last_draw = None
        self.leaderboard = []
        self.won = False
        self.win_draw = None

    def snapshot(self, now_ms: int) -> dict[str, Any]:
        """Campos comuns devolvidos ao consumidor em toda resposta."""
        return {
            "ok": True,
            "cfg": self.cfg.to_dict(),
            "running": self.running,
            "won": self.won,
            "tries": self.tries,
            "elapsed_ms": elapsed_ms(self, now_ms),
            "last_numbers": _as_draw(self.last_draw),
            "top3": [entry.to_dict() for entry in self.leaderboard],
            "win_numbers": _as_draw(self.win_draw),
        }

    def to_dict(self) -> dict[str, Any]:
        """Layout persistido (inclui `start_ms`, ausente do snapshot)."""
        return {
            "cfg": self.cfg.to_dict(),
            "tries": self.tries,
            "elapsed_ms": self.elapsed_ms,
            "start_ms": self.start_ms,
            "running": self.running,
            "last_draw": _as_draw(self.last_draw),
            "leaderboard": [entry.to_dict() for entry in self.leaderboard],
            "won": self.won,
            "win_draw": _as_draw(self.win_draw),
        }

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "GameState":
        won = bool(raw.get("won"))
        running = (
            bool(raw.get("running")) and raw.get("start_ms") is not None and not won
        )
        return cls(
            cfg=MatchConfig.from_dict(raw.get("cfg")),
            tries=max(0, parse_int(raw.get("tries"), 0)),
            elapsed_ms=max(0, parse_int(raw.get("elapsed_ms"), 0)),
            start_ms=parse_int(raw.get("start_ms"), 0) if running else None,
            running=running,
            last_draw=_as_draw(raw.get("last_draw")),
            leaderboard=[
                LeaderboardEntry.from_dict(item)
                for item in raw.get("leaderboard") or []
            ][:LEADERBOARD_SIZE],
            won=won,
            win_draw=_as_draw(raw.get("win_draw")),
        )

    @classmethod
    def from_snapshot(cls, payload: dict[str, Any], now_ms: int) -> "GameState":
        """
        Reconstrói estado a partir do snapshot público.

        Contrato: o tempo acumulado do snapshot vira `elapsed_ms` e, se a partida
        estava rodando, o relógio recomeça em `now_ms`.
        """
        won = parse_flag(payload.get("won"), False)
        running = parse_flag(payload.get("running"), False) and not won
        return cls(
            cfg=MatchConfig.from_dict(payload.get("cfg")),
            tries=max(0, parse_int(payload.get("tries"), 0)),
            elapsed_ms=max(0, parse_int(payload.get("elapsed_ms"), 0)),
            start_ms=now_ms if running else None,
            running=running,
            last_draw=_as_draw(payload.get("last_numbers")),
            leaderboard=[
                LeaderboardEntry.from_dict(item) for item in payload.get("top3") or []
            ][:LEADERBOARD_SIZE],
            won=won,
            win_draw=_as_draw(payload.get("win_numbers")),
        )
