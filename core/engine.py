import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from core.clock import now_ms, start_clock, stop_clock
from core.generator import default_rng, draw
from core.leaderboard import update_leaderboard
from core.match_config import normalize_config, normalize_ticks
from core.ports import Draw, RandomSource
from core.scoring import StreakScore, score_draw
from core.state import GamePhase, GameState

MAX_CATCHUP_TICKS = 20000

logger = logging.getLogger("random_match.engine")


@dataclass(frozen=True)
class TickOutcome:
    """Resultado de um passo de simulação (`ticked=False` quando não executou)."""

    ticked: bool
    numbers: Draw | None = None
    best: StreakScore | None = None
    win: bool = False


@dataclass(frozen=True)
class CatchUpOutcome:
    performed: bool
    processed: int = 0
    numbers: Draw | None = None
    best: StreakScore | None = None
    win: bool = False


@dataclass(frozen=True)
class StartOutcome:
    started: bool
    leaderboard_cleared: bool


class MatchEngine:
    """
    Orquestra sorteio, pontuação, ranking e vitória sobre um `GameState` externo.

    Decisões de projeto:
    - O motor não guarda estado de partida entre chamadas; cada operação recebe
      e altera o estado da sessão.
    - Entropia e relógio são injetáveis para testes determinísticos.
    - Acesso concorrente ao mesmo estado deve ser serializado pelo chamador.
    """

    def __init__(
        self,
        rng: RandomSource | None = None,
        clock: Callable[[], int] = now_ms,
        max_catchup_ticks: int = MAX_CATCHUP_TICKS,
    ):
        self._rng = rng or default_rng()
        self._clock = clock
        self._max_catchup_ticks = max(
            0, min(MAX_CATCHUP_TICKS, int(max_catchup_ticks))
        )

    def now(self) -> int:
        return self._clock()

    def new_game(
        self,
        state: GameState,
        count: Any = None,
        min_num: Any = None,
        max_num: Any = None,
        rate: Any = None,
    ) -> GameState:
        """Substitui configuração, zera a partida e começa a rodar."""
        state.clear_run()
        state.cfg = normalize_config(
            count=count, min_num=min_num, max_num=max_num, rate=rate
        )
        start_clock(state, self.now())
        logger.debug("Nova partida cfg=%s", state.cfg.to_dict())
        return state

    def start(self, state: GameState, reset_leaderboard: bool = True) -> StartOutcome:
        """
        Retoma partida parada ou vencida.

        Contrato: após vitória o ranking é sempre limpo; após pausa comum só quando
        `reset_leaderboard`; com a partida já rodando é no-op.
        """
        phase = state.phase
        if phase is GamePhase.RUNNING:
            return StartOutcome(started=False, leaderboard_cleared=False)

        cleared = False
        if phase is GamePhase.WON:
            state.leaderboard = []
            state.won = False
            state.win_draw = None
            cleared = True
        elif reset_leaderboard:
            state.leaderboard = []
            cleared = True

        start_clock(state, self.now())
        return StartOutcome(started=True, leaderboard_cleared=cleared)

    def stop(self, state: GameState) -> bool:
        return stop_clock(state, self.now())

    def reset(self, state: GameState) -> GameState:
        stop_clock(state, self.now())
        state.clear_run()
        return state

    def set_rate(self, state: GameState, rate: Any) -> int:
        state.cfg = state.cfg.with_rate(rate)
        return state.cfg.rate_per_sec

    def _step(self, state: GameState) -> TickOutcome:
        cfg = state.cfg
        numbers = draw(cfg, self._rng)
        state.tries += 1
        state.last_draw = numbers

        best = score_draw(numbers)
        state.leaderboard = update_leaderboard(
            state.leaderboard, best, numbers, cfg.count
        )

        win = best.count == cfg.count
        if win:
            state.won = True
            state.win_draw = list(numbers)
            stop_clock(state, self.now())
            logger.info(
                "Combinacao perfeita encontrada tries=%s value=%s count=%s",
                state.tries,
                best.value,
                cfg.count,
            )
        return TickOutcome(ticked=True, numbers=numbers, best=best, win=win)

    def tick(self, state: GameState) -> TickOutcome:
        """Executa um passo; só tem efeito com a partida rodando e não vencida."""
        if state.phase is not GamePhase.RUNNING:
            return TickOutcome(ticked=False)
        return self._step(state)

    def catchup(self, state: GameState, requested_ticks: Any) -> CatchUpOutcome:
        """
        Reproduz vários passos em sequência para compensar tempo sem polling.

        Contrato: pedido limitado ao teto por chamada; interrompe na primeira
        vitória e descarta o restante. Equivale a chamar `tick` repetidamente.
        """
        if state.phase is not GamePhase.RUNNING:
            return CatchUpOutcome(performed=False)

        ticks = normalize_ticks(requested_ticks, self._max_catchup_ticks)
        last = TickOutcome(ticked=False)
        processed = 0
        for _ in range(ticks):
            last = self._step(state)
            processed += 1
            if last.win:
                break

        logger.debug(
            "Catch-up requested=%s processed=%s win=%s",
            requested_ticks,
            processed,
            last.win,
        )
        return CatchUpOutcome(
            performed=True,
            processed=processed,
            numbers=last.numbers,
            best=last.best,
            win=last.win,
        )
