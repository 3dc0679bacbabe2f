from collections.abc import Mapping
from typing import Any

from core.engine import MatchEngine
from core.match_config import parse_flag
from core.state import GameState

SUPPORTED_ACTIONS = (
    "status",
    "new_game",
    "set_rate",
    "start",
    "stop",
    "reset",
    "tick",
    "catchup",
)


def _reply(engine: MatchEngine, state: GameState, **extra: Any) -> dict[str, Any]:
    payload = state.snapshot(engine.now())
    payload.update(extra)
    return payload


def execute_command(
    engine: MatchEngine,
    state: GameState,
    action: str,
    params: Mapping[str, Any] | None = None,
) -> dict[str, Any]:
    """
    Executa um comando do consumidor sobre o estado da sessão.

    Contrato:
    - resposta sempre contém o snapshot comum mais os campos do comando;
    - transições inválidas no estado atual não são erro (flags `tick`/`catchup`);
    - comando desconhecido devolve `error` junto do snapshot, sem exceção.

    Efeito colateral: altera `state` in-place; persistir é responsabilidade do chamador.
    """
    params = params or {}

    if action == "status":
        return _reply(engine, state)

    if action == "new_game":
        engine.new_game(
            state,
            count=params.get("count"),
            min_num=params.get("min"),
            max_num=params.get("max"),
            rate=params.get("rate"),
        )
        return _reply(engine, state, started=True, mode="new_game")

    if action == "set_rate":
        engine.set_rate(state, params.get("rate"))
        return _reply(engine, state, rate_updated=True)

    if action == "start":
        outcome = engine.start(
            state, reset_leaderboard=parse_flag(params.get("reset_top3"), True)
        )
        return _reply(
            engine,
            state,
            started=True,
            mode="resume",
            reset_top3_applied=outcome.leaderboard_cleared,
        )

    if action == "stop":
        engine.stop(state)
        return _reply(engine, state, stopped=True)

    if action == "reset":
        engine.reset(state)
        return _reply(engine, state, reset=True)

    if action == "tick":
        outcome = engine.tick(state)
        if not outcome.ticked:
            return _reply(engine, state, tick=False)
        return _reply(
            engine,
            state,
            tick=True,
            numbers=outcome.numbers,
            best=outcome.best.to_dict() if outcome.best else None,
            win=outcome.win,
        )

    if action == "catchup":
        result = engine.catchup(state, params.get("ticks"))
        if not result.performed:
            return _reply(engine, state, catchup=False)
        return _reply(
            engine,
            state,
            catchup=True,
            processed=result.processed,
            numbers=result.numbers,
            best=result.best.to_dict() if result.best else None,
            win=result.win,
        )

    return _reply(engine, state, error="Unknown action")
