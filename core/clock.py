import time
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from core.state import GameState


def now_ms() -> int:
    return int(round(time.time() * 1000))


def elapsed_ms(state: "GameState", now: int) -> int:
    """Tempo acumulado mais o trecho corrente quando a partida está rodando."""
    total = state.elapsed_ms
    if state.running and state.start_ms is not None:
        total += max(0, now - state.start_ms)
    return total


def start_clock(state: "GameState", now: int) -> bool:
    """Inicia contagem; no-op se já estiver rodando. Retorna se houve transição."""
    if state.running:
        return False
    state.running = True
    state.start_ms = now
    return True


def stop_clock(state: "GameState", now: int) -> bool:
    """
    Congela tempo acumulado e encerra contagem.

    Contrato: no-op quando parado; o delta negativo (relógio recuou) é ignorado,
    mantendo o tempo monotônico.
    """
    if not state.running:
        state.start_ms = None
        return False
    if state.start_ms is not None:
        state.elapsed_ms += max(0, now - state.start_ms)
    state.running = False
    state.start_ms = None
    return True
