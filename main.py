import argparse
import logging
import sys
from pathlib import Path

import pandas as pd
import uvicorn

from core.engine import MAX_CATCHUP_TICKS, MatchEngine
from core.formatter import format_draw, format_elapsed
from core.state import GameState

logger = logging.getLogger("random_match.main")


def run_simulation(
    ticks: int,
    count: int | None = None,
    min_num: int | None = None,
    max_num: int | None = None,
    rate: int | None = None,
    engine: MatchEngine | None = None,
) -> GameState:
    """Executa partida offline em lotes de catch-up até `ticks` passos ou vitória."""
    engine = engine or MatchEngine()
    state = GameState()
    engine.new_game(state, count=count, min_num=min_num, max_num=max_num, rate=rate)

    remaining = max(0, int(ticks))
    while remaining > 0 and state.running:
        batch = min(MAX_CATCHUP_TICKS, remaining)
        outcome = engine.catchup(state, batch)
        remaining -= outcome.processed
        if outcome.win or outcome.processed == 0:
            break

    engine.stop(state)
    return state


def leaderboard_frame(state: GameState) -> pd.DataFrame:
    """Tabela do ranking no formato exportado pelo CLI."""
    rows = [
        {
            "rank": idx,
            "count": entry.count,
            "value": entry.value,
            "combo": format_draw(entry.combo),
        }
        for idx, entry in enumerate(state.leaderboard, start=1)
    ]
    return pd.DataFrame(rows, columns=["rank", "count", "value", "combo"])


def parse_args():
    """Define contrato de argumentos do CLI e fallback para modo servidor."""
    parser = argparse.ArgumentParser(
        description="Simulacao de sorteios repetidos com ranking de quase-acertos"
    )
    parser.add_argument("--serve", action="store_true", help="Executa API FastAPI")
    parser.add_argument(
        "--simulate", action="store_true", help="Executa partida offline"
    )
    parser.add_argument("--ticks", type=int, default=10000)
    parser.add_argument("--count", type=int)
    parser.add_argument("--min", dest="min_num", type=int)
    parser.add_argument("--max", dest="max_num", type=int)
    parser.add_argument("--rate", type=int)
    parser.add_argument("--csv", type=Path, help="Exporta ranking em CSV")
    if len(sys.argv) == 1:
        return parser.parse_args(["--serve"])
    return parser.parse_args()


def run_cli(args):
    """Orquestra simulação offline no modo terminal conforme argumentos."""
    if not args.simulate:
        print("Use --simulate para rodar uma partida ou --serve para subir a API.")
        return

    state = run_simulation(
        ticks=args.ticks,
        count=args.count,
        min_num=args.min_num,
        max_num=args.max_num,
        rate=args.rate,
    )
    cfg = state.cfg
    print(
        f"\nConfig: count={cfg.count} faixa=[{cfg.min_num}, {cfg.max_num}] "
        f"rate={cfg.rate_per_sec}/s"
    )
    print(f"Tentativas: {state.tries}  Tempo: {format_elapsed(state.elapsed_ms)}")
    print(f"Ultimo sorteio: {format_draw(state.last_draw)}")
    if state.won:
        print(f"VITORIA: {format_draw(state.win_draw)}")

    board = leaderboard_frame(state)
    if board.empty:
        print("Ranking vazio.")
    else:
        print(board.to_string(index=False))

    if args.csv:
        args.csv.parent.mkdir(parents=True, exist_ok=True)
        board.to_csv(args.csv, index=False)
        print(f"Ranking exportado: {args.csv}")


if __name__ == "__main__":
    args = parse_args()
    if args.serve:
        uvicorn.run("api.app:app", host="0.0.0.0", port=8000, reload=False)
    else:
        try:
            run_cli(args)
        except Exception:
            logger.exception("Falha na execucao do CLI")
            raise
