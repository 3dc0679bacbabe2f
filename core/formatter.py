from collections.abc import Sequence


def format_draw(numbers: Sequence[int] | None) -> str:
    """Converte sorteio para representação textual padrão do CLI."""
    if not numbers:
        return "-"
    return " - ".join(str(int(n)) for n in numbers)


def format_elapsed(elapsed_ms: int) -> str:
    total_seconds, millis = divmod(max(0, int(elapsed_ms)), 1000)
    hours, rest = divmod(total_seconds, 3600)
    minutes, seconds = divmod(rest, 60)
    return f"{hours:02d}:{minutes:02d}:{seconds:02d}.{millis:03d}"
