import math
from dataclasses import dataclass
from typing import Any

DEFAULT_COUNT = 9
DEFAULT_MIN = 0
DEFAULT_MAX = 9
DEFAULT_RATE = 10

COUNT_RANGE = (1, 50)
VALUE_RANGE = (-999999, 999999)
RATE_RANGE = (1, 60)

_TRUE_FLAGS = {"1", "true", "yes", "on"}


def _clamp(value: int, low: int, high: int) -> int:
    return max(low, min(high, value))


def parse_int(value: Any, default: int) -> int:
    """
    Converte parâmetro bruto (query string, JSON, CLI) para inteiro.

    Contrato: ausente, vazio ou não numérico resulta em `default`; nunca lança.
    Valores fracionários são truncados.
    """
    if value is None or isinstance(value, bool):
        return default
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if math.isfinite(value) else default
    text = str(value).strip()
    if not text:
        return default
    try:
        return int(text)
    except ValueError:
        pass
    try:
        parsed = float(text)
    except ValueError:
        return default
    return int(parsed) if math.isfinite(parsed) else default


def parse_flag(value: Any, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in _TRUE_FLAGS


@dataclass(frozen=True)
class MatchConfig:
    """Configuração canônica de uma partida (sempre normalizada)."""

    count: int = DEFAULT_COUNT
    min_num: int = DEFAULT_MIN
    max_num: int = DEFAULT_MAX
    rate_per_sec: int = DEFAULT_RATE

    def to_dict(self) -> dict[str, int]:
        return {
            "count": self.count,
            "min": self.min_num,
            "max": self.max_num,
            "rate_per_sec": self.rate_per_sec,
        }

    def with_rate(self, rate: Any) -> "MatchConfig":
        return MatchConfig(
            count=self.count,
            min_num=self.min_num,
            max_num=self.max_num,
            rate_per_sec=normalize_rate(rate, default=self.rate_per_sec),
        )

    @classmethod
    def from_dict(cls, raw: dict[str, Any] | None) -> "MatchConfig":
        raw = raw or {}
        return normalize_config(
            count=raw.get("count"),
            min_num=raw.get("min"),
            max_num=raw.get("max"),
            rate=raw.get("rate_per_sec", raw.get("rate")),
        )


def normalize_rate(rate: Any, default: int = DEFAULT_RATE) -> int:
    return _clamp(parse_int(rate, default), *RATE_RANGE)


def normalize_ticks(ticks: Any, ceiling: int) -> int:
    """Limita pedido de replay em [0, ceiling]; entrada inválida vira 0."""
    return _clamp(parse_int(ticks, 0), 0, ceiling)


def normalize_config(
    count: Any = None,
    min_num: Any = None,
    max_num: Any = None,
    rate: Any = None,
) -> MatchConfig:
    """
    Normaliza configuração bruta para `MatchConfig` canônico.

    Ordem das regras: defaults para ausentes/inválidos, clamp de `count`,
    clamp de faixa, troca de `min`/`max` invertidos e clamp da taxa.
    Contrato: função total, nunca rejeita entrada.
    """
    parsed_count = _clamp(parse_int(count, DEFAULT_COUNT), *COUNT_RANGE)
    low = _clamp(parse_int(min_num, DEFAULT_MIN), *VALUE_RANGE)
    high = _clamp(parse_int(max_num, DEFAULT_MAX), *VALUE_RANGE)
    if low > high:
        low, high = high, low
    return MatchConfig(
        count=parsed_count,
        min_num=low,
        max_num=high,
        rate_per_sec=normalize_rate(rate),
    )
