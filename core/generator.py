import logging
import random

from core.match_config import MatchConfig
from core.ports import Draw, RandomSource

logger = logging.getLogger("random_match.generator")


class EntropyError(RuntimeError):
    """Fonte de aleatoriedade indisponível; nenhum sorteio válido pode ser produzido."""


def default_rng() -> RandomSource:
    """Fonte padrão baseada em `os.urandom`, imprevisível para o cliente."""
    return random.SystemRandom()


def draw(cfg: MatchConfig, rng: RandomSource) -> Draw:
    """
    Sorteia `cfg.count` inteiros independentes e uniformes em [min, max].

    Contrato: sem efeitos colaterais além do consumo de entropia; falha da fonte
    é propagada como `EntropyError`.
    """
    try:
        return [rng.randint(cfg.min_num, cfg.max_num) for _ in range(cfg.count)]
    except (OSError, NotImplementedError) as exc:
        logger.error("Fonte de entropia indisponivel: %s", exc)
        raise EntropyError(f"Falha na fonte de aleatoriedade: {exc}") from exc
