from collections import Counter
from collections.abc import Sequence
from dataclasses import dataclass


@dataclass(frozen=True)
class StreakScore:
    """Maior repetição de um mesmo valor dentro de um sorteio."""

    count: int
    value: int

    def to_dict(self) -> dict[str, int]:
        return {"count": self.count, "value": self.value}


def score_draw(numbers: Sequence[int]) -> StreakScore:
    """
    Calcula a sequência mais longa de valores iguais no sorteio.

    Desempate: entre valores com a mesma frequência máxima vence o maior valor.
    Contrato: exige sorteio não vazio.
    """
    if not numbers:
        raise ValueError("Sorteio vazio nao pode ser pontuado.")
    freq = Counter(int(n) for n in numbers)
    value, count = max(freq.items(), key=lambda item: (item[1], item[0]))
    return StreakScore(count=count, value=value)
