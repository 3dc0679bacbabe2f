from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

from core.scoring import StreakScore

LEADERBOARD_SIZE = 30


@dataclass
class LeaderboardEntry:
    """Melhor quase-acerto registrado para um par (count, value)."""

    count: int
    value: int
    combo: list[int] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {"count": self.count, "value": self.value, "combo": list(self.combo)}

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "LeaderboardEntry":
        return cls(
            count=int(raw["count"]),
            value=int(raw["value"]),
            combo=[int(n) for n in raw.get("combo") or []],
        )


def _rank_key(entry: LeaderboardEntry) -> tuple[int, int]:
    return (entry.count, entry.value)


def update_leaderboard(
    entries: list[LeaderboardEntry],
    candidate: StreakScore,
    combo: Sequence[int],
    n: int,
    size: int = LEADERBOARD_SIZE,
) -> list[LeaderboardEntry]:
    """
    Registra quase-acerto no ranking e devolve a lista ordenada e truncada.

    Contrato:
    - acerto perfeito (`candidate.count >= n`) nunca entra no ranking;
    - par (count, value) já presente tem apenas o `combo` substituído;
    - ordenação decrescente por count e, no empate, por value;
    - no máximo `size` entradas.
    """
    if candidate.count >= n:
        return entries

    for entry in entries:
        if entry.count == candidate.count and entry.value == candidate.value:
            entry.combo = list(combo)
            break
    else:
        entries.append(
            LeaderboardEntry(
                count=candidate.count, value=candidate.value, combo=list(combo)
            )
        )

    entries.sort(key=_rank_key, reverse=True)
    del entries[size:]
    return entries
