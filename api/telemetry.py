import math
import threading
from collections import Counter, defaultdict
from dataclasses import dataclass, field


@dataclass
class _EndpointMetrics:
    """Acumula contadores e distribuição de latência para um endpoint lógico."""

    count: int = 0
    error_count: int = 0
    latency_ms: list[float] = field(default_factory=list)

    def observe(self, elapsed_ms: float, is_error: bool) -> None:
        self.count += 1
        if is_error:
            self.error_count += 1
        self.latency_ms.append(float(elapsed_ms))
        if len(self.latency_ms) > 5000:
            self.latency_ms = self.latency_ms[-5000:]

    def snapshot(self) -> dict[str, float | int]:
        if not self.latency_ms:
            return {
                "count": self.count,
                "error_count": self.error_count,
                "error_rate": 0.0,
                "latency_avg_ms": 0.0,
                "latency_p95_ms": 0.0,
            }
        sorted_lat = sorted(self.latency_ms)
        p95_idx = min(
            len(sorted_lat) - 1, max(0, math.ceil(len(sorted_lat) * 0.95) - 1)
        )
        return {
            "count": self.count,
            "error_count": self.error_count,
            "error_rate": float(self.error_count / self.count) if self.count else 0.0,
            "latency_avg_ms": float(sum(self.latency_ms) / len(self.latency_ms)),
            "latency_p95_ms": float(sorted_lat[p95_idx]),
        }


class InMemoryTelemetry:
    """
    Mantém métricas operacionais em memória para inspeção rápida da API.

    Efeito colateral: métricas são voláteis e reiniciam com o processo.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._endpoints: dict[str, _EndpointMetrics] = defaultdict(_EndpointMetrics)
        self._commands: Counter[str] = Counter()
        self._ticks_processed = 0
        self._wins = 0

    def observe_http(self, path: str, status_code: int, elapsed_ms: float) -> None:
        endpoint = path or "unknown"
        with self._lock:
            self._endpoints[endpoint].observe(
                elapsed_ms=elapsed_ms, is_error=(status_code >= 400)
            )

    def observe_command(self, action: str, reply: dict[str, object]) -> None:
        """Contabiliza comando executado e os passos de simulação que ele gerou."""
        if reply.get("catchup"):
            ticks = int(reply.get("processed") or 0)
        elif reply.get("tick"):
            ticks = 1
        else:
            ticks = 0
        with self._lock:
            self._commands[action if "error" not in reply else "unknown"] += 1
            self._ticks_processed += ticks
            if ticks and reply.get("win"):
                self._wins += 1

    def snapshot(self) -> dict[str, object]:
        with self._lock:
            endpoints = {k: v.snapshot() for k, v in sorted(self._endpoints.items())}
            return {
                "service": "random_match",
                "endpoints": endpoints,
                "commands": dict(sorted(self._commands.items())),
                "simulation": {
                    "ticks_processed_total": self._ticks_processed,
                    "wins_total": self._wins,
                },
            }
