from __future__ import annotations

from typing import Dict, List


class StoreMetrics:
    def __init__(self) -> None:
        self.operation_counts: Dict[str, int] = {
            "save": 0,
            "get": 0,
        }
        self.outcome_counts: Dict[str, int] = {
            "saved": 0,
            "skipped": 0,
            "hit": 0,
            "miss": 0,
            "error": 0,
        }
        self.index_creations: int = 0
        self.latencies_ms: List[float] = []

    def record_operation(self, operation: str, outcome: str) -> None:
        self.operation_counts[operation] = self.operation_counts.get(operation, 0) + 1
        self.outcome_counts[outcome] = self.outcome_counts.get(outcome, 0) + 1

    def record_index_creation(self) -> None:
        self.index_creations += 1

    def record_latency(self, latency_ms: float) -> None:
        self.latencies_ms.append(latency_ms)

    def p95_latency_ms(self) -> float:
        if not self.latencies_ms:
            return 0.0
        sorted_samples = sorted(self.latencies_ms)
        k = int(0.95 * (len(sorted_samples) - 1))
        return float(sorted_samples[k])

    def summary(self) -> Dict[str, float | int]:
        return {
            "index_creations": self.index_creations,
            "p95_latency_ms": self.p95_latency_ms(),
            **{f"op_{name}": count for name, count in self.operation_counts.items()},
            **self.outcome_counts,
        }
