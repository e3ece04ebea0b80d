from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional

from ollcube.storage.store import OLLStore


@dataclass
class CaseMetrics:
    case_id: str
    attempts: int = 0
    improvements: int = 0
    completions: int = 0
    algorithms: set = field(default_factory=set)
    names: list = field(default_factory=list)
    classifications: set = field(default_factory=set)

    @property
    def improvement_rate(self) -> float:
        return self.improvements / self.attempts if self.attempts else 0.0

    @property
    def completion_rate(self) -> float:
        return self.completions / self.attempts if self.attempts else 0.0

    def is_demotion_candidate(self, min_attempts: int = 3, max_improvement_rate: float = 0.2) -> bool:
        """Finisher with no completion and a low improvement rate after enough attempts."""
        return (
            "finisher" in self.classifications
            and self.attempts >= min_attempts
            and self.completions == 0
            and self.improvement_rate < max_improvement_rate
        )


def summarize_metrics(store: OLLStore, limit: Optional[int] = None) -> List[CaseMetrics]:
    """Aggregate recorded attempts per case, most completions then most improvements first."""
    stats: dict[str, CaseMetrics] = {}
    for record in store.iter_metrics(limit):
        key = str(record.get("case_id", "unknown"))
        entry = stats.setdefault(key, CaseMetrics(key))
        entry.attempts += 1
        entry.completions += int(bool(record.get("complete")))
        entry.improvements += int(bool(record.get("improved")))
        if record.get("algorithm"):
            entry.algorithms.add(record["algorithm"])
        name = record.get("case_name")
        if name and name not in entry.names:
            entry.names.append(name)
        if record.get("classification"):
            entry.classifications.add(record["classification"])
    return sorted(stats.values(), key=lambda m: (-m.completions, -m.improvements))
