from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List

from ollcube.core.cube_state import CubeState
from ollcube.storage.store import OLLStore

logger = logging.getLogger(__name__)

MAX_SAMPLES = 5


class UnknownPatternLog:
    """Records patterns the solver could not match, with a few sample states each."""

    def __init__(self, store: OLLStore, max_samples: int = MAX_SAMPLES):
        self.store = store
        self.max_samples = max_samples

    def record(
        self,
        pattern: str,
        state: CubeState,
        orientation_score: int,
        attempt_index: int,
    ) -> None:
        data = self.store.load_unknown()
        entry = data["patterns"].setdefault(pattern, {"occurrences": 0, "samples": []})
        entry["occurrences"] = int(entry.get("occurrences", 0)) + 1
        samples = entry.setdefault("samples", [])
        if len(samples) < self.max_samples:
            samples.append(
                {
                    "ts": datetime.now(timezone.utc).isoformat(),
                    "orientation_score": orientation_score,
                    "attempt_index": attempt_index,
                    "state": state.to_faces(),
                }
            )
        if not self.store.save_unknown(data):
            logger.debug("Unknown pattern %s not persisted", pattern)

    def patterns(self) -> Dict[str, Dict[str, Any]]:
        return self.store.load_unknown()["patterns"]

    def occurrences(self, pattern: str) -> int:
        return int(self.patterns().get(pattern, {}).get("occurrences", 0))

    def samples(self, pattern: str) -> List[Dict[str, Any]]:
        return list(self.patterns().get(pattern, {}).get("samples", []))

    def by_frequency(self) -> List[tuple[str, Dict[str, Any]]]:
        return sorted(
            self.patterns().items(),
            key=lambda item: int(item[1].get("occurrences", 0)),
            reverse=True,
        )

    def clear(self) -> None:
        self.store.save_unknown({"patterns": {}})
