"""
Process-wide solver state.

A :class:`SolverContext` owns everything the solver learns across solves: the
case registry, the runtime finisher table, classification changes and the
promotion and failure counters. It is built once and passed by reference.
"""

from __future__ import annotations

import logging
import threading
from collections import Counter
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Union

from ollcube.core.cube_state import CubeState
from ollcube.core.moves import apply_moves, invert_algorithm
from ollcube.oll.cases import SEED_CASES, Classification, OLLCase, OLLDatabase
from ollcube.oll.config import STATIC_FINISHERS, OLLConfig
from ollcube.oll.pattern import (
    adapt_algorithm_for_rotation,
    canonical,
    get_pattern,
    normalize_to_canonical,
    orientation_score,
    pattern_to_mask,
)
from ollcube.storage.store import OLLStore
from ollcube.storage.unknown_log import UnknownPatternLog

logger = logging.getLogger(__name__)

CaseKey = Union[int, str]


def empirical_classification(algorithm: str) -> tuple[Classification, int, int]:
    """
    Classify an algorithm by running it on the state its own inverse produces.

    Returns the classification with the orientation scores before and after.
    """
    state = CubeState.solved()
    apply_moves(state, invert_algorithm(algorithm))
    initial = orientation_score(get_pattern(state))
    apply_moves(state, algorithm)
    final = orientation_score(get_pattern(state))
    if final == 8:
        return Classification.FINISHER, initial, final
    if final > initial:
        return Classification.SETUP, initial, final
    return Classification.UNKNOWN, initial, final


class SolverContext:
    def __init__(
        self,
        database: OLLDatabase,
        config: OLLConfig,
        store: Optional[OLLStore] = None,
        runtime_finishers: Optional[Dict[str, str]] = None,
    ):
        self.database = database
        self.config = config
        self.store = store
        self.unknown_log = UnknownPatternLog(store) if store is not None else None
        self.runtime_finishers: Dict[str, str] = dict(runtime_finishers or {})
        self.static_finishers: Dict[str, str] = dict(
            normalize_to_canonical(p, alg) for p, alg in STATIC_FINISHERS.items()
        )
        self.promotion_counts: Counter = Counter()
        self.finisher_failures: Counter = Counter()
        self._scores: Dict[int, tuple[int, int]] = {}
        self._lock = threading.RLock()

    @classmethod
    def create(
        cls,
        config: Optional[OLLConfig] = None,
        store: Optional[OLLStore] = None,
    ) -> "SolverContext":
        """
        Build a context from the seed cases and whatever ``store`` has persisted.

        Derived cases are registered first, then persisted classification
        overrides are applied, falling back to the empirical classification of
        each algorithm. Finishers that metrics show never complete are demoted
        once here.
        """
        config = config or OLLConfig()
        database = OLLDatabase(SEED_CASES)
        runtime = store.load_runtime_finishers() if store is not None else {}
        context = cls(database, config, store, runtime)
        if store is not None:
            context._load_derived()
        context._classify_cases()
        if store is not None:
            context._demote_from_metrics()
        return context

    def _load_derived(self) -> None:
        count = 0
        for entry in self.store.load_derived():
            pattern = entry.get("pattern")
            algorithm = entry.get("algorithm")
            if not pattern or not algorithm:
                continue
            try:
                pattern_to_mask(pattern)
            except ValueError:
                logger.warning("Skipping derived entry with invalid pattern %r", pattern)
                continue
            self.database.register_case(
                OLLCase(
                    id=int(entry.get("id", 8000)),
                    pattern=pattern,
                    algorithm=algorithm,
                    name=entry.get("name") or f"Auto-Derived {pattern}",
                    verified=False,
                    notes=entry.get("source", "derived-file"),
                    source="derived",
                )
            )
            count += 1
        if count:
            logger.info("Loaded %d derived OLL case(s)", count)

    def _classify_cases(self) -> None:
        overrides = self.store.load_classifications() if self.store is not None else {}
        for case in self.database.cases:
            self._classify(case, overrides.get(str(case.id)))

    def _classify(self, case: OLLCase, override: Optional[Dict[str, Any]] = None) -> OLLCase:
        if not case.algorithm:
            return case
        empirical, initial, final = empirical_classification(case.algorithm)
        self._scores[case.id] = (initial, final)
        target = empirical
        if override:
            try:
                target = Classification(override.get("classification"))
            except ValueError:
                logger.debug("Ignoring override %r for case %d", override, case.id)
        if override and override.get("auto_demoted"):
            # replay the demotion so the audit fields survive a reload
            self.database.reclassify(case.id, Classification.FINISHER)
            return self.database.reclassify(case.id, Classification.SETUP, override.get("reason", ""))
        if target is Classification.UNKNOWN:
            return case
        return self.database.reclassify(case.id, target)

    def _demote_from_metrics(self) -> None:
        stats: Dict[str, Counter] = {}
        for record in self.store.iter_metrics():
            case_id = record.get("case_id")
            if not isinstance(case_id, int):
                continue
            counter = stats.setdefault(str(case_id), Counter())
            counter["attempts"] += 1
            counter["completions"] += int(bool(record.get("complete")))
            counter["improvements"] += int(bool(record.get("improved")))
        demoted = False
        for case_id, counter in stats.items():
            case = self.database.get(int(case_id))
            if case is None or case.classification is not Classification.FINISHER:
                continue
            if counter["attempts"] < self.config.batch_demotion_min_attempts or counter["completions"]:
                continue
            if counter["improvements"] / counter["attempts"] < self.config.batch_demotion_max_improvement_rate:
                self.demote(case.id, "Batch metrics demotion (0% completion, low improvement)")
                demoted = True
        if demoted:
            self.persist_classifications()

    # queries

    def classify_pattern(self, pattern: str) -> Classification:
        """Classification of the algorithm the solver would pick first for ``pattern``."""
        match = self.database.match_pattern(pattern)
        if match is not None and match.algorithm:
            return match.case.classification
        if self.finisher_for(pattern) is not None:
            return Classification.FINISHER
        return Classification.UNKNOWN

    def finisher_for(self, pattern: str) -> Optional[tuple[str, str]]:
        """Learned or static finisher for ``pattern``, adapted to its rotation."""
        key, rotation = canonical(pattern)
        with self._lock:
            if key in self.runtime_finishers:
                return adapt_algorithm_for_rotation(self.runtime_finishers[key], rotation), "runtime"
        if key in self.static_finishers:
            return adapt_algorithm_for_rotation(self.static_finishers[key], rotation), "static"
        return None

    def classification_map(self) -> Dict[str, Dict[str, Any]]:
        records = {}
        for case in self.database.cases:
            if not case.algorithm:
                continue
            record: Dict[str, Any] = {"classification": case.classification.value}
            if case.id in self._scores:
                record["initial_score"], record["final_score"] = self._scores[case.id]
            if case.auto_demoted:
                record["auto_demoted"] = True
                record["reason"] = case.demote_reason
            records[str(case.id)] = record
        return records

    # registration

    def next_capture_id(self) -> int:
        return self.database.next_free_id(self.config.capture_id_start)

    def register_case(
        self,
        pattern: str,
        algorithm: str,
        *,
        name: Optional[str] = None,
        case_id: Optional[int] = None,
        verified: bool = False,
        source: str = "manual",
        persist: bool = True,
        **extra: Any,
    ) -> OLLCase:
        """
        Register a discovered algorithm for ``pattern`` and classify it.

        With ``persist`` the entry is also appended to the derived store so
        later contexts load it.
        """
        if case_id is None:
            case_id = self.next_capture_id()
        entry = OLLCase(
            id=case_id,
            pattern=pattern,
            algorithm=algorithm,
            name=name or f"Auto-Derived {pattern}",
            verified=verified,
            enabled=bool(algorithm),
            notes=source,
            source=source,
        )
        registered = self.database.register_case(entry)
        if registered is entry:
            registered = self._classify(entry)
            if persist and self.store is not None:
                record = {
                    "id": case_id,
                    "pattern": pattern,
                    "algorithm": algorithm,
                    "name": entry.name,
                    "canonical": canonical(pattern)[0],
                    "source": source,
                    "timestamp": datetime.now(timezone.utc).isoformat(),
                }
                record.update(extra)
                self.store.add_derived(record)
        return registered

    # learning

    def confirm_finisher(self, pattern: str, algorithm: str) -> bool:
        """
        Count one more completion of ``pattern`` by ``algorithm``.

        Once the count reaches the confirmation threshold the algorithm becomes
        the runtime finisher for the pattern's canonical key. Returns True when
        this call promoted it.
        """
        key, normalized = normalize_to_canonical(pattern, algorithm)
        with self._lock:
            self.promotion_counts[(key, normalized)] += 1
            if key in self.runtime_finishers:
                return False
            if self.promotion_counts[(key, normalized)] < self.config.promotion_confirmations:
                return False
            self.runtime_finishers[key] = normalized
        logger.info("Promoted runtime finisher for %s: %s", key, normalized)
        self.persist_runtime_finishers()
        return True

    def record_finisher_failure(self, key: CaseKey) -> int:
        with self._lock:
            self.finisher_failures[key] += 1
            count = self.finisher_failures[key]
        if isinstance(key, int) and count >= self.config.finisher_downgrade_threshold:
            self.demote(key, "Repeated non-completion as finisher")
        return count

    def demote(self, case_id: int, reason: str) -> bool:
        case = self.database.get(case_id)
        if case is None or case.classification is not Classification.FINISHER:
            return False
        self.database.reclassify(case_id, Classification.SETUP, reason)
        return True

    # persistence and logging

    def record_metric(self, event: Dict[str, Any]) -> None:
        if self.store is not None:
            self.store.append_metric(event)

    def record_unknown(self, pattern: str, state: CubeState, attempt_index: int) -> None:
        if self.unknown_log is not None:
            self.unknown_log.record(pattern, state, orientation_score(pattern), attempt_index)

    def persist_classifications(self) -> bool:
        if self.store is None:
            return False
        return self.store.save_classifications(self.classification_map())

    def persist_runtime_finishers(self) -> bool:
        if self.store is None:
            return False
        with self._lock:
            snapshot = dict(self.runtime_finishers)
        return self.store.save_runtime_finishers(snapshot)

    def persist_learning(self) -> None:
        self.persist_classifications()
        self.persist_runtime_finishers()


_default_context: Optional[SolverContext] = None
_default_lock = threading.Lock()


def get_default_context() -> SolverContext:
    """Lazily build the process context backed by the default data directory."""
    global _default_context
    with _default_lock:
        if _default_context is None:
            _default_context = SolverContext.create(store=OLLStore())
        return _default_context


def set_default_context(context: Optional[SolverContext]) -> None:
    global _default_context
    with _default_lock:
        _default_context = context
