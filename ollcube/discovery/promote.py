"""
Offline promotion of logged unknown patterns into derived cases.

Both pipelines register through :meth:`SolverContext.register_case`, which
classifies the new case and appends it to the derived store so later contexts
load it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from tqdm import tqdm

from ollcube.core.cube_state import CubeState
from ollcube.errors import InvalidStateError
from ollcube.discovery.mining import BASE_ALGORITHMS, derive_algorithm_for_pattern, mine_patterns
from ollcube.discovery.validation import validate_candidate
from ollcube.oll.cases import PLACEHOLDER_PATTERNS
from ollcube.oll.context import SolverContext
from ollcube.oll.pattern import adapt_algorithm_for_rotation, pattern_rotations
from ollcube.search.dfs import IterativeDeepeningSearch
from ollcube.search.heuristic import HeuristicSearch
from ollcube.search.producer import ProducerSearch

logger = logging.getLogger(__name__)

PROMOTION_ID_START = 9000
DERIVATION_ID_START = 8000


@dataclass
class DiscoveryReport:
    registered: List[Dict[str, Any]] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    unresolved: List[str] = field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.registered)


def _known_patterns(context: SolverContext) -> set:
    """Patterns that already have an algorithm; captured placeholders stay open."""
    known = set(context.database.patterns())
    if context.store is not None:
        known.update(
            entry.get("pattern") for entry in context.store.load_derived() if entry.get("algorithm")
        )
    return known


def _register(
    context: SolverContext,
    report: DiscoveryReport,
    pattern: str,
    algorithm: str,
    id_start: int,
    name: str,
    source: str,
    **extra: Any,
) -> bool:
    case_id = context.database.next_free_id(id_start)
    case = context.register_case(
        pattern,
        algorithm,
        name=name,
        case_id=case_id,
        verified=False,
        source=source,
        **extra,
    )
    if case.id != case_id:
        report.skipped.append(pattern)
        return False
    report.registered.append(
        {"id": case.id, "pattern": pattern, "algorithm": algorithm, "source": source, **extra}
    )
    return True


def _search_sample(state: CubeState, pattern: str, dfs_depth: int, heuristic_depth: int, node_budget: Optional[int]):
    searches = (
        IterativeDeepeningSearch(dfs_depth, node_budget=node_budget),
        HeuristicSearch(heuristic_depth, node_budget=node_budget),
    )
    for search in searches:
        result = search.search(state.clone())
        if not result.success or not result.algorithm:
            continue
        validation = validate_candidate(result.algorithm, expected_pattern=pattern)
        if validation.ok:
            return result.algorithm, validation
        logger.info("Candidate %r from %s failed validation for %s", result.algorithm, search.name, pattern)
    return None


def promote_unknown_patterns(
    context: SolverContext,
    *,
    dfs_depth: int = 7,
    heuristic_depth: int = 12,
    node_budget: Optional[int] = 200_000,
    progress: bool = True,
) -> DiscoveryReport:
    """
    Search the recorded samples of each logged unknown pattern, most frequent
    first, and register the first validated algorithm found.
    """
    report = DiscoveryReport()
    if context.unknown_log is None:
        logger.warning("Context has no store; nothing to promote")
        return report
    known = _known_patterns(context)
    ordered = context.unknown_log.by_frequency()
    for pattern, info in tqdm(ordered, desc="promote", disable=not progress):
        if pattern in known:
            report.skipped.append(pattern)
            continue
        samples = info.get("samples") or []
        if not samples:
            logger.info("No sample states recorded for %s", pattern)
            report.unresolved.append(pattern)
            continue
        found = None
        for sample in samples:
            try:
                state = CubeState.from_faces(sample["state"])
            except (KeyError, InvalidStateError) as exc:
                logger.warning("Unreadable sample for %s: %s", pattern, exc)
                continue
            found = _search_sample(state, pattern, dfs_depth, heuristic_depth, node_budget)
            if found is not None:
                break
        if found is None:
            logger.info("No candidate algorithm discovered for %s within depth bound", pattern)
            report.unresolved.append(pattern)
            continue
        algorithm, validation = found
        if _register(
            context,
            report,
            pattern,
            algorithm,
            PROMOTION_ID_START,
            f"Promoted {pattern}",
            "search-sample",
            rotation_applied=validation.rotation_offset,
        ):
            known.add(pattern)
            logger.info("Promoted new OLL case for %s: %s", pattern, algorithm)
    return report


def derive_missing_patterns(
    context: SolverContext,
    base_algorithms: Sequence[str] = BASE_ALGORITHMS,
    producer_depth: int = 8,
) -> DiscoveryReport:
    """
    Fill placeholder and logged unknown patterns from mined patterns.

    A target is tried as a direct mined match, then as a rotation of one (the
    mined algorithm is prefixed with the U turns reaching it), and finally by a
    producer search from the solved cube.
    """
    report = DiscoveryReport()
    mined = mine_patterns(base_algorithms)
    logger.info("Mined %d distinct patterns", len(mined))
    targets = list(PLACEHOLDER_PATTERNS)
    if context.unknown_log is not None:
        targets.extend(p for p in context.unknown_log.patterns() if p not in targets)
    known = _known_patterns(context)

    for target in targets:
        if target in known:
            report.skipped.append(target)
            continue
        algorithm = derive_algorithm_for_pattern(target, mined)
        if algorithm and validate_candidate(algorithm, expected_pattern=target).ok:
            _register(
                context, report, target, algorithm, DERIVATION_ID_START,
                f"Auto-Derived {target}", "reverse-mining-direct", rotation_applied=0,
            )
            continue

        derived = False
        for rotated, rotation in pattern_rotations(target)[1:]:
            base = derive_algorithm_for_pattern(rotated, mined)
            if base is None:
                continue
            adapted = adapt_algorithm_for_rotation(base, rotation, "pre")
            if validate_candidate(adapted, expected_pattern=target).ok:
                _register(
                    context, report, target, adapted, DERIVATION_ID_START,
                    f"Auto-Derived {target}", "reverse-mining-rotational",
                    rotation_applied=rotation, mined_base=base,
                )
                derived = True
                break
        if derived:
            continue

        result = ProducerSearch(producer_depth).search(target)
        if result.success and result.algorithm:
            _register(
                context, report, target, result.algorithm, DERIVATION_ID_START,
                f"Auto-Discovered {target}", "forward-discovery",
                rotation_applied=0, discovered_producing=result.producing_algorithm,
            )
        else:
            logger.info("No derivation found for %s", target)
            report.unresolved.append(target)
    return report
