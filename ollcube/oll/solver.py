"""
OLL solve orchestrator.

The solver repeatedly analyzes the last-layer pattern, picks an algorithm,
applies it and checks the result, escalating to searches when progress
stalls. Control flow is an explicit state machine; after every phase the next
phase is looked up in :data:`TRANSITIONS` from the phase that just ran and the
``(complete, integrity_ok, stagnated)`` outcome it produced.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from itertools import product
from typing import Any, Dict, List, NamedTuple, Optional

from ollcube.core.cube_state import CubeState, integrity_diff
from ollcube.core.moves import apply_moves
from ollcube.oll.cases import Classification
from ollcube.oll.config import EMERGENCY_POOL, EXTENDED_MOVES, FALLBACK_SETUPS
from ollcube.oll.context import CaseKey, SolverContext, get_default_context
from ollcube.oll.pattern import adapt_algorithm_for_rotation, canonical, canonical_key, get_pattern, orientation_score
from ollcube.search.base import SearchResult
from ollcube.search.heuristic import HeuristicSearch
from ollcube.search.planner import PlannerSearch

logger = logging.getLogger(__name__)


class Phase(str, Enum):
    ANALYZING = "analyzing"
    SELECTING = "selecting"
    APPLYING = "applying"
    VERIFYING_INTEGRITY = "verifying_integrity"
    PLATEAU_HANDLING = "plateau_handling"
    DONE = "done"
    ABORTED = "aborted"


TERMINAL_PHASES = frozenset({Phase.DONE, Phase.ABORTED})


def _build_transitions() -> Dict[tuple, Phase]:
    table = {}
    for complete, integrity_ok, stagnated in product((False, True), repeat=3):
        outcome = (complete, integrity_ok, stagnated)
        if complete and integrity_ok:
            table[(Phase.ANALYZING,) + outcome] = Phase.DONE
            table[(Phase.VERIFYING_INTEGRITY,) + outcome] = Phase.DONE
            table[(Phase.PLATEAU_HANDLING,) + outcome] = Phase.DONE
            continue
        table[(Phase.ANALYZING,) + outcome] = Phase.ABORTED if stagnated else Phase.SELECTING
        # a reverted attempt is analyzed again from the restored state
        table[(Phase.VERIFYING_INTEGRITY,) + outcome] = (
            Phase.PLATEAU_HANDLING if integrity_ok else Phase.ANALYZING
        )
        table[(Phase.PLATEAU_HANDLING,) + outcome] = Phase.ANALYZING
    return table


TRANSITIONS = _build_transitions()


def next_phase(phase: Phase, complete: bool, integrity_ok: bool = True, stagnated: bool = False) -> Phase:
    return TRANSITIONS[(phase, complete, integrity_ok, stagnated)]


@dataclass(frozen=True)
class AppliedAlgorithm:
    case: CaseKey
    name: str
    algorithm: str
    moves: int
    classification: str


class OrientationRecord(NamedTuple):
    attempt: int
    pattern: str
    score: int


@dataclass
class OLLSolveResult:
    """
    Outcome of one solve.

    ``applied_algorithms`` and ``total_moves`` trace every attempt that was
    kept when it ran. When an unsuccessful session ends below the best score it
    reached, ``final_state`` is rolled back to the input and ``reverted`` is
    set; the trace then describes discarded work, so replaying ``algorithm``
    does not reproduce ``final_state``.
    """

    success: bool
    is_oll_complete: bool
    total_moves: int
    applied_algorithms: List[AppliedAlgorithm]
    attempts: int
    final_state: CubeState
    final_pattern: str
    orientation_history: List[OrientationRecord]
    cumulative_integrity_diff: int = 0
    status: str = Phase.DONE.value
    reverted: bool = False

    @property
    def algorithm(self) -> str:
        """All applied algorithms joined into one sequence."""
        return " ".join(a.algorithm for a in self.applied_algorithms if a.algorithm)


@dataclass
class _Selection:
    algorithm: str
    name: str
    case_key: CaseKey
    classification: Classification
    rotation: int = 0
    enforce_integrity: bool = False


@dataclass
class _Session:
    state: CubeState
    snapshot: CubeState
    attempts: int = 0
    total_moves: int = 0
    applied: List[AppliedAlgorithm] = field(default_factory=list)
    history: List[OrientationRecord] = field(default_factory=list)
    best_score: int = 0
    stagnation: int = 0
    cumulative_diff: int = 0
    setup_chain: int = 0
    heuristic_tried: set = field(default_factory=set)
    plateau_counts: Dict[str, int] = field(default_factory=dict)
    repeat_counts: Dict[str, int] = field(default_factory=dict)
    blacklist: set = field(default_factory=set)
    # current attempt
    pattern: str = ""
    score: int = 0
    key: str = ""
    stagnated: bool = False
    selection: Optional[_Selection] = None
    attempt_snapshot: Optional[CubeState] = None
    attempt_signature: str = ""
    post_pattern: str = ""
    post_score: int = 0


class OLLSolver:
    """Runs the orientation state machine against a :class:`SolverContext`."""

    def __init__(self, context: Optional[SolverContext] = None):
        self.context = context or get_default_context()
        self.config = self.context.config
        self._handlers = {
            Phase.ANALYZING: self._analyze,
            Phase.SELECTING: self._select,
            Phase.APPLYING: self._apply,
            Phase.VERIFYING_INTEGRITY: self._verify,
            Phase.PLATEAU_HANDLING: self._plateau,
        }

    def solve(self, state: CubeState) -> OLLSolveResult:
        """Orient the last layer of a copy of ``state``; never raises for an unsolved cube."""
        working = state.clone()
        session = _Session(state=working, snapshot=working.clone())
        phase = Phase.ANALYZING
        iterations = 0
        while phase not in TERMINAL_PHASES:
            if phase is Phase.ANALYZING:
                if session.attempts >= self.config.max_attempts or iterations >= self.config.max_iterations:
                    break
                iterations += 1
            logger.debug("attempt %d: %s", session.attempts, phase.value)
            phase = self._handlers[phase](session)
        return self._finish(session, phase)

    # phases

    def _analyze(self, s: _Session) -> Phase:
        s.pattern = get_pattern(s.state)
        s.score = orientation_score(s.pattern)
        if s.score == 8:
            return next_phase(Phase.ANALYZING, True)
        s.key = canonical_key(s.pattern)
        s.plateau_counts.setdefault(s.key, 0)
        cfg = self.config

        if s.score >= cfg.micro_finisher_min_score and s.key not in s.heuristic_tried:
            s.heuristic_tried.add(s.key)
            result = self._heuristic(s.state, cfg.micro_finisher_depth, allow_regression=1)
            if self._apply_search(s, result, "Heuristic Micro-Finisher"):
                s.attempts += 1
                return Phase.DONE

        if (
            s.score >= cfg.mid_stage_min_score
            and s.stagnation == 1
            and s.key not in s.heuristic_tried
        ):
            s.heuristic_tried.add(s.key)
            result = self._heuristic(s.state, cfg.mid_stage_depth, moves=EXTENDED_MOVES)
            if self._apply_search(s, result, "Heuristic Mid-Stage"):
                s.attempts += 1
                return Phase.DONE

        if s.score > s.best_score:
            s.best_score = s.score
            s.stagnation = 0
        else:
            s.stagnation += 1
            if s.stagnation == cfg.stagnation_limit - 1:
                result = self._heuristic(s.state, cfg.rescue_depth, moves=EXTENDED_MOVES)
                if self._apply_search(s, result, "Heuristic Finisher"):
                    s.best_score = 8
                    s.attempts += 1
                    return Phase.DONE
        s.stagnated = s.stagnation >= cfg.stagnation_limit
        if s.stagnated:
            logger.warning("Stagnation detected at pattern %s, aborting", s.pattern)
        else:
            s.history.append(OrientationRecord(s.attempts, s.pattern, s.score))
            s.repeat_counts[s.key] = s.repeat_counts.get(s.key, 0) + 1
        return next_phase(Phase.ANALYZING, False, True, s.stagnated)

    def _select(self, s: _Session) -> Phase:
        selection = self._selection_for(s)
        if (selection.case_key, s.pattern) in s.blacklist:
            logger.info("Skipping blacklisted %s for %s", selection.case_key, s.pattern)
            result = self._heuristic(s.state, self.config.substitution_depth)
            s.attempts += 1
            if self._apply_search(s, result, "Heuristic (Blacklist Substitution)"):
                return Phase.DONE
            return Phase.ANALYZING
        s.selection = selection
        return Phase.APPLYING

    def _selection_for(self, s: _Session) -> _Selection:
        match = self.context.database.match_pattern(s.pattern)
        if match is not None and match.algorithm:
            case = match.case
            name = case.name
            if case.classification is not Classification.UNKNOWN:
                name += f" ({case.classification.value.capitalize()})"
            algorithm = match.algorithm
            if match.rotation:
                name += f" [+rot{match.rotation}]"
                # face-mapped variants do not always orient under this move model
                if not self._orients(s.state, algorithm) and self._orients(s.state, match.aligned_algorithm):
                    algorithm = match.aligned_algorithm
                    name += " [U-aligned]"
            logger.info("Matched case %d (%s): %s", case.id, name, algorithm)
            return _Selection(algorithm, name, case.id, case.classification, match.rotation)

        finisher = self.context.finisher_for(s.pattern)
        if finisher is not None:
            algorithm, source = finisher
            name = "Runtime Finisher" if source == "runtime" else "Static Finisher"
            logger.info("Applying %s for %s: %s", name.lower(), s.key, algorithm)
            return _Selection(algorithm, name, f"{source}:{s.key}", Classification.FINISHER)

        if s.attempts < self.config.fallback_attempts:
            logger.warning("Unknown OLL pattern %s", s.pattern)
            captured = self._capture_unknown(s)
            self.context.record_unknown(s.pattern, s.state, s.attempts)
            if captured is not None:
                return captured
            algorithm = FALLBACK_SETUPS[s.attempts % len(FALLBACK_SETUPS)]
            return _Selection(
                algorithm, f"Setup Move {s.attempts + 1}", algorithm, Classification.UNKNOWN,
                enforce_integrity=True,
            )

        logger.warning("Emergency mode for pattern %s", s.pattern)
        self.context.record_unknown(s.pattern, s.state, s.attempts)
        algorithm = EMERGENCY_POOL[s.attempts % len(EMERGENCY_POOL)]
        return _Selection(
            algorithm, "Emergency Orientation Attempt", algorithm, Classification.UNKNOWN,
            enforce_integrity=True,
        )

    def _capture_unknown(self, s: _Session) -> Optional[_Selection]:
        """Register an unseen pattern, with an algorithm when a search finds one."""
        if self.context.database.find_by_pattern(s.pattern) is not None:
            return None
        result = self._heuristic(s.state, self.config.capture_depth)
        algorithm = ""
        if result.success and result.algorithm and self._orients(s.state, result.algorithm):
            algorithm = result.algorithm
        case = self.context.register_case(
            s.pattern,
            algorithm,
            name=f"Auto-Captured {s.pattern}",
            verified=bool(algorithm),
            source="auto-heuristic" if algorithm else "auto-captured",
        )
        logger.info("Captured OLL pattern %s as case %d", s.pattern, case.id)
        if not algorithm:
            return None
        return _Selection(algorithm, case.name, case.id, case.classification)

    def _apply(self, s: _Session) -> Phase:
        selection = s.selection
        s.attempt_snapshot = s.state.clone()
        s.attempt_signature = s.state.f2l_signature()
        applied = apply_moves(s.state, selection.algorithm)
        if not applied.success:
            logger.warning("Algorithm %r stopped after %d moves: %s", selection.algorithm, applied.move_count, applied.error)
        s.total_moves += applied.move_count
        s.applied.append(
            AppliedAlgorithm(
                selection.case_key, selection.name, selection.algorithm,
                applied.move_count, selection.classification.value,
            )
        )
        return Phase.VERIFYING_INTEGRITY

    def _verify(self, s: _Session) -> Phase:
        selection = s.selection
        post_pattern = get_pattern(s.state)
        post_score = orientation_score(post_pattern)
        complete = post_score == 8
        status, diff = "n/a", None

        if selection.enforce_integrity:
            diff = integrity_diff(s.attempt_signature, s.state.f2l_signature())
            status = "ok"
            if diff:
                integrity = self.config.integrity
                allowed = integrity.allowed_diff(s.key, post_score)
                within_budget = s.cumulative_diff + diff <= integrity.budget(s.key)
                if post_score > s.score and diff <= allowed and within_budget:
                    s.cumulative_diff += diff
                    status = "soft"
                    logger.warning(
                        "Soft F2L deviation tolerated (diff=%d, cumulative=%d, allowed=%d)",
                        diff, s.cumulative_diff, allowed,
                    )
                else:
                    logger.warning("F2L integrity violation after %r, reverting attempt", selection.algorithm)
                    s.state.restore(s.attempt_snapshot)
                    s.blacklist.add((selection.case_key, s.pattern))
                    reverted = s.applied.pop()
                    s.total_moves -= reverted.moves
                    s.attempts += 1
                    self._record_metric(s, None, False, False, "reverted", diff)
                    return next_phase(Phase.VERIFYING_INTEGRITY, False, False, s.stagnated)

        improved = post_score > s.score
        self._record_metric(s, post_pattern, improved, complete, status, diff)
        if complete and selection.classification is Classification.SETUP:
            self.context.confirm_finisher(s.pattern, selection.algorithm)

        if selection.classification is Classification.FINISHER and not complete:
            failures = self.context.record_finisher_failure(selection.case_key)
            if failures >= self.config.finisher_blacklist_threshold:
                s.blacklist.add((selection.case_key, s.pattern))

        if not complete and selection.classification is Classification.SETUP:
            if improved:
                if s.setup_chain < self.config.max_setup_chain:
                    s.setup_chain += 1
                    if s.stagnation > 0:
                        s.stagnation -= 1
                    logger.info("Chaining setup (%d/%d)", s.setup_chain, self.config.max_setup_chain)
                    return Phase.ANALYZING
            else:
                s.setup_chain = 0
        elif selection.classification is Classification.FINISHER or complete:
            s.setup_chain = 0

        if not complete and selection.classification is Classification.FINISHER:
            result = self._heuristic(s.state, self.config.escalation_depth, moves=EXTENDED_MOVES)
            if self._apply_search(s, result, "Heuristic Escalation"):
                s.attempts += 1
                return Phase.DONE

        s.post_pattern, s.post_score = post_pattern, post_score
        if complete:
            s.attempts += 1
        return next_phase(Phase.VERIFYING_INTEGRITY, complete, True, s.stagnated)

    def _plateau(self, s: _Session) -> Phase:
        key = s.key
        if s.post_score <= s.score:
            s.plateau_counts[key] = s.plateau_counts.get(key, 0) + 1
        else:
            s.plateau_counts[key] = 0

        if s.plateau_counts[key] >= 1:
            before = get_pattern(s.state)
            current_key, rotation = canonical(before)
            static = self.context.static_finishers.get(current_key)
            if static:
                static = adapt_algorithm_for_rotation(static, rotation)
            if static and s.selection.algorithm != static:
                logger.info("Plateau escalation with static finisher for %s", current_key)
                applied = apply_moves(s.state, static)
                s.total_moves += applied.move_count
                s.applied.append(AppliedAlgorithm("plateau", "Static Plateau Finisher", static, applied.move_count, "finisher"))
                after = get_pattern(s.state)
                self._record_search_metric(s, "plateau", "Static Plateau Finisher", static, before, after)
                if after == "11111111":
                    s.attempts += 1
                    return next_phase(Phase.PLATEAU_HANDLING, True)
                if orientation_score(after) > s.post_score:
                    return next_phase(Phase.PLATEAU_HANDLING, False)
            else:
                done = self._plateau_search(s, key)
                if done:
                    s.attempts += 1
                    return next_phase(Phase.PLATEAU_HANDLING, True)

        s.attempts += 1
        return next_phase(Phase.PLATEAU_HANDLING, False)

    def _plateau_search(self, s: _Session, key: str) -> bool:
        cfg = self.config
        result = self._heuristic(s.state, cfg.plateau_depth, moves=EXTENDED_MOVES)
        if self._apply_search(s, result, "Heuristic Plateau Finisher", learn=True):
            return True
        logger.info("Planner search for completion (depth<=%d)", cfg.planner_depth)
        planner = PlannerSearch(cfg.planner_depth, limit=cfg.planner_limit)
        if self._apply_search(s, planner.search(s.state), "Planner Completion", case="planner", learn=True):
            return True
        repeats = s.repeat_counts.get(key, 0)
        if s.plateau_counts.get(key, 0) >= 2 or repeats >= 4:
            logger.info("Escalating planner search (depth<=%d, composite)", cfg.planner_deep_depth)
            deep = PlannerSearch(cfg.planner_deep_depth, limit=cfg.planner_limit, composite=True)
            if self._apply_search(s, deep.search(s.state), "Planner Deep Completion", case="planner", learn=True):
                return True
        return False

    # helpers

    @staticmethod
    def _orients(state: CubeState, algorithm: str) -> bool:
        trial = state.clone()
        apply_moves(trial, algorithm)
        return get_pattern(trial) == "11111111"

    def _heuristic(self, state: CubeState, depth: int, moves=None, allow_regression: Optional[int] = None) -> SearchResult:
        kwargs: Dict[str, Any] = {
            "allow_regression": self.config.allow_regression if allow_regression is None else allow_regression,
        }
        if moves is not None:
            kwargs["moves"] = moves
        return HeuristicSearch(depth, **kwargs).search(state.clone())

    def _apply_search(
        self,
        s: _Session,
        result: SearchResult,
        name: str,
        case: str = "heuristic",
        learn: bool = False,
    ) -> bool:
        """Apply a successful search result; True when the cube ends up oriented."""
        if not result.success or not result.algorithm:
            return False
        before = get_pattern(s.state)
        applied = apply_moves(s.state, result.algorithm)
        s.total_moves += applied.move_count
        s.applied.append(AppliedAlgorithm(case, name, result.algorithm, applied.move_count, "heuristic"))
        after = get_pattern(s.state)
        logger.info("%s: %s", name, result.algorithm)
        if case == "planner":
            self._record_search_metric(s, case, name, result.algorithm, before, after)
        complete = after == "11111111"
        if complete and learn:
            self.context.confirm_finisher(before, result.algorithm)
        return complete

    def _record_metric(
        self,
        s: _Session,
        post_pattern: Optional[str],
        improved: bool,
        complete: bool,
        integrity_status: str,
        integrity_diff_value: Optional[int],
    ) -> None:
        selection = s.selection
        self.context.record_metric(
            {
                "attempt": s.attempts,
                "case_id": selection.case_key,
                "case_name": selection.name,
                "classification": selection.classification.value,
                "algorithm": selection.algorithm,
                "rotation": selection.rotation,
                "pre_pattern": s.pattern,
                "post_pattern": post_pattern,
                "improved": improved,
                "complete": complete,
                "integrity_status": integrity_status,
                "integrity_diff": integrity_diff_value,
                "cumulative_integrity_diff": s.cumulative_diff,
                "stagnation": s.stagnation,
                "plateau_hits": s.plateau_counts.get(s.key, 0),
            }
        )

    def _record_search_metric(self, s: _Session, case: str, name: str, algorithm: str, before: str, after: str) -> None:
        self.context.record_metric(
            {
                "attempt": s.attempts,
                "case_id": case,
                "case_name": name,
                "classification": "finisher",
                "algorithm": algorithm,
                "rotation": 0,
                "pre_pattern": before,
                "post_pattern": after,
                "improved": orientation_score(after) > orientation_score(before),
                "complete": after == "11111111",
            }
        )

    def _finish(self, s: _Session, phase: Phase) -> OLLSolveResult:
        final_pattern = get_pattern(s.state)
        complete = final_pattern == "11111111"
        reverted = False
        if not complete:
            if orientation_score(final_pattern) < s.best_score:
                logger.info("Reverting to the pre-solve state after regression")
                s.state.restore(s.snapshot)
                reverted = True
                final_pattern = get_pattern(s.state)
            self._demote_failed_finishers(s)
        self.context.persist_learning()
        if complete:
            status = Phase.DONE.value
        elif phase is Phase.ABORTED:
            status = Phase.ABORTED.value
        else:
            status = "exhausted"
        return OLLSolveResult(
            success=complete,
            is_oll_complete=complete,
            total_moves=s.total_moves,
            applied_algorithms=list(s.applied),
            attempts=s.attempts,
            final_state=s.state,
            final_pattern=final_pattern,
            orientation_history=list(s.history),
            cumulative_integrity_diff=s.cumulative_diff,
            status=status,
            reverted=reverted,
        )

    def _demote_failed_finishers(self, s: _Session) -> None:
        counts: Dict[int, int] = {}
        for entry in s.applied:
            if entry.classification == Classification.FINISHER.value and isinstance(entry.case, int):
                counts[entry.case] = counts.get(entry.case, 0) + 1
        for case_id, count in counts.items():
            if count >= self.config.session_demotion_threshold:
                if self.context.demote(case_id, "No completion after multi finisher attempts in failed session"):
                    logger.info("Demoted case %d at end of failed session", case_id)


def solve_oll(state: CubeState, context: Optional[SolverContext] = None) -> OLLSolveResult:
    """Orient the last layer of ``state`` (which is left untouched)."""
    return OLLSolver(context).solve(state)
