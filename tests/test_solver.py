import jax
import pytest

from ollcube.core.cube_state import CubeState, integrity_diff
from ollcube.core.moves import apply_moves
from ollcube.discovery.synthetic import generate_synthetic_state
from ollcube.oll.cases import Classification
from ollcube.oll.config import FALLBACK_SETUPS, IntegrityConfig, OLLConfig
from ollcube.oll.context import SolverContext
from ollcube.oll.pattern import (
    canonical_key,
    get_pattern,
    is_oll_complete,
    normalize_to_canonical,
    orientation_score,
)
from ollcube.oll.solver import (
    TERMINAL_PHASES,
    TRANSITIONS,
    AppliedAlgorithm,
    OLLSolver,
    Phase,
    _Selection,
    _Session,
    next_phase,
    solve_oll,
)
from ollcube.storage.store import OLLStore

SUNE = "R U2 R' U' R U' R'"


def _after(moves: str) -> CubeState:
    state = CubeState.solved()
    apply_moves(state, moves)
    return state


def _session(state: CubeState) -> _Session:
    s = _Session(state=state, snapshot=state.clone())
    s.pattern = get_pattern(state)
    s.score = orientation_score(s.pattern)
    s.key = canonical_key(s.pattern)
    s.best_score = s.score
    return s


def _single_sticker_state() -> CubeState:
    faces = CubeState.solved().to_faces()
    faces["U"] = ["W", "Y", "Y", "Y", "W", "Y", "Y", "Y", "Y"]
    return CubeState.from_faces(faces)


class TestTransitions:
    def test_table_covers_every_outcome(self):
        for phase in (Phase.ANALYZING, Phase.VERIFYING_INTEGRITY, Phase.PLATEAU_HANDLING):
            for complete in (False, True):
                for integrity_ok in (False, True):
                    for stagnated in (False, True):
                        assert (phase, complete, integrity_ok, stagnated) in TRANSITIONS

    def test_completion_is_terminal(self):
        assert next_phase(Phase.ANALYZING, True) is Phase.DONE
        assert next_phase(Phase.VERIFYING_INTEGRITY, True) is Phase.DONE
        assert next_phase(Phase.PLATEAU_HANDLING, True) is Phase.DONE
        assert Phase.DONE in TERMINAL_PHASES

    def test_analysis_outcomes(self):
        assert next_phase(Phase.ANALYZING, False) is Phase.SELECTING
        assert next_phase(Phase.ANALYZING, False, True, True) is Phase.ABORTED

    def test_reverted_attempt_is_analyzed_again(self):
        assert next_phase(Phase.VERIFYING_INTEGRITY, False, False) is Phase.ANALYZING
        assert next_phase(Phase.VERIFYING_INTEGRITY, False, True) is Phase.PLATEAU_HANDLING
        assert next_phase(Phase.PLATEAU_HANDLING, False) is Phase.ANALYZING


def test_oriented_cube_is_a_no_op(context, solved):
    result = solve_oll(solved, context)
    assert result.success
    assert result.is_oll_complete
    assert result.total_moves == 0
    assert result.applied_algorithms == []
    assert result.attempts == 0
    assert result.status == "done"


def test_sune_case_applies_sune(context, sune_state, store):
    result = solve_oll(sune_state, context)
    assert result.is_oll_complete
    assert result.total_moves == 7
    assert result.final_pattern == "11111111"
    assert result.attempts == 1
    [applied] = result.applied_algorithms
    assert applied.case == 27
    assert applied.algorithm == SUNE
    assert applied.classification == Classification.FINISHER.value
    assert result.algorithm == SUNE
    assert result.orientation_history[0].pattern == "01111010"
    assert not result.reverted

    [metric] = list(store.iter_metrics())
    assert metric["case_id"] == 27
    assert metric["complete"]
    assert metric["pre_pattern"] == "01111010"
    assert metric["post_pattern"] == "11111111"
    assert metric["integrity_status"] == "n/a"


def test_input_state_is_not_mutated(context, sune_state):
    before = sune_state.clone()
    result = solve_oll(sune_state, context)
    assert sune_state == before
    assert result.final_state is not sune_state


def test_unknown_pattern_terminates_without_regression(context, store):
    state = _single_sticker_state()
    assert get_pattern(state) == "10000000"
    result = solve_oll(state, context)

    assert not result.success
    assert result.status in ("aborted", "exhausted")
    assert result.attempts <= context.config.max_attempts
    assert result.cumulative_integrity_diff <= context.config.integrity.budget("00000001")
    assert orientation_score(result.final_pattern) >= 1
    # the pattern was captured as a disabled placeholder and logged
    case = context.database.find_by_pattern("10000000")
    assert case is not None and not case.enabled
    assert context.unknown_log.occurrences("10000000") >= 1


def test_learned_finisher_is_used(context, store):
    state = _single_sticker_state()
    # a finisher confirmed for this pattern wins over the fallback ladder
    context.runtime_finishers["00000001"] = "R U R'"
    result = OLLSolver(context).solve(state)
    first = result.applied_algorithms[0]
    assert first.name == "Runtime Finisher"
    assert first.case == "runtime:00000001"
    assert first.classification == Classification.FINISHER.value


def test_unwritable_store_does_not_break_solving(tmp_path, sune_state):
    blocker = tmp_path / "blocker"
    blocker.write_text("")
    context = SolverContext.create(store=OLLStore(blocker / "data"))
    result = solve_oll(sune_state, context)
    assert result.is_oll_complete
    assert result.total_moves == 7


def test_rotated_case_falls_back_to_u_alignment(context, sune_state):
    state = sune_state.clone()
    apply_moves(state, "U")
    result = solve_oll(state, context)
    assert result.is_oll_complete
    assert result.attempts == 1
    [applied] = result.applied_algorithms
    assert applied.case == 27
    assert applied.algorithm == "U' " + SUNE
    assert applied.name.endswith("[U-aligned]")


def test_regression_is_rolled_back(context):
    start = _after("R")
    s = _Session(state=_after("F R"), snapshot=start.clone(), best_score=5, total_moves=1, attempts=3)
    s.applied.append(AppliedAlgorithm(203, "Single Move Pattern", "F", 1, Classification.SETUP.value))
    result = OLLSolver(context)._finish(s, Phase.ABORTED)
    assert result.reverted
    assert result.status == "aborted"
    assert result.final_state == start
    assert result.final_pattern == "11010110"
    # the trace still lists the discarded attempt
    assert result.total_moves == 1
    assert result.algorithm == "F"


@pytest.mark.parametrize("depth", [1, 2])
@pytest.mark.parametrize("seed", range(8))
def test_synthetic_states_never_regress(context, seed, depth):
    synthetic = generate_synthetic_state(jax.random.PRNGKey(seed), depth=depth)
    start_score = orientation_score(synthetic.pattern)
    result = solve_oll(synthetic.state, context)
    assert orientation_score(result.final_pattern) >= start_score
    assert result.attempts <= context.config.max_attempts
    if result.reverted:
        assert result.final_state == synthetic.state


class TestIntegrity:
    """F2L checks after a fallback setup: R' from the R state disturbs F2L and orients."""

    @staticmethod
    def _applied(context, state_moves: str, algorithm: str, cumulative: int = 0):
        solver = OLLSolver(context)
        s = _session(_after(state_moves))
        s.cumulative_diff = cumulative
        s.selection = _Selection(algorithm, "Setup Move 1", algorithm, Classification.UNKNOWN, enforce_integrity=True)
        assert solver._apply(s) is Phase.VERIFYING_INTEGRITY
        return solver, s

    @staticmethod
    def _diff() -> int:
        return integrity_diff(_after("R").f2l_signature(), CubeState.solved().f2l_signature())

    @staticmethod
    def _context(store, **integrity) -> SolverContext:
        return SolverContext.create(config=OLLConfig(integrity=IntegrityConfig(**integrity)), store=store)

    def test_deviation_within_threshold_is_soft_accepted(self, store):
        diff = self._diff()
        assert diff > 0
        solver, s = self._applied(self._context(store, high_orientation=diff), "R", "R'")
        assert solver._verify(s) is Phase.DONE
        assert s.cumulative_diff == diff
        assert s.attempts == 1
        assert is_oll_complete(s.state)
        assert list(store.iter_metrics())[-1]["integrity_status"] == "soft"

    def test_deviation_over_threshold_is_reverted(self, store):
        diff = self._diff()
        solver, s = self._applied(self._context(store, high_orientation=diff - 1), "R", "R'")
        assert solver._verify(s) is Phase.ANALYZING
        assert s.state == _after("R")
        assert s.applied == []
        assert s.total_moves == 0
        assert s.attempts == 1
        assert s.cumulative_diff == 0
        assert ("R'", "11010110") in s.blacklist
        metric = list(store.iter_metrics())[-1]
        assert metric["integrity_status"] == "reverted"
        assert metric["integrity_diff"] == diff

    def test_exhausted_budget_is_reverted(self, store):
        diff = self._diff()
        context = self._context(store, high_orientation=diff, cumulative_budget=diff)
        solver, s = self._applied(context, "R", "R'", cumulative=1)
        assert solver._verify(s) is Phase.ANALYZING
        assert s.state == _after("R")
        assert s.cumulative_diff == 1

    def test_deviation_without_improvement_is_reverted(self, store):
        context = self._context(store, base=25, high_orientation=25, cumulative_budget=100)
        solver, s = self._applied(context, "R", "R")
        assert solver._verify(s) is Phase.ANALYZING
        assert s.state == _after("R")
        assert ("R", "11010110") in s.blacklist

    def test_blacklisted_case_is_substituted(self, context):
        solver = OLLSolver(context)
        s = _session(_after("R"))
        s.blacklist.add((201, "11010110"))
        assert solver._select(s) is Phase.DONE
        assert s.attempts == 1
        assert [a.name for a in s.applied] == ["Heuristic (Blacklist Substitution)"]
        assert is_oll_complete(s.state)


class TestLearning:
    def test_setup_completions_become_runtime_finisher(self, context, store, sune_state):
        context.database.reclassify(27, Classification.SETUP, "manual")
        first = solve_oll(sune_state, context)
        assert first.is_oll_complete
        assert first.applied_algorithms[0].classification == Classification.SETUP.value
        assert "01011011" not in context.runtime_finishers

        solve_oll(sune_state, context)
        assert context.runtime_finishers["01011011"] == "U' " + SUNE
        assert store.load_runtime_finishers()["01011011"] == "U' " + SUNE

    def test_micro_finisher_runs_before_selection(self, store):
        context = SolverContext.create(config=OLLConfig(micro_finisher_min_score=5), store=store)
        result = solve_oll(_after("R"), context)
        assert result.is_oll_complete
        assert result.attempts == 1
        [applied] = result.applied_algorithms
        assert applied.name == "Heuristic Micro-Finisher"
        assert applied.algorithm == "R'"

    def test_low_score_goes_to_the_database(self, context):
        # the R state is a rotation of case 201's pattern
        result = solve_oll(_after("R"), context)
        assert result.applied_algorithms[0].case == 201

    def test_rescue_search_before_stagnation_limit(self, context):
        solver = OLLSolver(context)
        s = _session(_after("R"))
        s.stagnation = context.config.stagnation_limit - 2
        assert solver._analyze(s) is Phase.DONE
        assert [a.name for a in s.applied] == ["Heuristic Finisher"]
        assert s.best_score == 8
        assert is_oll_complete(s.state)

    def test_stagnation_limit_aborts(self, context):
        solver = OLLSolver(context)
        s = _session(_after("R"))
        s.stagnation = context.config.stagnation_limit - 1
        assert solver._analyze(s) is Phase.ABORTED
        assert s.stagnated
        assert s.applied == []
        assert s.state == _after("R")


class TestSetupChaining:
    @staticmethod
    def _improved(context, chain: int):
        # R' takes the F R state (3/8) to the F state (5/8)
        solver = OLLSolver(context)
        s = _session(_after("F R"))
        s.setup_chain = chain
        s.selection = _Selection("R'", "Setup", 9500, Classification.SETUP)
        solver._apply(s)
        assert get_pattern(s.state) == "11111000"
        return solver, s

    def test_improving_setup_chains_without_an_attempt(self, context):
        solver, s = self._improved(context, chain=0)
        assert solver._verify(s) is Phase.ANALYZING
        assert s.setup_chain == 1
        assert s.attempts == 0

    def test_chain_is_capped(self, context):
        cap = context.config.max_setup_chain
        solver, s = self._improved(context, chain=cap)
        assert solver._verify(s) is Phase.PLATEAU_HANDLING
        assert s.setup_chain == cap


class TestPlateauLadder:
    """Order: static finisher, heuristic, planner, deep composite planner."""

    @staticmethod
    def _plateau(context, previous: int = 0):
        s = _session(_after("R"))
        s.post_pattern, s.post_score = s.pattern, s.score
        s.plateau_counts[s.key] = previous
        s.selection = _Selection(FALLBACK_SETUPS[0], "Setup Move 1", FALLBACK_SETUPS[0], Classification.UNKNOWN)
        return OLLSolver(context)._plateau(s), s

    @staticmethod
    def _context(store, **config) -> SolverContext:
        context = SolverContext.create(config=OLLConfig(**config), store=store)
        context.static_finishers = {}
        return context

    def test_static_finisher_first(self, store):
        context = self._context(store)
        key, algorithm = normalize_to_canonical("11010110", "R'")
        context.static_finishers[key] = algorithm
        phase, s = self._plateau(context)
        assert phase is Phase.DONE
        assert [(a.name, a.algorithm) for a in s.applied] == [("Static Plateau Finisher", "R'")]
        assert list(store.iter_metrics())[-1]["case_id"] == "plateau"

    def test_heuristic_without_static_finisher(self, store):
        context = self._context(store)
        phase, s = self._plateau(context)
        assert phase is Phase.DONE
        assert [a.name for a in s.applied] == ["Heuristic Plateau Finisher"]
        # the completion counts towards promotion
        assert context.promotion_counts[normalize_to_canonical("11010110", "R'")] == 1

    def test_planner_after_heuristic(self, store):
        phase, s = self._plateau(self._context(store, plateau_depth=0))
        assert phase is Phase.DONE
        assert [a.name for a in s.applied] == ["Planner Completion"]
        assert list(store.iter_metrics())[-1]["case_id"] == "planner"

    def test_deep_planner_on_repeated_plateau(self, store):
        context = self._context(store, plateau_depth=0, planner_depth=0)
        phase, s = self._plateau(context, previous=1)
        assert phase is Phase.DONE
        assert [a.name for a in s.applied] == ["Planner Deep Completion"]
        assert is_oll_complete(s.state)

    def test_deep_planner_waits_for_second_plateau(self, store):
        context = self._context(store, plateau_depth=0, planner_depth=0)
        phase, s = self._plateau(context)
        assert phase is Phase.ANALYZING
        assert s.applied == []
        assert s.attempts == 1
        assert s.state == _after("R")
