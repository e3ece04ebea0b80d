import pytest

from ollcube.core.cube_state import CubeState
from ollcube.core.moves import apply_moves, invert_algorithm
from ollcube.discovery.validation import validate_candidate
from ollcube.errors import ClassificationError
from ollcube.oll.cases import (
    PLACEHOLDER_PATTERNS,
    SEED_CASES,
    CaseMatch,
    Classification,
    OLLCase,
    OLLDatabase,
    rotate_algorithm,
)
from ollcube.oll.pattern import get_pattern, is_oll_complete, rotate_u

SUNE = "R U2 R' U' R U' R'"


def _after(moves: str) -> CubeState:
    state = CubeState.solved()
    apply_moves(state, moves)
    return state


@pytest.fixture
def db():
    return OLLDatabase()


class TestRotateAlgorithm:
    def test_identity_rotation(self):
        assert rotate_algorithm(SUNE, 0) == SUNE
        assert rotate_algorithm(SUNE, 4) == SUNE

    def test_face_maps(self):
        assert rotate_algorithm("R U R'", 1) == "F U F'"
        assert rotate_algorithm("R F L B", 2) == "L B R F"
        assert rotate_algorithm("R F L B", 3) == "B R F L"

    def test_wide_moves_follow_their_face(self):
        assert rotate_algorithm("r U R' U' r' F R F'", 1) == "f U F' U' f' L F L'"

    def test_untouched_tokens(self):
        assert rotate_algorithm("U D M x y2", 1) == "U D M x y2"
        assert rotate_algorithm("R ?? U", 2) == "L ?? U"


class TestClassification:
    def test_transition_rule(self):
        assert Classification.UNKNOWN.can_become(Classification.FINISHER)
        assert Classification.UNKNOWN.can_become(Classification.SETUP)
        assert Classification.FINISHER.can_become(Classification.SETUP)
        assert not Classification.SETUP.can_become(Classification.FINISHER)
        assert not Classification.FINISHER.can_become(Classification.UNKNOWN)

    def test_reclassify_enforces_rule(self, db):
        db.reclassify(27, Classification.FINISHER)
        demoted = db.reclassify(27, Classification.SETUP, "never completes")
        assert demoted.auto_demoted
        assert demoted.demote_reason == "never completes"
        with pytest.raises(ClassificationError) as excinfo:
            db.reclassify(27, Classification.FINISHER)
        assert excinfo.value.case_id == 27

    def test_same_classification_is_a_no_op(self, db):
        case = db.reclassify(27, Classification.FINISHER)
        assert db.reclassify(27, Classification.FINISHER) is case

    def test_unknown_case_id(self, db):
        with pytest.raises(KeyError):
            db.reclassify(12345, Classification.SETUP)


class TestMatching:
    def test_direct_match(self, db):
        match = db.match_pattern("01111010")
        assert match.case.id == 27
        assert match.rotation == 0
        assert match.algorithm == SUNE

    def test_rotated_match_uses_face_map(self, db):
        match = db.match_pattern(rotate_u("01111010", 1))
        assert match.case.id == 27
        assert match.rotation == 1
        assert match.algorithm == "F U2 F' U' F U' F'"
        assert match.aligned_algorithm == "U' " + SUNE

    def test_face_mapped_sune_misses_rotated_state(self, db):
        state = _after(invert_algorithm(SUNE) + " U")
        match = db.match_pattern(get_pattern(state))
        assert (match.case.id, match.rotation) == (27, 1)
        apply_moves(state, match.algorithm)
        # lands on another rotation of the Sune pattern instead of orienting
        assert get_pattern(state) == "11011010"

    @pytest.mark.parametrize("turns", [1, 2, 3])
    def test_aligned_algorithm_orients_rotated_case_states(self, turns):
        for case in SEED_CASES:
            if not (case.enabled and case.algorithm):
                continue
            state = _after(invert_algorithm(case.algorithm) + " U" * turns)
            match = CaseMatch(case, turns, rotate_algorithm(case.algorithm, turns))
            apply_moves(state, match.aligned_algorithm)
            assert is_oll_complete(state), (case.name, turns)

    def test_first_registered_case_wins(self, db):
        # Pi-OLL's pattern is a rotation of Sune's, which is registered first
        assert db.match_pattern("01011011").case.id == 27

    def test_disabled_cases_do_not_match(self, db):
        for pattern in PLACEHOLDER_PATTERNS:
            case = db.find_by_pattern(pattern)
            assert case is not None and not case.enabled
            assert db.find_by_pattern(pattern, include_disabled=False) is None

    def test_unmatched_pattern(self, db):
        assert db.match_pattern("10000000") is None

    def test_seed_algorithms_orient_their_own_inverse(self):
        for case in SEED_CASES:
            if case.algorithm and case.enabled:
                assert validate_candidate(case.algorithm).after_solved, case.name


class TestRegistration:
    def test_register_new_case(self, db):
        size = len(db)
        entry = OLLCase(9100, "10000000", "R U R'", "Captured", verified=False)
        assert db.register_case(entry) is entry
        assert len(db) == size + 1
        assert db.get(9100) is entry
        assert "10000000" in db.patterns()

    def test_existing_enabled_pattern_is_kept(self, db):
        existing = db.find_by_pattern("01111010")
        returned = db.register_case(OLLCase(9101, "01111010", "R", "Duplicate"))
        assert returned is existing
        assert db.get(9101) is None

    def test_placeholder_is_replaced_in_place(self, db):
        size = len(db)
        entry = OLLCase(8000, "01110010", "R U R' U R U2 R'", "Derived")
        db.register_case(entry)
        assert len(db) == size
        assert db.get(901) is None
        assert db.find_by_pattern("01110010") is entry

    def test_invalid_pattern_rejected(self, db):
        with pytest.raises(ValueError):
            db.register_case(OLLCase(1, "0101", "R", "Bad"))

    def test_next_free_id(self, db):
        assert db.next_free_id(9100) == 9100
        db.register_case(OLLCase(9100, "10000000", "", "Placeholder", enabled=False))
        assert db.next_free_id(9100) == 9101
