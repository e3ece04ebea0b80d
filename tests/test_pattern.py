import numpy as np
import pytest

from ollcube.core.moves import apply_moves
from ollcube.oll.cases import OLLDatabase
from ollcube.oll.pattern import (
    CANONICAL_TABLE,
    COMPLETE_PATTERN,
    adapt_algorithm_for_rotation,
    analyze_oll_state,
    batch_masks,
    canonical,
    canonical_key,
    equivalent,
    get_pattern,
    is_oll_complete,
    mask_to_pattern,
    normalize_to_canonical,
    orientation_score,
    pattern_rotations,
    pattern_to_mask,
    rotate_u,
)

ALL_PATTERNS = [mask_to_pattern(m) for m in range(256)]


def test_solved_pattern_is_complete(solved):
    assert get_pattern(solved) == COMPLETE_PATTERN
    assert is_oll_complete(solved)


def test_sune_setup_pattern(sune_state):
    assert get_pattern(sune_state) == "01111010"
    assert orientation_score("01111010") == 5


def test_pattern_mask_round_trip():
    for pattern in ALL_PATTERNS:
        assert mask_to_pattern(pattern_to_mask(pattern)) == pattern
    for bad in ("0101", "0101010a", "111111111"):
        with pytest.raises(ValueError):
            pattern_to_mask(bad)


class TestRotation:
    def test_four_rotations_are_identity(self):
        for pattern in ALL_PATTERNS:
            assert rotate_u(pattern, 4) == pattern
            assert rotate_u(rotate_u(pattern, 3)) == pattern

    def test_rotation_preserves_score(self):
        for pattern in ALL_PATTERNS:
            assert orientation_score(rotate_u(pattern)) == orientation_score(pattern)

    def test_rotations_listing(self):
        rotations = pattern_rotations("01111010")
        assert [r for _, r in rotations] == [0, 1, 2, 3]
        assert rotations[0] == ("01111010", 0)
        assert rotations[1] == ("01011011", 1)


class TestCanonical:
    def test_known_canonical_form(self):
        assert canonical("01111010") == ("01011011", 1)
        assert canonical(COMPLETE_PATTERN) == (COMPLETE_PATTERN, 0)
        assert canonical("00000000") == ("00000000", 0)

    def test_canonical_is_rotation_invariant(self):
        for pattern in ALL_PATTERNS:
            key, rotation = canonical(pattern)
            assert rotate_u(pattern, rotation) == key
            assert canonical_key(rotate_u(pattern)) == key
            assert key == min(p for p, _ in pattern_rotations(pattern))

    def test_equivalence(self):
        assert equivalent("01111010", "01011011")
        assert not equivalent("01111010", "11111111")

    def test_table_is_idempotent(self):
        assert np.array_equal(CANONICAL_TABLE[CANONICAL_TABLE], CANONICAL_TABLE)


class TestAdaptation:
    def test_pre_strategy_prefixes_u_turns(self):
        assert adapt_algorithm_for_rotation("R U R'", 0) == "R U R'"
        assert adapt_algorithm_for_rotation("R U R'", 1) == "U R U R'"
        assert adapt_algorithm_for_rotation("R U R'", 2) == "U2 R U R'"
        assert adapt_algorithm_for_rotation("R U R'", 3) == "U' R U R'"

    def test_leading_u_turns_merge(self):
        assert adapt_algorithm_for_rotation("U R", 1) == "U2 R"
        assert adapt_algorithm_for_rotation("U' R", 1) == "R"
        assert adapt_algorithm_for_rotation("U2 R", 3) == "U R"

    def test_sandwich_strategy(self):
        assert adapt_algorithm_for_rotation("R", 1, "sandwich") == "U R U'"
        with pytest.raises(ValueError):
            adapt_algorithm_for_rotation("R", 1, "wrap")

    def test_normalized_algorithm_solves_canonical_orientation(self, sune_state):
        pattern = get_pattern(sune_state)
        key, normalized = normalize_to_canonical(pattern, "R U2 R' U' R U' R'")
        _, rotation = canonical(pattern)
        apply_moves(sune_state, " ".join(["U"] * rotation))
        assert get_pattern(sune_state) == key
        apply_moves(sune_state, normalized)
        assert is_oll_complete(sune_state)


def test_batch_masks_matches_single_states(solved, sune_state):
    masks = batch_masks(np.stack([solved.stickers, sune_state.stickers]))
    assert [mask_to_pattern(m) for m in masks] == [COMPLETE_PATTERN, "01111010"]


def test_analyze_oll_state(solved, sune_state):
    analysis = analyze_oll_state(solved)
    assert analysis.is_complete
    assert (analysis.oriented_edges, analysis.oriented_corners) == (4, 4)
    assert analysis.match is None

    analysis = analyze_oll_state(sune_state, OLLDatabase())
    assert not analysis.is_complete
    assert analysis.total_oriented == 5
    assert analysis.match.case.id == 27
    assert analysis.match.rotation == 0
