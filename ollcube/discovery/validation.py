from __future__ import annotations

from typing import NamedTuple, Optional

from ollcube.core.cube_state import CubeState
from ollcube.core.moves import apply_moves, invert_algorithm
from ollcube.oll.pattern import canonical, get_pattern, is_oll_complete, pattern_rotations


class CandidateValidation(NamedTuple):
    ok: bool
    after_solved: bool
    derived_pattern: str
    canonical: str
    rotation_offset: int
    matches_expectation: bool


def validate_candidate(algorithm: str, expected_pattern: Optional[str] = None) -> CandidateValidation:
    """
    Check that ``algorithm`` orients the pattern its own inverse produces.

    The pattern reached from solved by the inverse is authoritative; an
    ``expected_pattern`` only has to match it up to U rotation, and
    ``rotation_offset`` reports the rotation that does.
    """
    state = CubeState.solved()
    apply_moves(state, invert_algorithm(algorithm))
    derived = get_pattern(state)
    matches, offset = True, 0
    if expected_pattern is not None:
        matches = False
        for rotated, r in pattern_rotations(expected_pattern):
            if rotated == derived:
                matches, offset = True, r
                break
    apply_moves(state, algorithm)
    after_solved = is_oll_complete(state)
    return CandidateValidation(
        ok=after_solved and matches,
        after_solved=after_solved,
        derived_pattern=derived,
        canonical=canonical(derived)[0],
        rotation_offset=offset,
        matches_expectation=matches,
    )
