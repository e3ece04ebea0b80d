"""
Reverse mining of orientation patterns.

Every base algorithm undone from a solved cube (after each of the four U
pre-twists) yields a state whose pattern that algorithm orients.
"""

from __future__ import annotations

from typing import Dict, List, Mapping, Optional, Sequence

from ollcube.core.cube_state import CubeState
from ollcube.core.moves import apply_moves, invert_algorithm
from ollcube.oll.pattern import get_pattern

BASE_ALGORITHMS = (
    "R U2 R' U' R U' R'",  # Sune
    "L' U2 L U L' U L",  # Anti-Sune
    "F R U R' U' F'",  # T
    "r U R' U' r' F R F'",  # L-shape
)

PRE_TWISTS = ("", "U", "U2", "U'")


def mine_patterns(base_algorithms: Sequence[str] = BASE_ALGORITHMS) -> Dict[str, List[str]]:
    """Map each reachable pattern to the base algorithms that orient it, in discovery order."""
    mined: Dict[str, List[str]] = {}
    for twist in PRE_TWISTS:
        for base in base_algorithms:
            state = CubeState.solved()
            if twist:
                apply_moves(state, twist)
            apply_moves(state, invert_algorithm(base))
            algorithms = mined.setdefault(get_pattern(state), [])
            if base not in algorithms:
                algorithms.append(base)
    return mined


def derive_algorithm_for_pattern(pattern: str, mined: Mapping[str, Sequence[str]]) -> Optional[str]:
    algorithms = mined.get(pattern)
    if not algorithms:
        return None
    return min(algorithms, key=lambda alg: len(alg.split()))
