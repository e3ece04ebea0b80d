from __future__ import annotations

from typing import NamedTuple

import chex
import jax

from ollcube.core.cube_state import CubeState
from ollcube.core.moves import apply_moves, invert_algorithm
from ollcube.oll.pattern import get_pattern

# Last-layer algorithms; composing their inverses keeps F2L solved.
SOURCE_ALGS = (
    "R U2 R' U' R U' R'",
    "R U R' U R U2 R'",
    "F R U R' U' F'",
    "r U R' U' r' F R F'",
)


class SyntheticState(NamedTuple):
    state: CubeState
    pattern: str
    scramble: str


def generate_synthetic_state(key: chex.PRNGKey, depth: int = 2) -> SyntheticState:
    """Orientation-only scramble built from ``depth`` inverses drawn with ``key``."""
    indices = jax.random.randint(key, (depth,), 0, len(SOURCE_ALGS))
    state = CubeState.solved()
    scramble = []
    for idx in indices.tolist():
        inverse = invert_algorithm(SOURCE_ALGS[idx])
        apply_moves(state, inverse)
        scramble.append(inverse)
    return SyntheticState(state, get_pattern(state), " ".join(scramble))


def batch_synthetic_states(key: chex.PRNGKey, count: int = 20, depth: int = 2) -> list[SyntheticState]:
    return [generate_synthetic_state(k, depth) for k in jax.random.split(key, count)]
