"""
Cube state and move engine.

This module provides the facelet representation and the permutation-based move algebra.
"""

from ollcube.core.cube_state import FACES, CubeState, integrity_diff
from ollcube.core.moves import (
    MOVES,
    MoveApplication,
    MoveTable,
    ParsedMove,
    apply_move,
    apply_moves,
    count_moves,
    invert_algorithm,
    parse_move,
    parse_moves,
)

__all__ = [
    "FACES",
    "CubeState",
    "integrity_diff",
    "MOVES",
    "MoveApplication",
    "MoveTable",
    "ParsedMove",
    "apply_move",
    "apply_moves",
    "count_moves",
    "invert_algorithm",
    "parse_move",
    "parse_moves",
]
