"""
ollcube: last-layer orientation for the 3x3x3 cube

A facelet cube engine with JAX-batched move expansion, a case registry keyed by
rotation-canonical orientation patterns, bounded searches and a solver that
learns new finishers from its own completions.
"""

import logging

from ollcube.core import CubeState, apply_moves, invert_algorithm, parse_moves
from ollcube.errors import (
    ClassificationError,
    InvalidStateError,
    MalformedMoveError,
    OLLCubeError,
    UnknownMoveError,
)
from ollcube.oll import (
    Classification,
    OLLConfig,
    OLLDatabase,
    OLLSolver,
    OLLSolveResult,
    SolverContext,
    analyze_oll_state,
    canonical,
    get_pattern,
    solve_oll,
)
from ollcube.search import (
    HeuristicSearch,
    IterativeDeepeningSearch,
    PlannerSearch,
    ProducerSearch,
    SearchResult,
)
from ollcube.storage import OLLStore

logging.getLogger(__name__).addHandler(logging.NullHandler())

__version__ = "0.1.0"

__all__ = [
    # Cube engine
    "CubeState",
    "apply_moves",
    "invert_algorithm",
    "parse_moves",
    # Orientation
    "Classification",
    "OLLConfig",
    "OLLDatabase",
    "OLLSolver",
    "OLLSolveResult",
    "SolverContext",
    "analyze_oll_state",
    "canonical",
    "get_pattern",
    "solve_oll",
    # Searches
    "HeuristicSearch",
    "IterativeDeepeningSearch",
    "PlannerSearch",
    "ProducerSearch",
    "SearchResult",
    # Persistence
    "OLLStore",
    # Errors
    "OLLCubeError",
    "MalformedMoveError",
    "UnknownMoveError",
    "ClassificationError",
    "InvalidStateError",
]
