"""
Orientation of the last layer: patterns, the case registry and the solver.
"""

from ollcube.oll.pattern import (
    COMPLETE_PATTERN,
    OLLAnalysis,
    adapt_algorithm_for_rotation,
    analyze_oll_state,
    canonical,
    canonical_key,
    get_pattern,
    is_oll_complete,
    normalize_to_canonical,
    orientation_score,
    rotate_u,
)
from ollcube.oll.cases import CaseMatch, Classification, OLLCase, OLLDatabase, rotate_algorithm
from ollcube.oll.config import IntegrityConfig, IntegrityOverride, OLLConfig
from ollcube.oll.context import SolverContext, get_default_context, set_default_context
from ollcube.oll.solver import AppliedAlgorithm, OLLSolver, OLLSolveResult, Phase, solve_oll

__all__ = [
    "COMPLETE_PATTERN",
    "OLLAnalysis",
    "adapt_algorithm_for_rotation",
    "analyze_oll_state",
    "canonical",
    "canonical_key",
    "get_pattern",
    "is_oll_complete",
    "normalize_to_canonical",
    "orientation_score",
    "rotate_u",
    "CaseMatch",
    "Classification",
    "OLLCase",
    "OLLDatabase",
    "rotate_algorithm",
    "IntegrityConfig",
    "IntegrityOverride",
    "OLLConfig",
    "SolverContext",
    "get_default_context",
    "set_default_context",
    "AppliedAlgorithm",
    "OLLSolver",
    "OLLSolveResult",
    "Phase",
    "solve_oll",
]
