"""
Offline discovery: candidate validation, reverse mining, synthetic states and
promotion of unknown patterns into derived cases.
"""

from ollcube.discovery.metrics import CaseMetrics, summarize_metrics
from ollcube.discovery.mining import BASE_ALGORITHMS, derive_algorithm_for_pattern, mine_patterns
from ollcube.discovery.promote import DiscoveryReport, derive_missing_patterns, promote_unknown_patterns
from ollcube.discovery.synthetic import SOURCE_ALGS, SyntheticState, batch_synthetic_states, generate_synthetic_state
from ollcube.discovery.validation import CandidateValidation, validate_candidate

__all__ = [
    "CaseMetrics",
    "summarize_metrics",
    "BASE_ALGORITHMS",
    "derive_algorithm_for_pattern",
    "mine_patterns",
    "DiscoveryReport",
    "derive_missing_patterns",
    "promote_unknown_patterns",
    "SOURCE_ALGS",
    "SyntheticState",
    "batch_synthetic_states",
    "generate_synthetic_state",
    "CandidateValidation",
    "validate_candidate",
]
