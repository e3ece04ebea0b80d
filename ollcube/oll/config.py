from __future__ import annotations

from dataclasses import dataclass, field
from typing import Mapping, Optional

DEFAULT_MOVES = ("R", "R'", "R2", "U", "U'", "U2", "F", "F'", "F2")
EXTENDED_MOVES = DEFAULT_MOVES + ("r", "r'", "r2", "f", "f'", "f2")

# Ordered setup table for unknown patterns during the first attempts.
FALLBACK_SETUPS = (
    "F R U R' U' F'",
    "R U R' U R U2 R'",
    "F U R U' R' F'",
)

EMERGENCY_POOL = (
    "R U R' U R U2 R'",
    "F R U R' U' F'",
    "r U R' U' r' F R F'",
)

# Known plateau finishers. Keys are canonicalized when loaded.
STATIC_FINISHERS = {
    "01111010": "r U R' U' r' F R F'",
    "01111111": "R U R' U' R' F R F'",
    "01011111": "R U R' U R U2 R' F R U R' U' F'",
    "01011010": "F R U R' U' F' U R U2 R' U' R U' R'",
    "11001010": "F R' F' R U R U' R'",
    "11011000": "r U R' U' r' R U R U' R'",
}


@dataclass(frozen=True)
class IntegrityOverride:
    base: Optional[int] = None
    high: Optional[int] = None
    budget_multiplier: Optional[float] = None


@dataclass(frozen=True)
class IntegrityConfig:
    """Tolerance for F2L signature drift after fallback or emergency algorithms."""

    base: int = 4
    high_orientation: int = 6
    high_orientation_threshold: int = 6
    cumulative_budget: float = 8
    overrides: Mapping[str, IntegrityOverride] = field(default_factory=dict)

    def allowed_diff(self, canonical_key: Optional[str], post_score: int) -> int:
        high = post_score >= self.high_orientation_threshold
        allowed = self.high_orientation if high else self.base
        override = self.overrides.get(canonical_key) if canonical_key else None
        if override is not None:
            if high and override.high is not None:
                allowed = override.high
            elif override.base is not None:
                allowed = override.base
        return allowed

    def budget(self, canonical_key: Optional[str]) -> float:
        override = self.overrides.get(canonical_key) if canonical_key else None
        if override is not None and override.budget_multiplier:
            return self.cumulative_budget * override.budget_multiplier
        return self.cumulative_budget


@dataclass(frozen=True)
class OLLConfig:
    max_attempts: int = 10
    stagnation_limit: int = 3
    promotion_confirmations: int = 2
    max_setup_chain: int = 2
    finisher_downgrade_threshold: int = 3
    finisher_blacklist_threshold: int = 2
    fallback_attempts: int = 3
    session_demotion_threshold: int = 2
    capture_id_start: int = 9100
    integrity: IntegrityConfig = field(default_factory=IntegrityConfig)

    # heuristic search depths per trigger
    micro_finisher_depth: int = 6
    micro_finisher_min_score: int = 7
    mid_stage_depth: int = 10
    mid_stage_min_score: int = 6
    rescue_depth: int = 12
    substitution_depth: int = 12
    escalation_depth: int = 14
    plateau_depth: int = 14
    capture_depth: int = 14
    allow_regression: int = 2

    planner_depth: int = 5
    planner_deep_depth: int = 7
    planner_limit: int = 2000

    # startup demotion from recorded metrics
    batch_demotion_min_attempts: int = 5
    batch_demotion_max_improvement_rate: float = 0.2

    @property
    def max_iterations(self) -> int:
        """Hard cap on loop iterations, including those that do not consume an attempt."""
        return self.max_attempts * (self.max_setup_chain + 2)
