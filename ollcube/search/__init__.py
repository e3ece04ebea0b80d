"""
Bounded searches over orientation patterns.

All strategies share :class:`OLLSearch` and report a :class:`SearchResult`.
"""

from ollcube.search.base import OLLSearch, SearchResult
from ollcube.search.dfs import IterativeDeepeningSearch
from ollcube.search.heuristic import HeuristicSearch
from ollcube.search.planner import COMPOSITE_SEEDS, PLANNER_MOVES, PlannerSearch
from ollcube.search.producer import ProducerSearch

__all__ = [
    "OLLSearch",
    "SearchResult",
    "IterativeDeepeningSearch",
    "HeuristicSearch",
    "PlannerSearch",
    "ProducerSearch",
    "COMPOSITE_SEEDS",
    "PLANNER_MOVES",
]
