from __future__ import annotations

import logging
from typing import Optional, Sequence

import numpy as np

from ollcube.core.cube_state import CubeState
from ollcube.oll.config import DEFAULT_MOVES
from ollcube.oll.pattern import CANONICAL_TABLE, COMPLETE_MASK, POPCOUNT_TABLE, stickers_mask
from ollcube.search.base import OLLSearch, SearchResult

logger = logging.getLogger(__name__)


class HeuristicSearch(OLLSearch):
    """
    Breadth-first search guided by the orientation score.

    A child whose score falls more than ``allow_regression`` below the best
    score seen so far is pruned. States are deduplicated by canonical pattern,
    keeping the shallowest depth at which each was reached. Each level is
    expanded in one batched call; children are then visited in the same order
    a FIFO queue would produce them.
    """

    name = "heuristic"

    def __init__(
        self,
        max_depth: int = 12,
        moves: Sequence[str] = DEFAULT_MOVES,
        allow_regression: int = 1,
        node_budget: Optional[int] = None,
        **kwargs,
    ):
        super().__init__(max_depth, moves, **kwargs)
        self.allow_regression = allow_regression
        self.node_budget = node_budget

    def search(self, state: CubeState) -> SearchResult:
        self._start_clock()
        start_mask = stickers_mask(state.stickers)
        if start_mask == COMPLETE_MASK:
            return self._success([], 0, best_score=8)
        best = int(POPCOUNT_TABLE[start_mask])
        visited = {int(CANONICAL_TABLE[start_mask]): 0}
        frontier: list[tuple[np.ndarray, tuple[str, ...]]] = [(state.stickers, ())]
        depth = 0
        while frontier and depth < self.max_depth:
            if self.node_budget is not None and len(visited) >= self.node_budget:
                return self._failure(len(visited), best_score=best, exhausted_budget=True)
            children, masks = self.table.expand(np.stack([s for s, _ in frontier]), self.moves)
            next_frontier = []
            for i, (_, path) in enumerate(frontier):
                for j, token in enumerate(self.moves):
                    mask = int(masks[i, j])
                    score = int(POPCOUNT_TABLE[mask])
                    if score < best - self.allow_regression:
                        continue
                    best = max(best, score)
                    new_path = path + (token,)
                    if mask == COMPLETE_MASK:
                        logger.debug("Heuristic search solved at depth %d", len(new_path))
                        return self._success(new_path, len(visited), best_score=8)
                    canon = int(CANONICAL_TABLE[mask])
                    previous = visited.get(canon)
                    if previous is not None and previous <= len(new_path):
                        continue
                    visited[canon] = len(new_path)
                    next_frontier.append((children[i, j], new_path))
            frontier = next_frontier
            depth += 1
        return self._failure(len(visited), best_score=best)
