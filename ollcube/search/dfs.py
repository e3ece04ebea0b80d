from __future__ import annotations

import logging
from typing import Optional, Sequence

import numpy as np

from ollcube.core.cube_state import CubeState
from ollcube.oll.config import DEFAULT_MOVES
from ollcube.oll.pattern import COMPLETE_MASK, batch_masks, stickers_mask
from ollcube.search.base import OLLSearch, SearchResult

logger = logging.getLogger(__name__)


class _BudgetExhausted(Exception):
    pass


class IterativeDeepeningSearch(OLLSearch):
    """
    Depth-first search with increasing depth limits ``1..max_depth``.

    Consecutive turns of the same face are pruned, which removes immediate
    inverses and trivial duplicates. The first path found at the shallowest
    depth is returned.
    """

    name = "iddfs"

    def __init__(
        self,
        max_depth: int = 7,
        moves: Sequence[str] = DEFAULT_MOVES,
        node_budget: Optional[int] = None,
        **kwargs,
    ):
        super().__init__(max_depth, moves, **kwargs)
        self.node_budget = node_budget
        self._faces = [m[0] for m in self.moves]
        self._expanded = 0

    def search(self, state: CubeState) -> SearchResult:
        self._start_clock()
        self._expanded = 0
        if stickers_mask(state.stickers) == COMPLETE_MASK:
            return self._success([], 0, best_score=8)
        path: list[str] = []
        try:
            for limit in range(1, self.max_depth + 1):
                if self._dfs(state.stickers, path, None, limit):
                    logger.debug("IDDFS solved at depth %d: %s", len(path), " ".join(path))
                    return self._success(path, self._expanded)
        except _BudgetExhausted:
            logger.debug("IDDFS node budget of %d exhausted", self.node_budget)
            return self._failure(self._expanded, exhausted_budget=True)
        return self._failure(self._expanded)

    def _dfs(self, stickers: np.ndarray, path: list[str], last_face: Optional[str], remaining: int) -> bool:
        children = self._neighbours(stickers)
        masks = batch_masks(children)
        for j, token in enumerate(self.moves):
            face = self._faces[j]
            if face == last_face:
                continue
            if self.node_budget is not None and self._expanded >= self.node_budget:
                raise _BudgetExhausted()
            self._expanded += 1
            path.append(token)
            if masks[j] == COMPLETE_MASK:
                return True
            if remaining > 1 and self._dfs(children[j], path, face, remaining - 1):
                return True
            path.pop()
        return False
