from __future__ import annotations

import logging
from collections import deque
from typing import Optional, Sequence

from ollcube.core.cube_state import CubeState
from ollcube.oll.pattern import COMPLETE_MASK, POPCOUNT_TABLE, batch_masks, stickers_mask
from ollcube.search.base import OLLSearch, SearchResult

logger = logging.getLogger(__name__)

PLANNER_MOVES = ("R", "R'", "U", "U'", "F", "F'", "r", "r'", "f", "f'", "U2", "R2", "F2")

COMPOSITE_SEEDS = (
    ("R", "U"), ("R", "U'"), ("U", "R"), ("U'", "R"),
    ("F", "R"), ("R", "F'"), ("r", "U"), ("r", "U'"),
    ("f", "R"), ("R", "f'"), ("R", "F"), ("F", "U"), ("U", "F"),
    ("R", "U2"), ("U2", "R"), ("R2", "U"), ("U", "R2"),
)


class PlannerSearch(OLLSearch):
    """
    Breadth-limited completion planner for plateau states.

    Nodes are deduplicated by ``(pattern, depth)`` and the search gives up once
    more than ``limit`` nodes have been queued. In composite mode the queue is
    seeded with two-move openers before the root is expanded.
    """

    name = "planner"

    def __init__(
        self,
        max_depth: int = 5,
        moves: Sequence[str] = PLANNER_MOVES,
        limit: int = 2000,
        composite: bool = False,
        **kwargs,
    ):
        super().__init__(max_depth, moves, **kwargs)
        self.limit = limit
        self.composite = composite

    def search(self, state: CubeState, composite: Optional[bool] = None) -> SearchResult:
        self._start_clock()
        composite = self.composite if composite is None else composite
        start_mask = stickers_mask(state.stickers)
        if start_mask == COMPLETE_MASK:
            return self._success([], 0, best_score=8)
        best = int(POPCOUNT_TABLE[start_mask])
        seen = {(start_mask, 0)}
        queue = deque([(state.stickers, ())])
        if composite:
            for seed in COMPOSITE_SEEDS:
                stickers = state.stickers[self.table.sequence_permutation(" ".join(seed))]
                key = (stickers_mask(stickers), len(seed))
                if key in seen:
                    continue
                seen.add(key)
                queue.append((stickers, seed))
        explored = 0
        while queue:
            stickers, seq = queue.popleft()
            if seq and stickers_mask(stickers) == COMPLETE_MASK:
                logger.debug("Planner completion after %d explored: %s", explored, " ".join(seq))
                return self._success(seq, explored, best_score=8)
            if len(seq) >= self.max_depth:
                continue
            children = self._neighbours(stickers)
            masks = batch_masks(children)
            for j, token in enumerate(self.moves):
                mask = int(masks[j])
                key = (mask, len(seq) + 1)
                if key in seen:
                    continue
                seen.add(key)
                best = max(best, int(POPCOUNT_TABLE[mask]))
                queue.append((children[j], seq + (token,)))
                explored += 1
                if explored > self.limit:
                    return self._failure(explored, best_score=best, exhausted_budget=True)
        return self._failure(explored, best_score=best)
