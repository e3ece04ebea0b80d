from __future__ import annotations

import logging
from typing import Sequence

import numpy as np

from ollcube.core.cube_state import CubeState
from ollcube.core.moves import invert_algorithm
from ollcube.oll.config import DEFAULT_MOVES
from ollcube.oll.pattern import pattern_to_mask, stickers_mask
from ollcube.search.base import OLLSearch, SearchResult

logger = logging.getLogger(__name__)


class ProducerSearch(OLLSearch):
    """
    Breadth-first search from the solved cube for a sequence producing a pattern.

    The inverse of the producing sequence solves that pattern, so the result
    carries both: ``producing_algorithm`` and ``algorithm`` (its inverse).
    Nodes are deduplicated by pattern.
    """

    name = "producer"

    def __init__(self, max_depth: int = 8, moves: Sequence[str] = DEFAULT_MOVES, **kwargs):
        super().__init__(max_depth, moves, **kwargs)

    def search(self, target_pattern: str) -> SearchResult:
        self._start_clock()
        target = pattern_to_mask(target_pattern)
        solved = CubeState.solved()
        root_mask = stickers_mask(solved.stickers)
        if root_mask == target:
            return self._success([], 0, producing_algorithm="")
        visited = {root_mask}
        frontier: list[tuple[np.ndarray, tuple[str, ...]]] = [(solved.stickers, ())]
        depth = 0
        while frontier and depth < self.max_depth:
            children, masks = self.table.expand(np.stack([s for s, _ in frontier]), self.moves)
            next_frontier = []
            for i, (_, path) in enumerate(frontier):
                for j, token in enumerate(self.moves):
                    mask = int(masks[i, j])
                    if mask == target:
                        producing = " ".join(path + (token,))
                        logger.debug("Produced %s with %s", target_pattern, producing)
                        return SearchResult(
                            success=True,
                            algorithm=invert_algorithm(producing),
                            depth=len(path) + 1,
                            expanded=len(visited),
                            elapsed=self._elapsed(),
                            producing_algorithm=producing,
                        )
                    if mask not in visited:
                        visited.add(mask)
                        next_frontier.append((children[i, j], path + (token,)))
            frontier = next_frontier
            depth += 1
        return self._failure(len(visited))
