from __future__ import annotations

import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional, Sequence

import numpy as np

from ollcube.core.moves import MOVES, MoveTable, parse_move
from ollcube.oll.config import DEFAULT_MOVES

__all__ = ["SearchResult", "OLLSearch"]


@dataclass(frozen=True)
class SearchResult:
    """Outcome of a bounded search, with diagnostics on failure."""

    success: bool
    algorithm: Optional[str] = None
    depth: int = 0
    expanded: int = 0
    elapsed: float = 0.0
    best_score: Optional[int] = None
    producing_algorithm: Optional[str] = None
    exhausted_budget: bool = False

    @property
    def moves(self) -> list[str]:
        return self.algorithm.split() if self.algorithm else []


class OLLSearch(ABC):
    """
    Base class for the bounded orientation searches.

    Subclasses explore sequences over a fixed move alphabet up to ``max_depth``
    moves and must terminate on every input.
    """

    name: str = "search"

    def __init__(
        self,
        max_depth: int,
        moves: Sequence[str] = DEFAULT_MOVES,
        table: MoveTable = MOVES,
    ):
        if max_depth < 0:
            raise ValueError(f"max_depth must be non-negative, got {max_depth}")
        self.max_depth = max_depth
        self.moves = tuple(moves)
        self.table = table
        self._perms = np.stack(
            [table.permutation(m.face, m.turns) for m in map(self._parse, self.moves)]
        )
        self._started = 0.0

    @staticmethod
    def _parse(token: str):
        return parse_move(token, strict=True)

    def _start_clock(self) -> None:
        self._started = time.perf_counter()

    def _elapsed(self) -> float:
        return time.perf_counter() - self._started

    def _neighbours(self, stickers: np.ndarray) -> np.ndarray:
        """``(len(moves), 54)`` children of one sticker array."""
        return stickers[self._perms]

    def _success(self, path: Sequence[str], expanded: int, **kwargs) -> SearchResult:
        return SearchResult(
            success=True,
            algorithm=" ".join(path),
            depth=len(path),
            expanded=expanded,
            elapsed=self._elapsed(),
            **kwargs,
        )

    def _failure(self, expanded: int, **kwargs) -> SearchResult:
        return SearchResult(success=False, expanded=expanded, elapsed=self._elapsed(), **kwargs)

    @abstractmethod
    def search(self, *args, **kwargs) -> SearchResult:
        """Run the search and report a :class:`SearchResult`."""

    def __repr__(self) -> str:
        return f"{type(self).__name__}(max_depth={self.max_depth}, moves={len(self.moves)})"
