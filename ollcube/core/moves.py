"""
Move parsing and the table-driven move engine.

Every move is compiled once into a permutation of the 54 sticker indices,
``new[k] = old[perm[k]]``. Face quarter turns come from a fixed face
rotation plus four 3-sticker cycles on the neighbouring faces; slices, whole
cube rotations and wide moves are compositions of signed face turns.
"""

from __future__ import annotations

import logging
import re
from typing import Iterable, NamedTuple, Optional, Sequence, Union

import chex
import jax
import jax.numpy as jnp
import numpy as np

from ollcube.core.cube_state import (
    CENTER,
    NUM_STICKERS,
    U_ORIENTATION_INDICES,
    CubeState,
    sticker_index,
)
from ollcube.errors import MalformedMoveError, UnknownMoveError
from ollcube.utils.util import pad_to_bucket

logger = logging.getLogger(__name__)

MOVE_PATTERN = re.compile(r"^([RLUDFBMESxyzrludfb])(['2])?$")

# Clockwise rotation of a face's own stickers: new[j] = old[FACE_ROTATION[j]].
FACE_ROTATION = (6, 3, 0, 7, 4, 1, 8, 5, 2)

# Group i receives the stickers previously held by group i - 1.
ADJACENT_CYCLES = {
    "R": (("U", (2, 5, 8)), ("F", (2, 5, 8)), ("D", (2, 5, 8)), ("B", (0, 3, 6))),
    "L": (("U", (0, 3, 6)), ("B", (8, 5, 2)), ("D", (0, 3, 6)), ("F", (0, 3, 6))),
    "U": (("B", (0, 1, 2)), ("R", (0, 1, 2)), ("F", (0, 1, 2)), ("L", (0, 1, 2))),
    "D": (("F", (6, 7, 8)), ("R", (6, 7, 8)), ("B", (6, 7, 8)), ("L", (6, 7, 8))),
    "F": (("U", (6, 7, 8)), ("R", (0, 3, 6)), ("D", (2, 1, 0)), ("L", (8, 5, 2))),
    "B": (("U", (2, 1, 0)), ("L", (0, 3, 6)), ("D", (6, 7, 8)), ("R", (8, 5, 2))),
}

# (component, sign): component is turned by sign * turns, in order.
COMPOSITE_MOVES = {
    "M": (("L", 1), ("R", -1)),
    "E": (("D", 1), ("U", -1)),
    "S": (("F", 1), ("B", -1)),
    "x": (("R", 1), ("M", -1), ("L", -1)),
    "y": (("U", 1), ("E", -1), ("D", -1)),
    "z": (("F", 1), ("S", 1), ("B", -1)),
    "r": (("R", 1), ("M", -1)),
    "l": (("L", 1), ("M", 1)),
    "u": (("U", 1), ("E", -1)),
    "d": (("D", 1), ("E", 1)),
    "f": (("F", 1), ("S", 1)),
    "b": (("B", 1), ("S", -1)),
}

_SUFFIX = {1: "", -1: "'", 2: "2"}
_U_WEIGHTS = np.array([1 << (7 - i) for i in range(8)], dtype=np.int32)


class ParsedMove(NamedTuple):
    face: str
    turns: int
    notation: str

    @classmethod
    def of(cls, face: str, turns: int) -> "ParsedMove":
        turns = turns % 4
        signed = {1: 1, 2: 2, 3: -1}.get(turns, 0)
        return cls(face, signed, face + _SUFFIX.get(signed, ""))

    def inverse(self) -> "ParsedMove":
        if self.turns == 2:
            return self
        return ParsedMove.of(self.face, -self.turns)


class MoveApplication(NamedTuple):
    success: bool
    move_count: int
    error: Optional[str] = None


def parse_move(token: str, *, strict: bool = False) -> Optional[ParsedMove]:
    """Parse one token; malformed tokens return ``None`` (or raise when ``strict``)."""
    match = MOVE_PATTERN.match(token)
    if match is None:
        if strict:
            raise MalformedMoveError(token)
        return None
    face, suffix = match.groups()
    turns = {None: 1, "'": -1, "2": 2}[suffix]
    return ParsedMove(face, turns, token)


def parse_moves(text: str, *, strict: bool = False) -> list[ParsedMove]:
    """Split ``text`` on whitespace and parse every token, skipping malformed ones."""
    moves = []
    for token in text.split():
        move = parse_move(token, strict=strict)
        if move is None:
            logger.warning("Skipping malformed move token '%s'", token)
            continue
        moves.append(move)
    return moves


def invert_algorithm(text: str) -> str:
    """Group inverse of a move sequence: reversed order, each token inverted."""
    return " ".join(move.inverse().notation for move in reversed(parse_moves(text)))


def count_moves(text: str) -> int:
    return len(parse_moves(text))


def same_face(previous: Optional[str], current: str) -> bool:
    """True when ``current`` turns the same face as ``previous``."""
    return previous is not None and previous[0] == current[0]


@jax.jit
def _expand(frontier: chex.Array, perms: chex.Array) -> tuple[chex.Array, chex.Array]:
    children = frontier[:, perms]
    u_indices = jnp.asarray(U_ORIENTATION_INDICES)
    centers = children[..., CENTER][..., None]
    oriented = (children[..., u_indices] == centers).astype(jnp.int32)
    masks = jnp.sum(oriented * jnp.asarray(_U_WEIGHTS), axis=-1)
    return children, masks


class MoveTable:
    """Compiled sticker permutations for every supported move."""

    def __init__(self):
        self._quarter = {face: self._quarter_turn(face) for face in ADJACENT_CYCLES}
        self._cache: dict[tuple[str, int], np.ndarray] = {}

    @staticmethod
    def _quarter_turn(face: str) -> np.ndarray:
        perm = np.arange(NUM_STICKERS, dtype=np.int32)
        for j, src in enumerate(FACE_ROTATION):
            perm[sticker_index(face, j)] = sticker_index(face, src)
        cycle = ADJACENT_CYCLES[face]
        for i, (dst_face, dst_positions) in enumerate(cycle):
            src_face, src_positions = cycle[i - 1]
            for dst, src in zip(dst_positions, src_positions):
                perm[sticker_index(dst_face, dst)] = sticker_index(src_face, src)
        return perm

    def permutation(self, face: str, turns: int) -> np.ndarray:
        turns = turns % 4
        cache_key = (face, turns)
        if cache_key in self._cache:
            return self._cache[cache_key]
        perm = np.arange(NUM_STICKERS, dtype=np.int32)
        if turns:
            if face in self._quarter:
                for _ in range(turns):
                    perm = perm[self._quarter[face]]
            elif face in COMPOSITE_MOVES:
                for component, sign in COMPOSITE_MOVES[face]:
                    perm = perm[self.permutation(component, sign * turns)]
            else:
                raise UnknownMoveError(face)
        perm.setflags(write=False)
        self._cache[cache_key] = perm
        return perm

    def sequence_permutation(self, moves: Union[str, Iterable[ParsedMove]]) -> np.ndarray:
        if isinstance(moves, str):
            moves = parse_moves(moves)
        perm = np.arange(NUM_STICKERS, dtype=np.int32)
        for move in moves:
            perm = perm[self.permutation(move.face, move.turns)]
        return perm

    def apply(self, state: CubeState, move: ParsedMove) -> None:
        state.stickers[:] = state.stickers[self.permutation(move.face, move.turns)]

    def expand(self, frontier: np.ndarray, moves: Sequence[str]) -> tuple[np.ndarray, np.ndarray]:
        """
        Apply every move in ``moves`` to every state of ``frontier``.

        Args:
            frontier: ``(N, 54)`` sticker arrays.
            moves: move tokens.

        Returns:
            ``(N, len(moves), 54)`` children and their ``(N, len(moves))``
            orientation pattern masks.
        """
        frontier = np.asarray(frontier, dtype=np.uint8)
        chex.assert_rank(frontier, 2)
        size = frontier.shape[0]
        bucket = pad_to_bucket(size)
        if bucket != size:
            padding = np.zeros((bucket - size, NUM_STICKERS), dtype=np.uint8)
            frontier = np.concatenate([frontier, padding], axis=0)
        perms = np.stack([self.permutation(m.face, m.turns) for m in map(_strict_parse, moves)])
        children, masks = _expand(jnp.asarray(frontier), jnp.asarray(perms))
        return np.asarray(children)[:size], np.asarray(masks)[:size]


def _strict_parse(token: str) -> ParsedMove:
    return parse_move(token, strict=True)


MOVES = MoveTable()


def apply_move(state: CubeState, move: Union[str, ParsedMove]) -> None:
    if isinstance(move, str):
        move = parse_move(move, strict=True)
    MOVES.apply(state, move)


def apply_moves(state: CubeState, moves: Union[str, Iterable[ParsedMove]]) -> MoveApplication:
    """
    Apply a sequence in place, stopping at the first move that cannot be applied.

    Returns a :class:`MoveApplication` holding the number of moves applied
    before any failure.
    """
    if isinstance(moves, str):
        moves = parse_moves(moves)
    count = 0
    for move in moves:
        try:
            MOVES.apply(state, move)
        except UnknownMoveError as exc:
            logger.warning("Stopping sequence after %d moves: %s", count, exc)
            return MoveApplication(False, count, str(exc))
        count += 1
    return MoveApplication(True, count)
