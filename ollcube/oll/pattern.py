"""
Orientation pattern extraction and canonicalization.

A pattern is an 8 character ``0``/``1`` string over the non-center U stickers in
order ``[ULB, UB, URB, UL, UR, ULF, UF, URF]``. The same information is kept as
an 8-bit mask where character ``i`` is bit ``7 - i``, so comparing masks
numerically orders patterns lexicographically. Rotation and canonicalization
are 256-entry table lookups over masks.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional

import numpy as np

from ollcube.core.cube_state import CENTER, U_ORIENTATION_INDICES, CubeState

if TYPE_CHECKING:
    from ollcube.oll.cases import CaseMatch, OLLDatabase

COMPLETE_PATTERN = "11111111"
COMPLETE_MASK = 0xFF

# Character j of rotate_u(p) is p[ROTATION_SOURCE[j]].
ROTATION_SOURCE = (5, 3, 0, 6, 1, 7, 4, 2)

EDGE_POSITIONS = {"UB": 1, "UL": 3, "UR": 4, "UF": 6}
CORNER_POSITIONS = {"ULB": 0, "URB": 2, "ULF": 5, "URF": 7}


def mask_to_pattern(mask: int) -> str:
    return format(int(mask), "08b")


def pattern_to_mask(pattern: str) -> int:
    if len(pattern) != 8 or set(pattern) - {"0", "1"}:
        raise ValueError(f"Invalid orientation pattern '{pattern}'")
    return int(pattern, 2)


def _rotate_mask(mask: int) -> int:
    bits = mask_to_pattern(mask)
    return int("".join(bits[i] for i in ROTATION_SOURCE), 2)


def _build_tables() -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    rotate = np.array([_rotate_mask(m) for m in range(256)], dtype=np.uint8)
    canonical = np.zeros(256, dtype=np.uint8)
    rotation = np.zeros(256, dtype=np.uint8)
    for mask in range(256):
        best, best_rot, cur = mask, 0, mask
        for r in range(1, 4):
            cur = int(rotate[cur])
            if cur < best:
                best, best_rot = cur, r
        canonical[mask] = best
        rotation[mask] = best_rot
    return rotate, canonical, rotation


ROTATE_TABLE, CANONICAL_TABLE, CANONICAL_ROTATION_TABLE = _build_tables()
POPCOUNT_TABLE = np.array([bin(m).count("1") for m in range(256)], dtype=np.uint8)


_U_INDEX = np.array(U_ORIENTATION_INDICES)
_WEIGHTS = np.array([1 << (7 - i) for i in range(8)], dtype=np.int32)


def batch_masks(stickers: np.ndarray) -> np.ndarray:
    """Pattern masks for ``(..., 54)`` sticker arrays; the U face is stickers 0-8."""
    oriented = stickers[..., _U_INDEX] == stickers[..., CENTER : CENTER + 1]
    return oriented.astype(np.int32) @ _WEIGHTS


def stickers_mask(stickers: np.ndarray) -> int:
    return int(batch_masks(stickers))


def pattern_mask(state: CubeState) -> int:
    return stickers_mask(state.stickers)


def get_pattern(state: CubeState) -> str:
    """Orientation pattern of ``state``'s U face."""
    return mask_to_pattern(pattern_mask(state))


def is_oll_complete(state: CubeState) -> bool:
    return pattern_mask(state) == COMPLETE_MASK


def rotate_u(pattern: str, rotations: int = 1) -> str:
    """Pattern seen after ``rotations`` clockwise quarter turns of the U layer."""
    mask = pattern_to_mask(pattern)
    for _ in range(rotations % 4):
        mask = int(ROTATE_TABLE[mask])
    return mask_to_pattern(mask)


def pattern_rotations(pattern: str) -> list[tuple[str, int]]:
    """All four rotations of ``pattern`` as ``(pattern, rotation index)``."""
    mask = pattern_to_mask(pattern)
    out = []
    for r in range(4):
        out.append((mask_to_pattern(mask), r))
        mask = int(ROTATE_TABLE[mask])
    return out


def canonical(pattern: str) -> tuple[str, int]:
    """Lexicographically smallest rotation and the first rotation index reaching it."""
    mask = pattern_to_mask(pattern)
    return mask_to_pattern(CANONICAL_TABLE[mask]), int(CANONICAL_ROTATION_TABLE[mask])


def canonical_key(pattern: str) -> str:
    return canonical(pattern)[0]


def canonical_mask(mask: int) -> int:
    return int(CANONICAL_TABLE[mask])


def equivalent(a: str, b: str) -> bool:
    return canonical_key(a) == canonical_key(b)


def orientation_score(pattern: str) -> int:
    return pattern.count("1")


def adapt_algorithm_for_rotation(algorithm: str, rotation: int, strategy: str = "pre") -> str:
    """
    Re-express an algorithm for the canonical pattern so it runs on a rotated variant.

    ``rotation`` is the number of clockwise U turns that carry the variant to the
    canonical pattern. The ``pre`` strategy prefixes those U turns; ``sandwich``
    also undoes them afterwards.
    """
    rotation %= 4
    if strategy not in ("pre", "sandwich"):
        raise ValueError(f"Unknown rotation strategy '{strategy}'")
    if rotation == 0:
        return algorithm
    tokens = algorithm.split()
    lead = 0
    if tokens and tokens[0] in _U_TURNS:
        lead = _U_TURNS[tokens.pop(0)]
    total = (lead + rotation) % 4
    prefix = [_U_TOKENS[total]] if total else []
    if strategy == "pre":
        return " ".join(prefix + tokens)
    return " ".join(prefix + tokens + [_U_TOKENS[(4 - rotation) % 4]])


_U_TURNS = {"U": 1, "U2": 2, "U'": 3}
_U_TOKENS = {1: "U", 2: "U2", 3: "U'"}


def normalize_to_canonical(pattern: str, algorithm: str) -> tuple[str, str]:
    """
    Key an algorithm that solves ``pattern`` by its canonical pattern.

    The returned algorithm solves the canonical orientation; applying
    :func:`adapt_algorithm_for_rotation` with another variant's rotation index
    carries it back to that variant.
    """
    key, rotation = canonical(pattern)
    return key, adapt_algorithm_for_rotation(algorithm, (4 - rotation) % 4)


@dataclass(frozen=True)
class OLLAnalysis:
    pattern: str
    oriented_edges: int
    oriented_corners: int
    total_oriented: int
    is_complete: bool
    match: Optional["CaseMatch"] = None


def analyze_oll_state(state: CubeState, database: Optional["OLLDatabase"] = None) -> OLLAnalysis:
    """Summarize ``state``'s orientation and, given a database, the matching case."""
    pattern = get_pattern(state)
    edges = sum(pattern[i] == "1" for i in EDGE_POSITIONS.values())
    corners = sum(pattern[i] == "1" for i in CORNER_POSITIONS.values())
    match = database.match_pattern(pattern) if database is not None else None
    return OLLAnalysis(
        pattern=pattern,
        oriented_edges=edges,
        oriented_corners=corners,
        total_oriented=edges + corners,
        is_complete=pattern == COMPLETE_PATTERN,
        match=match,
    )
