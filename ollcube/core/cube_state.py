from __future__ import annotations

from typing import Mapping, Sequence

import chex
import numpy as np
from tabulate import tabulate

from ollcube.errors import InvalidStateError
from ollcube.utils.util import coloring_str

TYPE = np.uint8

UP = 0
LEFT = 1
FRONT = 2
RIGHT = 3
BACK = 4
DOWN = 5

FACES = ("U", "L", "F", "R", "B", "D")
FACE_INDEX = {face: i for i, face in enumerate(FACES)}

# Solved color of each face, in face order.
COLORS = ("W", "O", "G", "R", "B", "Y")
COLOR_INDEX = {color: i for i, color in enumerate(COLORS)}

STICKERS_PER_FACE = 9
NUM_STICKERS = 6 * STICKERS_PER_FACE
CENTER = 4

# U-face stickers read by the orientation pattern, in pattern order.
U_ORIENTATION_INDICES = (0, 1, 2, 3, 5, 6, 7, 8)

rgb_map = {
    UP: (255, 255, 255),  # white
    LEFT: (255, 128, 0),  # orange
    FRONT: (0, 255, 0),  # green
    RIGHT: (255, 0, 0),  # red
    BACK: (0, 0, 255),  # blue
    DOWN: (255, 255, 0),  # yellow
}
face_label = {
    UP: "up━",
    LEFT: "left━",
    FRONT: "front",
    RIGHT: "right",
    BACK: "back━",
    DOWN: "down━",
}


def sticker_index(face: str, position: int) -> int:
    """Flat index of ``position`` (0-8, row-major) on ``face``."""
    return FACE_INDEX[face] * STICKERS_PER_FACE + position


def _signature_indices() -> tuple[int, ...]:
    indices = [sticker_index("D", i) for i in range(STICKERS_PER_FACE)]
    # middle layer edges, side stickers of each pair
    for face, pos in (
        ("F", 5), ("R", 3), ("R", 5), ("B", 3),
        ("B", 5), ("L", 3), ("L", 5), ("F", 3),
    ):
        indices.append(sticker_index(face, pos))
    # bottom layer corners, side stickers of each pair
    for face, pos in (
        ("F", 8), ("R", 6), ("R", 8), ("B", 6),
        ("B", 8), ("L", 6), ("L", 8), ("F", 6),
    ):
        indices.append(sticker_index(face, pos))
    return tuple(indices)


F2L_SIGNATURE_INDICES = _signature_indices()


class CubeState:
    """
    Mutable facelet grid of a 3x3x3 cube.

    Stickers are stored as a flat ``uint8`` array of 54 color indices laid out
    face by face in ``U L F R B D`` order, each face row-major. Moves mutate the
    array in place; searches work on clones.
    """

    __slots__ = ("stickers",)

    def __init__(self, stickers: np.ndarray):
        stickers = np.asarray(stickers)
        if stickers.shape != (NUM_STICKERS,):
            raise InvalidStateError(
                f"Expected {NUM_STICKERS} stickers, got shape {stickers.shape}"
            )
        if stickers.size and int(stickers.max()) >= len(COLORS):
            raise InvalidStateError(f"Sticker color index out of range: {int(stickers.max())}")
        self.stickers = stickers.astype(TYPE, copy=True)

    @classmethod
    def solved(cls) -> "CubeState":
        return cls(np.repeat(np.arange(6, dtype=TYPE), STICKERS_PER_FACE))

    @classmethod
    def from_faces(cls, faces: Mapping[str, Sequence[str]]) -> "CubeState":
        """Build a state from ``{face: [9 color letters]}``."""
        missing = [face for face in FACES if face not in faces]
        if missing:
            raise InvalidStateError(f"Missing faces: {', '.join(missing)}")
        stickers = np.zeros(NUM_STICKERS, dtype=TYPE)
        for face in FACES:
            colors = list(faces[face])
            if len(colors) != STICKERS_PER_FACE:
                raise InvalidStateError(
                    f"Face {face} must have {STICKERS_PER_FACE} stickers, got {len(colors)}"
                )
            for pos, color in enumerate(colors):
                try:
                    stickers[sticker_index(face, pos)] = COLOR_INDEX[color]
                except KeyError as exc:
                    raise InvalidStateError(f"Unknown color '{color}' on face {face}") from exc
        return cls(stickers)

    def to_faces(self) -> dict[str, list[str]]:
        return {face: self[face] for face in FACES}

    def __getitem__(self, face: str) -> list[str]:
        return [COLORS[c] for c in self.face(face)]

    def face(self, face: str) -> chex.Array:
        """View on the 9 color indices of ``face``."""
        start = FACE_INDEX[face] * STICKERS_PER_FACE
        return self.stickers[start : start + STICKERS_PER_FACE]

    def center(self, face: str) -> int:
        return int(self.stickers[sticker_index(face, CENTER)])

    def clone(self) -> "CubeState":
        return CubeState(self.stickers)

    def restore(self, other: "CubeState") -> None:
        """Overwrite this state's stickers with those of ``other``."""
        self.stickers[:] = other.stickers

    def key(self) -> bytes:
        return self.stickers.tobytes()

    def f2l_signature(self) -> str:
        """Digest of the first two layers: D face, middle edges and D-corner sides."""
        return "".join(COLORS[c] for c in self.stickers[list(F2L_SIGNATURE_INDICES)])

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, CubeState):
            return NotImplemented
        return bool(np.array_equal(self.stickers, other.stickers))

    __hash__ = None  # mutable

    def __repr__(self) -> str:
        return f"CubeState({' '.join(''.join(self[f]) for f in FACES)})"

    def __str__(self) -> str:
        def color_legend():
            return "\n".join(f"{FACES[i]:<2}:{coloring_str('■', rgb_map[i])}" for i in range(6))

        def face_string(face: int):
            label = face_label[face]
            string = f"┏━{label.center(5, '━')}━┓\n"
            values = self.face(FACES[face])
            for row in range(3):
                tokens = [coloring_str("■", rgb_map[int(v)]) for v in values[row * 3 : row * 3 + 3]]
                string += f"┃ {' '.join(tokens)} ┃\n"
            string += f"┗━{'━' * 5}━┛\n"
            return string

        def empty_face():
            return "\n".join(" " * 9 for _ in range(5))

        return tabulate(
            [
                [color_legend(), ".\n" + face_string(UP)],
                [face_string(LEFT), face_string(FRONT), face_string(RIGHT), face_string(BACK)],
                [empty_face(), face_string(DOWN)],
            ],
            tablefmt="plain",
            rowalign="center",
        )


def integrity_diff(before: str, after: str) -> int:
    """Hamming distance between two F2L signatures."""
    if len(before) != len(after):
        raise ValueError(
            f"Signature length mismatch: {len(before)} != {len(after)}"
        )
    return sum(1 for a, b in zip(before, after) if a != b)
