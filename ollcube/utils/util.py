from __future__ import annotations

from termcolor import colored


def coloring_str(string: str, color: tuple[int, int, int]) -> str:
    r, g, b = color
    return f"\x1b[38;2;{r};{g};{b}m{string}\x1b[0m"


def render_pattern(pattern: str, *, on: str = "■", off: str = "□") -> str:
    """
    Render an 8 character orientation pattern as a 3x3 top-face grid.

    Oriented stickers are drawn in yellow, unoriented ones in grey and the
    center is always shown as oriented.
    """
    if len(pattern) != 8:
        raise ValueError(f"Pattern must have 8 characters, got {len(pattern)}")
    cells = list(pattern[:4]) + ["1"] + list(pattern[4:])
    rows = []
    for row in range(3):
        tokens = []
        for bit in cells[row * 3 : row * 3 + 3]:
            if bit == "1":
                tokens.append(colored(on, "yellow"))
            else:
                tokens.append(colored(off, "dark_grey"))
        rows.append(" ".join(tokens))
    return "\n".join(rows)


def pad_to_bucket(size: int, minimum: int = 8) -> int:
    """Return the smallest power of two that is ``>= size`` (at least ``minimum``)."""
    bucket = minimum
    while bucket < size:
        bucket *= 2
    return bucket
