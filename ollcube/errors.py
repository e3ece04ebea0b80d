"""Exception types raised by ollcube."""

from __future__ import annotations

__all__ = [
    "OLLCubeError",
    "MalformedMoveError",
    "UnknownMoveError",
    "InvalidStateError",
    "ClassificationError",
]


class OLLCubeError(Exception):
    """Base class for every error raised by this package."""


class MalformedMoveError(OLLCubeError, ValueError):
    """A move token does not follow the ``<face>['|2]`` notation."""

    def __init__(self, token: str):
        super().__init__(f"Malformed move token '{token}'")
        self.token = token


class UnknownMoveError(OLLCubeError, ValueError):
    """A parsed move names a face or axis the move table does not know."""

    def __init__(self, face: str):
        super().__init__(f"Unknown move face '{face}'")
        self.face = face


class InvalidStateError(OLLCubeError, ValueError):
    """Facelet data that cannot describe a 3x3x3 cube."""


class ClassificationError(OLLCubeError, ValueError):
    """An algorithm classification change that the transition rule forbids."""

    def __init__(self, case_id: int, current: str, requested: str):
        super().__init__(
            f"Case {case_id}: cannot reclassify '{current}' as '{requested}'"
        )
        self.case_id = case_id
        self.current = current
        self.requested = requested
