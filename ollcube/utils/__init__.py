"""
Utility helpers shared across ollcube modules.

Terminal coloring, pattern rendering and batch sizing helpers.
"""

from ollcube.utils.util import coloring_str, pad_to_bucket, render_pattern

__all__ = [
    "coloring_str",
    "pad_to_bucket",
    "render_pattern",
]
