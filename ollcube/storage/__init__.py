"""
Persistence for learned solver state.

JSON files under a data directory (``$OLLCUBE_DATA_DIR`` or ``~/.cache/ollcube``).
"""

from ollcube.storage.store import DATA_DIR_ENV, OLLStore, default_data_dir
from ollcube.storage.unknown_log import UnknownPatternLog

__all__ = [
    "DATA_DIR_ENV",
    "OLLStore",
    "UnknownPatternLog",
    "default_data_dir",
]
