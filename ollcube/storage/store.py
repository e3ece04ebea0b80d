"""JSON backed persistence for metrics, derived cases and learned classifications."""

from __future__ import annotations

import json
import logging
import os
import time
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional

logger = logging.getLogger(__name__)

DATA_DIR_ENV = "OLLCUBE_DATA_DIR"

METRICS_FILE = "oll-alg-metrics.jsonl"
DERIVED_FILE = "oll-derived.json"
CLASSIFICATION_FILE = "oll-classification-dynamic.json"
RUNTIME_FINISHERS_FILE = "oll-runtime-finishers.json"
UNKNOWN_FILE = "oll-unknown.json"


def default_data_dir() -> Path:
    base = os.environ.get(DATA_DIR_ENV)
    if base:
        return Path(base)
    return Path.home() / ".cache" / "ollcube"


class OLLStore:
    """
    Best-effort key-value persistence rooted at a data directory.

    Every file is read in full and rewritten in full, except the metrics log
    which is append-only JSON lines. Read failures fall back to empty values and
    write failures are logged and reported through the return value; neither
    raises.
    """

    def __init__(self, root: Optional[str | Path] = None):
        self.root = Path(root) if root is not None else default_data_dir()

    def path(self, name: str) -> Path:
        return self.root / name

    def _read_json(self, name: str, default: Any) -> Any:
        try:
            with self.path(name).open("r", encoding="utf-8") as handle:
                return json.load(handle)
        except FileNotFoundError:
            return default
        except (OSError, ValueError) as exc:
            logger.warning("Ignoring unreadable %s: %s", name, exc)
            return default

    def _write_json(self, name: str, data: Any) -> bool:
        try:
            payload = json.dumps(data, indent=2, sort_keys=True)
        except (TypeError, ValueError) as exc:
            logger.debug("Cannot serialize %s: %s", name, exc)
            return False
        try:
            self.root.mkdir(parents=True, exist_ok=True)
            tmp_path = self.path(name + ".tmp")
            tmp_path.write_text(payload, encoding="utf-8")
            tmp_path.replace(self.path(name))
            return True
        except OSError as exc:
            logger.debug("Failed to persist %s: %s", name, exc)
            return False

    # metrics

    def append_metric(self, event: Dict[str, Any]) -> bool:
        record = {"ts": int(time.time() * 1000), **event}
        try:
            line = json.dumps(record) + "\n"
        except (TypeError, ValueError) as exc:
            logger.debug("Cannot serialize metric: %s", exc)
            return False
        try:
            self.root.mkdir(parents=True, exist_ok=True)
            with self.path(METRICS_FILE).open("a", encoding="utf-8") as handle:
                handle.write(line)
            return True
        except OSError as exc:
            logger.debug("Failed to append metric: %s", exc)
            return False

    def iter_metrics(self, limit: Optional[int] = None) -> Iterator[Dict[str, Any]]:
        try:
            handle = self.path(METRICS_FILE).open("r", encoding="utf-8")
        except OSError:
            return
        count = 0
        with handle:
            for line in handle:
                if not line.strip():
                    continue
                try:
                    record = json.loads(line)
                except ValueError:
                    continue
                yield record
                count += 1
                if limit is not None and count >= limit:
                    return

    # derived cases

    def load_derived(self) -> List[Dict[str, Any]]:
        data = self._read_json(DERIVED_FILE, {"derived": []})
        entries = data.get("derived", []) if isinstance(data, dict) else []
        return [e for e in entries if isinstance(e, dict)]

    def save_derived(self, entries: List[Dict[str, Any]]) -> bool:
        return self._write_json(DERIVED_FILE, {"derived": entries})

    def add_derived(self, entry: Dict[str, Any]) -> bool:
        entries = self.load_derived()
        entries.append(entry)
        return self.save_derived(entries)

    # classification overrides, keyed by case id

    def load_classifications(self) -> Dict[str, Dict[str, Any]]:
        data = self._read_json(CLASSIFICATION_FILE, {})
        return data if isinstance(data, dict) else {}

    def save_classifications(self, records: Dict[str, Dict[str, Any]]) -> bool:
        return self._write_json(CLASSIFICATION_FILE, records)

    # runtime finishers, keyed by canonical pattern

    def load_runtime_finishers(self) -> Dict[str, str]:
        data = self._read_json(RUNTIME_FINISHERS_FILE, {})
        if not isinstance(data, dict):
            return {}
        return {str(k): str(v) for k, v in data.items() if v}

    def save_runtime_finishers(self, finishers: Dict[str, str]) -> bool:
        return self._write_json(RUNTIME_FINISHERS_FILE, finishers)

    # raw access for the unknown-pattern log

    def load_unknown(self) -> Dict[str, Any]:
        data = self._read_json(UNKNOWN_FILE, {"patterns": {}})
        if not isinstance(data, dict) or not isinstance(data.get("patterns"), dict):
            return {"patterns": {}}
        return data

    def save_unknown(self, data: Dict[str, Any]) -> bool:
        return self._write_json(UNKNOWN_FILE, data)
