#!/usr/bin/env python3
from __future__ import annotations

import argparse
import json
import logging
import sys

from tabulate import tabulate
from termcolor import colored

from ollcube.discovery.metrics import summarize_metrics
from ollcube.storage.store import METRICS_FILE, OLLStore


def _rate(value: float) -> str:
    return f"{value * 100:.1f}%"


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Summarize recorded OLL attempt metrics per case.")
    parser.add_argument("--data-dir", default=None, help="Data directory (defaults to $OLLCUBE_DATA_DIR or ~/.cache/ollcube)")
    parser.add_argument("--limit", type=int, default=None, help="Only read the first N records")
    parser.add_argument("--json", action="store_true", help="Emit JSON instead of a table")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.WARNING, format="%(levelname)s %(name)s: %(message)s")

    store = OLLStore(args.data_dir)
    if not store.path(METRICS_FILE).exists():
        print(f"No metrics file found at {store.path(METRICS_FILE)}", file=sys.stderr)
        return 1

    cases = summarize_metrics(store, args.limit)
    total = sum(c.attempts for c in cases)
    if args.json:
        payload = {
            "total_records": total,
            "cases": [
                {
                    "case_id": c.case_id,
                    "attempts": c.attempts,
                    "improvements": c.improvements,
                    "improvement_rate": c.improvement_rate,
                    "completions": c.completions,
                    "completion_rate": c.completion_rate,
                    "alg_variants": len(c.algorithms),
                    "names": c.names[:2],
                    "classifications": sorted(c.classifications),
                }
                for c in cases
            ],
        }
        print(json.dumps(payload, indent=2))
        return 0

    print(f"Processed {total} metric records. Unique cases: {len(cases)}")
    rows = []
    for c in cases:
        case_id = colored(c.case_id, "red") if c.is_demotion_candidate() else c.case_id
        rows.append(
            [
                case_id,
                c.attempts,
                _rate(c.improvement_rate),
                _rate(c.completion_rate),
                len(c.algorithms),
                ",".join(sorted(c.classifications)),
                c.names[0] if c.names else "",
            ]
        )
    print(
        tabulate(
            rows,
            headers=["case", "attempts", "improves", "completes", "variants", "classifications", "name"],
            tablefmt="simple",
        )
    )
    flagged = [c.case_id for c in cases if c.is_demotion_candidate()]
    if flagged:
        print(colored(f"\nDemotion candidates (0% completion, <20% improvement): {', '.join(flagged)}", "yellow"))
    return 0


if __name__ == "__main__":
    sys.exit(main())
