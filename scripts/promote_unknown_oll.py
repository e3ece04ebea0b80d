#!/usr/bin/env python3
from __future__ import annotations

import argparse
import logging
import sys

from tabulate import tabulate
from termcolor import colored

from ollcube.discovery.promote import derive_missing_patterns, promote_unknown_patterns
from ollcube.oll.context import SolverContext
from ollcube.storage.store import OLLStore
from ollcube.utils.util import render_pattern


def _print_report(title: str, report) -> None:
    print(colored(title, "cyan", attrs=["bold"]))
    if report.registered:
        rows = [(e["id"], e["pattern"], e["algorithm"], e["source"]) for e in report.registered]
        print(tabulate(rows, headers=["id", "pattern", "algorithm", "source"], tablefmt="simple"))
    print(
        f"registered={colored(str(report.count), 'green')}  "
        f"skipped={len(report.skipped)}  "
        f"unresolved={colored(str(len(report.unresolved)), 'yellow')}"
    )
    for pattern in report.unresolved:
        print(colored(f"  no algorithm found for {pattern}", "dark_grey"))
        print(render_pattern(pattern))


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Promote logged unknown OLL patterns into derived cases.")
    parser.add_argument("--data-dir", default=None, help="Data directory (defaults to $OLLCUBE_DATA_DIR or ~/.cache/ollcube)")
    parser.add_argument("--derive", action="store_true", help="Also derive placeholder patterns by reverse mining")
    parser.add_argument("--dfs-depth", type=int, default=7)
    parser.add_argument("--heuristic-depth", type=int, default=12)
    parser.add_argument("--no-progress", action="store_true")
    parser.add_argument("-v", "--verbose", action="store_true")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    context = SolverContext.create(store=OLLStore(args.data_dir))
    if args.derive:
        _print_report("Derivation", derive_missing_patterns(context))
    report = promote_unknown_patterns(
        context,
        dfs_depth=args.dfs_depth,
        heuristic_depth=args.heuristic_depth,
        progress=not args.no_progress,
    )
    _print_report("Promotion", report)
    context.persist_learning()
    return 0


if __name__ == "__main__":
    sys.exit(main())
