"""
Journal Correlation — command-line runner
==========================================
Scores logged events against tracked occurrences and prints the digest.

Usage:
    python analyze_journal.py --file export.json                 # all occurrences in the export
    python analyze_journal.py --file export.json -o headache     # one occurrence
    python analyze_journal.py --user-id <uuid> --start 2026-01-01
    python analyze_journal.py --file export.json --json          # machine-readable output
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from datetime import date
from typing import Any, Dict, List, Optional

from dotenv import load_dotenv

load_dotenv()

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s  %(levelname)-8s  %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
log = logging.getLogger("analyze_journal")

from correlation_engine import JournalCorrelationEngine
from journal_loader import frame_to_entries, load_journal_file


def _iso_date(value: str) -> date:
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid date {value!r}, use YYYY-MM-DD") from None


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Phi correlation between journal events and occurrences"
    )
    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument("--file", help="JSON journal export")
    source.add_argument("--user-id", help="Load the user's journal from PostgreSQL")
    parser.add_argument("-o", "--occurrence", action="append", default=None,
                        help="Occurrence to analyse (repeatable, default: all)")
    parser.add_argument("--threshold", type=float, default=None,
                        help="Report |phi| above this (default: PHI_THRESHOLD or 0.1)")
    parser.add_argument("--start", type=_iso_date, help="First journal day (YYYY-MM-DD)")
    parser.add_argument("--end", type=_iso_date, help="Last journal day (YYYY-MM-DD)")
    parser.add_argument("--json", action="store_true", help="Print JSON instead of text")
    return parser


def _filter_dates(entries: List[Dict[str, Any]], start: Optional[date],
                  end: Optional[date]) -> List[Dict[str, Any]]:
    if not start and not end:
        return entries
    kept = []
    for e in entries:
        d = e.get("entry_date")
        if d is None:
            continue
        if start and d < start:
            continue
        if end and d > end:
            continue
        kept.append(e)
    return kept


def run_to_jsonable(report: Dict[str, Any]) -> Dict[str, Any]:
    out = {
        "analysis_status": report["analysis_status"],
        "degraded_reasons": report["degraded_reasons"],
        "occurrences": {
            occ: {
                "analysis_status": run["analysis_status"],
                "degraded_reasons": run["degraded_reasons"],
                "n_days": run["n_days"],
                "associated": run["associated"],
                "results": {tag: r.to_dict() for tag, r in run["results"].items()},
            }
            for occ, run in report["runs"].items()
        },
    }
    if report.get("error"):
        out["error"] = report["error"]
    return out


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    engine = JournalCorrelationEngine(threshold=args.threshold)

    try:
        if args.file:
            entries = frame_to_entries(load_journal_file(args.file))
            entries = _filter_dates(entries, args.start, args.end)
            report = engine.analyze_entries(entries, args.occurrence)
        else:
            report = engine.analyze_user(args.user_id, args.occurrence,
                                         date_start=args.start, date_end=args.end)
    except (ValueError, OSError, RuntimeError) as e:
        log.error("Could not load journal: %s", e)
        return 1

    if args.json:
        print(json.dumps(run_to_jsonable(report), indent=2, default=str))
    else:
        for run in report["runs"].values():
            print(run["summary"])
            print()
        if report.get("error"):
            print(f"Correlation analysis failed: {report['error']}")
        elif not report["runs"]:
            print("No occurrences to analyse.")

    log.info("Overall analysis status: %s", report["analysis_status"])
    return 1 if report["analysis_status"] == "failed" else 0


if __name__ == "__main__":
    sys.exit(main())
