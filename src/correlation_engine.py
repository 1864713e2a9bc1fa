"""
Journal Correlation Engine
==========================
Scores every logged event against a tracked occurrence with the phi
coefficient of their 2x2 contingency table.

Architecture (3 layers):
  Layer 0 — Journal snapshot:  raw entries -> validated DayRecords
            (events + occurrence flag), tags already normalised.
  Layer 1 — Phi:  one contingency table per event tag, reduced to phi
            or an explicit indeterminate result (zero marginal total).
  Layer 2 — Summary:  ranked text digest with chi-square p-values,
            strength tiers and the indeterminate tags listed separately.

Run status mirrors the analysis pipeline contract:
  success  — at least one tag scored
  degraded — nothing to score (empty journal, occurrence never/always
             present, every tag indeterminate)
  failed   — malformed input
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Optional

from analytics.phi_layer import compute_phi_layer
from db_utils import get_conn_str, get_min_journal_days, get_phi_threshold
from journal_loader import (
    frame_to_entries,
    day_records_for_occurrence,
    load_journal_entries,
    load_tracked_occurrences,
    occurrence_names,
)
from journal_models import InvalidDayRecordError, PhiResult, validate_journal
from pipeline.summary_builder import build_correlation_summary, interesting_tags

log = logging.getLogger("correlation_engine")


def compute_correlations(journal: Iterable) -> Dict[str, PhiResult]:
    """Phi coefficient for every event tag in *journal*.

    Raises InvalidDayRecordError on the first malformed day.
    """
    return compute_phi_layer(journal=journal, logger=log)


class JournalCorrelationEngine:
    """
    Orchestrates the correlation layers for one journal snapshot.
    Reads journal data through journal_loader; never writes.
    """

    def __init__(self, conn_str: Optional[str] = None,
                 threshold: Optional[float] = None,
                 min_days: Optional[int] = None):
        self.conn_str = conn_str or get_conn_str()
        self.threshold = get_phi_threshold() if threshold is None else threshold
        self.min_days = get_min_journal_days() if min_days is None else min_days

    # ─── Single occurrence ────────────────────────────────────────

    def analyze(self, journal: Iterable, occurrence: str) -> Dict[str, Any]:
        """Run layers 0-2 on DayRecords already flagged for *occurrence*."""
        result: Dict[str, Any] = {
            "occurrence": occurrence,
            "results": {},
            "associated": [],
            "summary": "",
            "n_days": 0,
            "analysis_status": "success",
            "degraded_reasons": [],
        }

        log.info("   Layer 0: validating journal snapshot for '%s'...", occurrence)
        try:
            days = validate_journal(journal)
            results = compute_correlations(days)
        except InvalidDayRecordError as e:
            log.error("Journal rejected: %s", e)
            result["summary"] = f"Correlation analysis failed: {e}"
            result["analysis_status"] = "failed"
            result["degraded_reasons"] = ["invalid_day_record"]
            return result

        n_days = len(days)
        n_occ = sum(1 for d in days if d.occurrence_present)
        result["n_days"] = n_days
        result["results"] = results

        reasons: List[str] = []
        if n_days == 0:
            reasons.append("empty_journal")
        elif n_occ == 0:
            reasons.append("no_occurrence_days")
        elif n_occ == n_days:
            reasons.append("occurrence_every_day")
        if n_days and not results:
            reasons.append("no_events_logged")
        elif results and not any(r.defined for r in results.values()) and not reasons:
            reasons.append("all_tags_indeterminate")
        if reasons:
            result["analysis_status"] = "degraded"
            result["degraded_reasons"] = reasons
            log.warning("Correlation status=degraded for '%s' (%s)", occurrence, ", ".join(reasons))

        dated = [d.entry_date for d in days if d.entry_date is not None]
        date_range = (min(dated), max(dated)) if dated else None

        log.info("   Layer 2: summary...")
        result["associated"] = interesting_tags(results, self.threshold)
        result["summary"] = build_correlation_summary(
            results,
            occurrence=occurrence,
            n_days=n_days,
            threshold=self.threshold,
            min_days=self.min_days,
            date_range=date_range,
            occurrence_days=n_occ,
        )
        log.info(
            "   OK '%s': %d days, %d tags, %d associated (|phi| > %.2f)",
            occurrence, n_days, len(results), len(result["associated"]), self.threshold,
        )
        return result

    # ─── Raw entries (one run per occurrence) ─────────────────────

    def analyze_entries(self, entries: List[Dict[str, Any]],
                        occurrences: Optional[List[str]] = None) -> Dict[str, Any]:
        """Analyse every requested occurrence over the same entries."""
        try:
            targets = occurrences or occurrence_names(entries)
        except InvalidDayRecordError as e:
            log.error("Journal rejected: %s", e)
            return {
                "runs": {},
                "analysis_status": "failed",
                "degraded_reasons": ["invalid_day_record"],
                "error": str(e),
            }
        runs: Dict[str, Dict[str, Any]] = {}
        overall = "success"
        all_reasons: List[str] = []

        if not targets:
            log.info("   No occurrences found in journal.")
            return {
                "runs": {},
                "analysis_status": "degraded",
                "degraded_reasons": ["no_occurrences"],
            }

        for occ in targets:
            try:
                days = day_records_for_occurrence(entries, occ)
            except InvalidDayRecordError as e:
                log.error("Journal rejected: %s", e)
                run = {
                    "occurrence": occ,
                    "results": {},
                    "associated": [],
                    "summary": f"Correlation analysis failed: {e}",
                    "n_days": 0,
                    "analysis_status": "failed",
                    "degraded_reasons": ["invalid_day_record"],
                }
            else:
                run = self.analyze(days, occ)
            runs[occ] = run

            status = run["analysis_status"]
            if status == "failed":
                overall = "failed"
            elif status == "degraded" and overall != "failed":
                overall = "degraded"
            for reason in run["degraded_reasons"]:
                if reason not in all_reasons:
                    all_reasons.append(reason)

        return {
            "runs": runs,
            "analysis_status": overall,
            "degraded_reasons": all_reasons,
        }

    # ─── Database entry ───────────────────────────────────────────

    def analyze_user(self, user_id: str, occurrences: Optional[List[str]] = None,
                     date_start=None, date_end=None) -> Dict[str, Any]:
        """Load one user's journal and analyse their tracked occurrences.

        Falls back to every occurrence found in the journal when the user
        tracks none.
        """
        log.info("\nJournal Correlation Engine - user %s...", user_id)
        df = load_journal_entries(user_id, conn_str=self.conn_str,
                                  date_start=date_start, date_end=date_end)
        entries = frame_to_entries(df)
        targets = occurrences or load_tracked_occurrences(user_id, conn_str=self.conn_str)
        if not targets:
            log.info("   No tracked occurrences, analysing all logged occurrences")
        return self.analyze_entries(entries, targets or None)
