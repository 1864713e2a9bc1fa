"""Helpers for turning per-tag phi results into a readable digest."""

from __future__ import annotations

from typing import Dict, List, Optional, Tuple

from analytics.phi_layer import phi_p_value
from constants import DEFAULT_PHI_THRESHOLD, SIGNIFICANCE_MARKS, STRENGTH_TIERS
from journal_models import PhiResult


def strength_tier(phi: float) -> str:
    mag = abs(phi)
    for floor, label in STRENGTH_TIERS:
        if mag >= floor:
            return label
    return "NEGLIGIBLE"


def significance_mark(p: Optional[float]) -> str:
    if p is None:
        return ""
    for cutoff, mark in SIGNIFICANCE_MARKS:
        if p < cutoff:
            return mark
    return ""


def rank_correlations(results: Dict[str, PhiResult]) -> Tuple[List[Tuple[str, PhiResult]], List[Tuple[str, PhiResult]]]:
    """Split into (defined sorted by |phi| desc then tag, indeterminate sorted by tag)."""
    defined = [(t, r) for t, r in results.items() if r.defined]
    undefined = [(t, r) for t, r in results.items() if not r.defined]
    defined.sort(key=lambda x: (-abs(x[1].value), x[0]))
    undefined.sort(key=lambda x: x[0])
    return defined, undefined


def interesting_tags(results: Dict[str, PhiResult], threshold: float = DEFAULT_PHI_THRESHOLD) -> List[str]:
    """Tags with |phi| strictly above *threshold*, strongest first."""
    defined, _ = rank_correlations(results)
    return [tag for tag, r in defined if abs(r.value) > threshold]


def _indeterminate_reason(result: PhiResult) -> str:
    t = result.table
    if t.n == 0:
        return "empty journal"
    if t.event_days == 0:
        return "never logged"
    if t.non_event_days == 0:
        return "logged every day"
    if t.occurrence_days == 0:
        return "occurrence never present"
    if t.non_occurrence_days == 0:
        return "occurrence present every day"
    return "zero marginal"


def build_correlation_summary(
    results: Dict[str, PhiResult],
    occurrence: str,
    n_days: int,
    threshold: float = DEFAULT_PHI_THRESHOLD,
    min_days: int = 14,
    date_range: Optional[Tuple] = None,
    max_rows: int = 25,
    occurrence_days: Optional[int] = None,
) -> str:
    """Plain-text digest of one occurrence's associations.

    *occurrence_days* comes from the journal itself; without it the count is
    read off the first table, which is 0 when no tag was logged.
    """
    lines: List[str] = []
    occ_days = occurrence_days
    if occ_days is None:
        occ_days = next(iter(results.values())).table.occurrence_days if results else 0

    lines.append(f"=== EVENT ASSOCIATIONS WITH '{occurrence}' ===")
    span = f" ({date_range[0]} -> {date_range[1]})" if date_range and date_range[0] else ""
    lines.append(f"  {n_days} journal days{span}, occurrence on {occ_days} of them")
    if n_days < min_days:
        lines.append(
            f"  NOTE: only {n_days} days logged (< {min_days}). "
            "Treat every association below as preliminary."
        )
    lines.append("")

    defined, undefined = rank_correlations(results)
    shown = [(t, r) for t, r in defined if abs(r.value) > threshold]

    lines.append(f"[ASSOCIATED EVENTS (|phi| > {threshold:.2f})]")
    if not shown:
        lines.append("  none")
    for tag, r in shown[:max_rows]:
        t = r.table
        p = phi_p_value(r)
        arrow = "+" if r.value > 0 else "-"
        lines.append(
            f"  {arrow} {tag}: phi={r.value:+.3f} (p={p:.4f}) {significance_mark(p)}".rstrip()
            + f"  [{strength_tier(r.value)}; a={t.a} b={t.b} c={t.c} d={t.d}]"
        )
    if len(shown) > max_rows:
        lines.append(f"  ... {len(shown) - max_rows} more")
    lines.append("")

    if undefined:
        lines.append("[INDETERMINATE (no variance, phi undefined)]")
        for tag, r in undefined[:max_rows]:
            lines.append(f"  {tag}: {_indeterminate_reason(r)}")
        if len(undefined) > max_rows:
            lines.append(f"  ... {len(undefined) - max_rows} more")
        lines.append("")

    lines.append(
        f"  {len(defined)} tags scored, {len(shown)} above threshold, "
        f"{len(undefined)} indeterminate"
    )
    return "\n".join(lines)
