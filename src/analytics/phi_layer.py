"""Event extraction, 2x2 contingency tables and phi coefficients for journal days."""

from __future__ import annotations

import math
from collections import Counter
from typing import Dict, Iterable, Optional, Sequence, Set

from scipy import stats as sp_stats

from journal_models import ContingencyTable, DayRecord, PhiResult, validate_journal

_MARGINAL_NAMES = ("event_days", "non_event_days", "occurrence_days", "non_occurrence_days")


def extract_events(journal: Iterable[DayRecord]) -> Set[str]:
    """Union of every day's event tags."""
    tags: Set[str] = set()
    for record in journal:
        tags.update(record.events)
    return tags


def build_contingency_table(journal: Iterable[DayRecord], tag: str) -> ContingencyTable:
    """Classify every day into exactly one cell for *tag*.

    Membership is an exact, case-sensitive match; tags are expected to be
    normalised before they get here.
    """
    a = b = c = d = 0
    for record in journal:
        has_event = tag in record.events
        if has_event and record.occurrence_present:
            a += 1
        elif has_event:
            b += 1
        elif record.occurrence_present:
            c += 1
        else:
            d += 1
    return ContingencyTable(a=a, b=b, c=c, d=d)


def build_contingency_tables(
    journal: Iterable[DayRecord], tags: Optional[Iterable[str]] = None
) -> Dict[str, ContingencyTable]:
    """One pass over the journal for all tags.

    Equivalent to calling ``build_contingency_table`` per tag: only the
    event-present cells are tallied per tag, the absent cells follow from
    the journal-wide occurrence totals.
    """
    if isinstance(tags, (str, bytes)):
        raise TypeError(f"tags must be a collection of tag names, got a bare string {tags!r}")
    days = list(journal)
    n_occ = sum(1 for r in days if r.occurrence_present)
    n_no_occ = len(days) - n_occ

    with_occ: Counter = Counter()
    without_occ: Counter = Counter()
    for record in days:
        if record.occurrence_present:
            with_occ.update(record.events)
        else:
            without_occ.update(record.events)

    wanted = extract_events(days) if tags is None else set(tags)
    tables: Dict[str, ContingencyTable] = {}
    for tag in wanted:
        a = with_occ.get(tag, 0)
        b = without_occ.get(tag, 0)
        tables[tag] = ContingencyTable(a=a, b=b, c=n_occ - a, d=n_no_occ - b)
    return tables


def _check_counts(table: ContingencyTable) -> None:
    for name in ("a", "b", "c", "d"):
        v = getattr(table, name)
        if isinstance(v, bool) or not isinstance(v, int):
            raise ValueError(f"Contingency count {name}={v!r} is not an integer")
        if v < 0:
            raise ValueError(f"Contingency count {name}={v} is negative")


def phi_coefficient(table: ContingencyTable) -> PhiResult:
    """Phi correlation of a 2x2 table.

        phi = (a·d − b·c) / √((a+b)(c+d)(a+c)(b+d))

    Returns an indeterminate PhiResult (value None) when any marginal
    total is zero.
    """
    _check_counts(table)
    marginals = table.marginals()
    zero = tuple(name for name, m in zip(_MARGINAL_NAMES, marginals) if m == 0)
    if zero:
        return PhiResult(table=table, value=None, zero_marginals=zero)

    numerator = table.a * table.d - table.b * table.c
    # exact integer ratio; only the quotient is rounded to float
    phi = math.copysign(math.sqrt(numerator * numerator / math.prod(marginals)), numerator)
    # |phi| <= 1 exactly; clamp float rounding on perfect associations
    phi = max(-1.0, min(1.0, phi))
    return PhiResult(table=table, value=phi)


def phi_p_value(result: PhiResult) -> Optional[float]:
    """Chi-square test of independence (1 dof), chi² = n·phi²."""
    if not result.defined:
        return None
    chi2 = result.table.n * result.value ** 2
    return float(sp_stats.chi2.sf(chi2, 1))


def compute_phi_layer(
    *,
    journal: Iterable,
    logger,
    tags: Optional[Sequence[str]] = None,
) -> Dict[str, PhiResult]:
    """Validate a journal snapshot and return tag -> PhiResult."""
    days = validate_journal(journal)
    logger.info("   Layer 1: contingency tables over %d days...", len(days))
    tables = build_contingency_tables(days, tags)

    results = {tag: phi_coefficient(tables[tag]) for tag in sorted(tables)}
    n_defined = sum(1 for r in results.values() if r.defined)
    logger.info(
        "   OK %d tags (%d defined, %d indeterminate)",
        len(results), n_defined, len(results) - n_defined,
    )
    return results
