"""
Journal data model shared by the correlation layers.

DayRecord is the only shape the phi layer reads.  Raw inputs (dicts from
the journal view, JSON exports, arbitrary objects) go through
``coerce_day_record`` which fails fast on anything malformed instead of
guessing.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Any, Iterable, List, Mapping, Optional

import numpy as np


class InvalidDayRecordError(ValueError):
    """A journal day could not be read as (events, occurrence flag)."""

    def __init__(self, index: Optional[int], reason: str):
        self.index = index
        self.reason = reason
        where = f"day record #{index}" if index is not None else "day record"
        super().__init__(f"Invalid {where}: {reason}")


@dataclass(frozen=True)
class DayRecord:
    events: frozenset
    occurrence_present: bool
    entry_date: Optional[date] = None

    def __post_init__(self):
        # Any set-like input collapses to a frozenset so duplicates never double-count
        object.__setattr__(self, "events", _check_events(self.events, None))
        object.__setattr__(self, "occurrence_present", _check_flag(self.occurrence_present, None))


@dataclass(frozen=True)
class ContingencyTable:
    """2x2 counts of one event tag against the occurrence flag.

                     occurrence   no occurrence
        event            a              b
        no event         c              d
    """
    a: int
    b: int
    c: int
    d: int

    @property
    def n(self) -> int:
        return self.a + self.b + self.c + self.d

    @property
    def event_days(self) -> int:
        return self.a + self.b

    @property
    def non_event_days(self) -> int:
        return self.c + self.d

    @property
    def occurrence_days(self) -> int:
        return self.a + self.c

    @property
    def non_occurrence_days(self) -> int:
        return self.b + self.d

    def marginals(self) -> tuple:
        return (self.event_days, self.non_event_days,
                self.occurrence_days, self.non_occurrence_days)

    def swapped(self) -> "ContingencyTable":
        """Flip the polarity of both variables (a<->d, b<->c)."""
        return ContingencyTable(a=self.d, b=self.c, c=self.b, d=self.a)


@dataclass(frozen=True)
class PhiResult:
    """Phi coefficient for one table, or indeterminate when a marginal is 0.

    ``value`` is None exactly when the statistic is undefined; it is never NaN.
    """
    table: ContingencyTable
    value: Optional[float] = None
    zero_marginals: tuple = field(default_factory=tuple)

    @property
    def defined(self) -> bool:
        return self.value is not None

    @property
    def status(self) -> str:
        return "defined" if self.defined else "indeterminate"

    def to_dict(self) -> dict:
        t = self.table
        return {
            "phi": self.value,
            "status": self.status,
            "a": t.a, "b": t.b, "c": t.c, "d": t.d,
            "n": t.n,
            "zero_marginals": list(self.zero_marginals),
        }


# ─── Coercion ─────────────────────────────────────────────────

_OCCURRENCE_KEYS = ("occurrence_present", "occurrencePresent")


def _lookup(raw: Any, keys) -> Any:
    if isinstance(raw, Mapping):
        for k in keys:
            if k in raw:
                return raw[k]
        return None
    for k in keys:
        if hasattr(raw, k):
            return getattr(raw, k)
    return None


def _check_events(events: Any, index: Optional[int]) -> frozenset:
    if events is None:
        raise InvalidDayRecordError(index, "events collection is missing")
    if isinstance(events, (str, bytes)):
        raise InvalidDayRecordError(
            index, f"events must be a collection of tags, got a bare string {events!r}"
        )
    if isinstance(events, Mapping):
        raise InvalidDayRecordError(index, "events must be a collection of tags, got a mapping")
    try:
        tags = list(events)
    except TypeError:
        raise InvalidDayRecordError(
            index, f"events must be iterable, got {type(events).__name__}"
        ) from None
    for tag in tags:
        if not isinstance(tag, str):
            raise InvalidDayRecordError(
                index, f"event tag {tag!r} is {type(tag).__name__}, expected str"
            )
    return frozenset(tags)


def _check_flag(flag: Any, index: Optional[int]) -> bool:
    if isinstance(flag, (bool, np.bool_)):
        return bool(flag)
    if flag is None:
        raise InvalidDayRecordError(index, "occurrence flag is missing")
    raise InvalidDayRecordError(
        index, f"occurrence flag must be a bool, got {type(flag).__name__} {flag!r}"
    )


def coerce_day_record(raw: Any, index: Optional[int] = None) -> DayRecord:
    """Validate one raw day and return it as a DayRecord."""
    if isinstance(raw, DayRecord):
        return raw
    if raw is None:
        raise InvalidDayRecordError(index, "record is None")

    events = _check_events(_lookup(raw, ("events",)), index)
    flag = _check_flag(_lookup(raw, _OCCURRENCE_KEYS), index)
    entry_date = _lookup(raw, ("entry_date",))
    return DayRecord(events=events, occurrence_present=flag,
                     entry_date=entry_date if isinstance(entry_date, date) else None)


def validate_journal(journal: Iterable[Any]) -> List[DayRecord]:
    """Materialise a journal snapshot, validating every record."""
    if journal is None:
        raise InvalidDayRecordError(None, "journal is None")
    return [coerce_day_record(raw, i) for i, raw in enumerate(journal)]
