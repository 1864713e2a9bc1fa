"""
Journal ingestion: raw entries -> DayRecords for one tracked occurrence.

Sources are read-only:
  - the ``user_journal_data`` view (one row per journal day with
    aggregated ``events`` / ``occurrences`` arrays), via psycopg2
  - a JSON export of journal entries (list, or ``{"data": [...]}``)

Tags are normalised the same way the journal write path stores them:
whitespace trimmed, lower-cased, blanks dropped.
"""

from __future__ import annotations

import json
import logging
from datetime import date
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional

import pandas as pd
import psycopg2
from psycopg2.extras import RealDictCursor

from db_utils import get_conn_str
from journal_models import DayRecord, InvalidDayRecordError

log = logging.getLogger("journal_loader")

JOURNAL_COLUMNS = ["entry_date", "events", "occurrences"]


# ─── Normalisation ────────────────────────────────────────────

def normalize_tag(raw: Any) -> Optional[str]:
    """Trim + lowercase; blank or missing tags become None."""
    if raw is None:
        return None
    if not isinstance(raw, str):
        raise TypeError(f"tag must be a string, got {type(raw).__name__}")
    tag = raw.strip().lower()
    return tag or None


def normalize_tags(raws: Iterable[Any]) -> frozenset:
    out = set()
    for raw in raws:
        tag = normalize_tag(raw)
        if tag:
            out.add(tag)
    return frozenset(out)


def _tag_list(value: Any, index: int, field: str) -> List[Any]:
    # ARRAY_AGG(...) FILTER (...) yields NULL for days with no rows
    if value is None:
        return []
    if isinstance(value, (str, bytes, Mapping)) or not hasattr(value, "__iter__"):
        raise InvalidDayRecordError(index, f"{field} must be a list of names, got {type(value).__name__}")
    return list(value)


def _entry_date(entry: Mapping, index: int) -> Optional[date]:
    raw = entry.get("entry_date", entry.get("entryDate"))
    if raw is None or raw is pd.NaT or (isinstance(raw, float) and pd.isna(raw)):
        return None
    if isinstance(raw, pd.Timestamp):
        return raw.date()
    if isinstance(raw, date):
        return raw
    try:
        return date.fromisoformat(str(raw)[:10])
    except ValueError:
        raise InvalidDayRecordError(index, f"entry date {raw!r} is not YYYY-MM-DD") from None


def _normalized(values: List[Any], index: int, field: str) -> frozenset:
    try:
        return normalize_tags(values)
    except TypeError as e:
        raise InvalidDayRecordError(index, f"{field}: {e}") from None


# ─── Entries -> DayRecords ────────────────────────────────────

def day_records_for_occurrence(entries: Iterable[Mapping], occurrence: str) -> List[DayRecord]:
    """Reduce each journal entry to (events, occurrence present?)."""
    target = normalize_tag(occurrence)
    if not target:
        raise ValueError("occurrence name must not be blank")

    records: List[DayRecord] = []
    for i, entry in enumerate(entries):
        if not isinstance(entry, Mapping):
            raise InvalidDayRecordError(i, f"journal entry must be a mapping, got {type(entry).__name__}")
        if "events" not in entry:
            raise InvalidDayRecordError(i, "events collection is missing")
        events = _normalized(_tag_list(entry["events"], i, "events"), i, "events")
        occurrences = _normalized(_tag_list(entry.get("occurrences"), i, "occurrences"), i, "occurrences")
        records.append(DayRecord(
            events=events,
            occurrence_present=target in occurrences,
            entry_date=_entry_date(entry, i),
        ))
    return records


def occurrence_names(entries: Iterable[Mapping]) -> List[str]:
    """Every distinct normalised occurrence name across the entries."""
    names = set()
    for i, entry in enumerate(entries):
        if not isinstance(entry, Mapping):
            raise InvalidDayRecordError(i, f"journal entry must be a mapping, got {type(entry).__name__}")
        names.update(_normalized(_tag_list(entry.get("occurrences"), i, "occurrences"), i, "occurrences"))
    return sorted(names)


def frame_to_entries(df: pd.DataFrame) -> List[Dict[str, Any]]:
    missing = [c for c in ("events", "occurrences") if c not in df.columns]
    if missing:
        raise ValueError(f"journal frame is missing columns: {', '.join(missing)}")
    if "entry_date" in df.columns:
        df = df.sort_values("entry_date", kind="stable")
    entries = df.to_dict(orient="records")
    for entry in entries:
        # pandas stores missing arrays as NaN floats
        for col in ("events", "occurrences"):
            if isinstance(entry[col], float) and pd.isna(entry[col]):
                entry[col] = None
    return entries


def journal_from_frame(df: pd.DataFrame, occurrence: str) -> List[DayRecord]:
    return day_records_for_occurrence(frame_to_entries(df), occurrence)


# ─── Sources ──────────────────────────────────────────────────

def load_journal_entries(user_id: str, conn_str: Optional[str] = None,
                         date_start=None, date_end=None) -> pd.DataFrame:
    """Read one user's journal days from the user_journal_data view."""
    cs = conn_str or get_conn_str()
    if not cs:
        raise RuntimeError("POSTGRES_CONNECTION_STRING (or DATABASE_URL) is not configured")

    query = "SELECT entry_date, events, occurrences FROM user_journal_data WHERE user_id = %s"
    params: list = [user_id]
    if date_start:
        query += " AND entry_date >= %s"
        params.append(date_start)
    if date_end:
        query += " AND entry_date <= %s"
        params.append(date_end)
    query += " ORDER BY entry_date"

    conn = psycopg2.connect(cs)
    try:
        with conn.cursor(cursor_factory=RealDictCursor) as cur:
            cur.execute(query, tuple(params))
            rows = cur.fetchall()
    finally:
        conn.close()

    df = pd.DataFrame([dict(r) for r in rows], columns=JOURNAL_COLUMNS)
    if not df.empty:
        log.info("   Loaded %d journal days (%s -> %s)",
                 len(df), df["entry_date"].min(), df["entry_date"].max())
    else:
        log.info("   No journal days for user %s", user_id)
    return df


def load_tracked_occurrences(user_id: str, conn_str: Optional[str] = None) -> List[str]:
    """Names the user asked to monitor, normalised."""
    cs = conn_str or get_conn_str()
    if not cs:
        raise RuntimeError("POSTGRES_CONNECTION_STRING (or DATABASE_URL) is not configured")
    conn = psycopg2.connect(cs)
    try:
        with conn.cursor() as cur:
            cur.execute(
                "SELECT name FROM tracked_occurrences WHERE user_id = %s ORDER BY name",
                (user_id,),
            )
            names = [r[0] for r in cur.fetchall()]
    finally:
        conn.close()
    return sorted(normalize_tags(names))


def load_journal_file(path) -> pd.DataFrame:
    """Load a JSON journal export into the same frame shape as the view."""
    payload = json.loads(Path(path).read_text(encoding="utf-8"))
    if isinstance(payload, Mapping):
        if "data" not in payload:
            raise ValueError(f"{path}: expected a list of entries or an object with 'data'")
        payload = payload["data"]
    if not isinstance(payload, list):
        raise ValueError(f"{path}: journal entries must be a list")

    rows = []
    for i, entry in enumerate(payload):
        if not isinstance(entry, Mapping):
            raise InvalidDayRecordError(i, f"journal entry must be an object, got {type(entry).__name__}")
        if "events" not in entry:
            raise InvalidDayRecordError(i, "events collection is missing")
        rows.append({
            "entry_date": _entry_date(entry, i),
            "events": entry["events"],
            "occurrences": entry.get("occurrences"),
        })
    log.info("   Loaded %d journal days from %s", len(rows), path)
    return pd.DataFrame(rows, columns=JOURNAL_COLUMNS)
