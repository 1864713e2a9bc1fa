"""
Shared configuration utilities.
Single source of truth for connection-string and analysis settings resolution.
"""

from __future__ import annotations

import os

from dotenv import load_dotenv

from constants import DEFAULT_MIN_JOURNAL_DAYS, DEFAULT_PHI_THRESHOLD

load_dotenv()


def get_conn_str() -> str:
    """Return PostgreSQL connection string.

    Checks POSTGRES_CONNECTION_STRING first, falls back to DATABASE_URL
    (Supabase/Heroku style).  Normalises postgres:// to postgresql:// for psycopg2.
    """
    url = (os.getenv("POSTGRES_CONNECTION_STRING") or os.getenv("DATABASE_URL") or "").strip()
    if url.startswith("postgres://"):
        url = "postgresql://" + url[len("postgres://"):]
    return url


def _env_number(name: str, default, cast):
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        return cast(raw)
    except ValueError:
        raise RuntimeError(f"{name} must be a number, got {raw!r}") from None


def get_phi_threshold() -> float:
    return _env_number("PHI_THRESHOLD", DEFAULT_PHI_THRESHOLD, float)


def get_min_journal_days() -> int:
    return _env_number("MIN_JOURNAL_DAYS", DEFAULT_MIN_JOURNAL_DAYS, int)
