"""
Shared test configuration.

Adds src/ to sys.path so the flat modules (correlation_engine,
journal_loader, ...) and the analytics/pipeline folders import the same
way they do when the scripts run from src/.
"""

import os
import sys

import pytest

_project_root = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
_src_dir = os.path.join(_project_root, "src")

if _src_dir not in sys.path:
    sys.path.insert(0, _src_dir)

from journal_models import DayRecord  # noqa: E402


def make_journal(*days):
    """Build DayRecords from (events, occurrence_present) pairs."""
    return [DayRecord(events=frozenset(ev), occurrence_present=occ) for ev, occ in days]


@pytest.fixture
def scenario_positive():
    return make_journal((["x"], True), (["x"], True), ([], False), ([], False))


@pytest.fixture
def scenario_negative():
    return make_journal((["x"], False), (["x"], False), ([], True), ([], True))


@pytest.fixture
def scenario_independent():
    return make_journal((["x"], True), (["x"], False), ([], True), ([], False))
