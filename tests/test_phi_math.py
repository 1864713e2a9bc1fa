"""
Tests for the phi layer computations.

Covers: extract_events, build_contingency_table(s), phi_coefficient,
phi_p_value and the compute_phi_layer wrapper.
"""
import itertools
import logging
import math
import random

import pytest

from analytics.phi_layer import (
    build_contingency_table,
    build_contingency_tables,
    compute_phi_layer,
    extract_events,
    phi_coefficient,
    phi_p_value,
)
from conftest import make_journal
from journal_models import ContingencyTable, DayRecord, InvalidDayRecordError


def _random_journal(seed: int, n_days: int = 40):
    rng = random.Random(seed)
    pool = ["coffee", "run", "wine", "late night", "Coffee", "nap"]
    days = []
    for _ in range(n_days):
        events = [t for t in pool if rng.random() < 0.4]
        days.append((events, rng.random() < 0.5))
    return make_journal(*days)


# ─── extract_events ───────────────────────────────────────────


class TestExtractEvents:

    def test_empty_journal(self):
        assert extract_events([]) == set()

    def test_overlapping_tags_returned_once(self):
        journal = make_journal((["a", "b"], True), (["b", "c"], False), (["a"], True))
        assert extract_events(journal) == {"a", "b", "c"}

    def test_empty_day_contributes_nothing(self):
        journal = make_journal(([], True), (["a"], False))
        assert extract_events(journal) == {"a"}

    def test_case_sensitive(self):
        journal = make_journal((["Coffee"], True), (["coffee"], False))
        assert extract_events(journal) == {"Coffee", "coffee"}


# ─── build_contingency_table ──────────────────────────────────


class TestContingencyTable:

    def test_scenario_positive(self, scenario_positive):
        t = build_contingency_table(scenario_positive, "x")
        assert (t.a, t.b, t.c, t.d) == (2, 0, 0, 2)

    def test_scenario_negative(self, scenario_negative):
        t = build_contingency_table(scenario_negative, "x")
        assert (t.a, t.b, t.c, t.d) == (0, 2, 2, 0)

    def test_absent_tag_has_no_event_cells(self):
        journal = _random_journal(1)
        t = build_contingency_table(journal, "never-logged")
        assert t.a == 0
        assert t.b == 0
        assert t.c + t.d == len(journal)

    def test_sum_equals_journal_length(self):
        for seed in range(5):
            journal = _random_journal(seed, n_days=10 + seed * 7)
            for tag in extract_events(journal):
                assert build_contingency_table(journal, tag).n == len(journal)

    def test_exact_match_not_substring(self):
        journal = make_journal((["late night"], True), (["night"], False))
        t = build_contingency_table(journal, "night")
        assert (t.a, t.b, t.c, t.d) == (0, 1, 1, 0)

    def test_duplicate_tags_count_day_once(self):
        # A list with duplicates collapses into the frozenset
        journal = [DayRecord(events=["x", "x"], occurrence_present=True)]
        t = build_contingency_table(journal, "x")
        assert (t.a, t.b, t.c, t.d) == (1, 0, 0, 0)

    def test_empty_journal(self):
        t = build_contingency_table([], "x")
        assert t.n == 0


class TestContingencyTablesOnePass:
    """One-pass builder must agree with the per-tag scan."""

    @pytest.mark.parametrize("seed", range(6))
    def test_matches_naive_scan(self, seed):
        journal = _random_journal(seed)
        fast = build_contingency_tables(journal)
        assert set(fast) == extract_events(journal)
        for tag, table in fast.items():
            assert table == build_contingency_table(journal, tag)

    def test_requested_absent_tag(self, scenario_positive):
        tables = build_contingency_tables(scenario_positive, ["x", "missing"])
        assert tables["missing"] == build_contingency_table(scenario_positive, "missing")
        assert tables["missing"].a == 0 and tables["missing"].c == 0

    def test_accepts_generator(self, scenario_positive):
        tables = build_contingency_tables(r for r in scenario_positive)
        assert tables["x"].n == 4

    def test_bare_string_tags_rejected(self, scenario_positive):
        with pytest.raises(TypeError, match="bare string"):
            build_contingency_tables(scenario_positive, "x")


# ─── phi_coefficient ──────────────────────────────────────────


class TestPhiCoefficient:

    def test_perfect_positive(self):
        r = phi_coefficient(ContingencyTable(2, 0, 0, 2))
        assert r.defined
        assert r.value == 1.0

    def test_perfect_negative(self):
        r = phi_coefficient(ContingencyTable(0, 2, 2, 0))
        assert r.value == -1.0

    def test_independent(self):
        r = phi_coefficient(ContingencyTable(1, 1, 1, 1))
        assert r.value == 0.0

    def test_known_value(self):
        # (10·20 − 5·5) / √(15·25·15·25) = 175 / 375
        r = phi_coefficient(ContingencyTable(10, 5, 5, 20))
        assert abs(r.value - 175 / 375) < 1e-12

    def test_absent_tag_is_indeterminate(self):
        r = phi_coefficient(ContingencyTable(0, 0, 3, 5))
        assert not r.defined
        assert r.value is None
        assert r.status == "indeterminate"
        assert "event_days" in r.zero_marginals

    @pytest.mark.parametrize("cells", [
        (0, 0, 1, 1),   # a+b = 0
        (1, 1, 0, 0),   # c+d = 0
        (0, 1, 0, 1),   # a+c = 0
        (1, 0, 1, 0),   # b+d = 0
        (0, 0, 0, 0),
    ])
    def test_zero_marginal_never_nan(self, cells):
        r = phi_coefficient(ContingencyTable(*cells))
        assert r.value is None
        assert not (isinstance(r.value, float) and math.isnan(r.value))

    def test_range_on_grid(self):
        for a, b, c, d in itertools.product(range(5), repeat=4):
            r = phi_coefficient(ContingencyTable(a, b, c, d))
            if r.defined:
                assert -1.0 <= r.value <= 1.0, (a, b, c, d, r.value)

    def test_joint_swap_symmetry(self):
        for a, b, c, d in itertools.product(range(1, 5), repeat=4):
            t = ContingencyTable(a, b, c, d)
            assert abs(phi_coefficient(t).value - phi_coefficient(t.swapped()).value) < 1e-12

    def test_large_counts_clamped(self):
        big = 10 ** 9
        r = phi_coefficient(ContingencyTable(big, 0, 0, big))
        assert r.value == 1.0

    def test_huge_counts_stay_in_range(self):
        huge = 10 ** 80
        r = phi_coefficient(ContingencyTable(huge, 1, 1, huge))
        assert -1.0 <= r.value <= 1.0
        assert r.value == pytest.approx(1.0)
        r = phi_coefficient(ContingencyTable(1, huge, huge, 1))
        assert r.value == pytest.approx(-1.0)
        r = phi_coefficient(ContingencyTable(huge, huge, huge, huge))
        assert r.value == 0.0

    def test_negative_count_rejected(self):
        with pytest.raises(ValueError):
            phi_coefficient(ContingencyTable(-1, 2, 3, 4))

    def test_non_integer_rejected(self):
        with pytest.raises(ValueError):
            phi_coefficient(ContingencyTable(1.5, 2, 3, 4))

    def test_matches_pearson_on_binary_data(self):
        """Phi is the Pearson r of 0/1-coded variables."""
        import numpy as np
        x = np.array([1] * 10 + [1] * 5 + [0] * 5 + [0] * 20)
        y = np.array([1] * 10 + [0] * 5 + [1] * 5 + [0] * 20)
        r = phi_coefficient(ContingencyTable(10, 5, 5, 20))
        assert abs(r.value - np.corrcoef(x, y)[0, 1]) < 1e-12


# ─── phi_p_value ──────────────────────────────────────────────


class TestPhiPValue:

    def test_indeterminate_has_no_p_value(self):
        assert phi_p_value(phi_coefficient(ContingencyTable(0, 0, 1, 1))) is None

    def test_independent_p_is_one(self):
        p = phi_p_value(phi_coefficient(ContingencyTable(5, 5, 5, 5)))
        assert abs(p - 1.0) < 1e-12

    def test_matches_scipy_chi2_contingency(self):
        from scipy import stats
        table = ContingencyTable(12, 3, 4, 21)
        expected = stats.chi2_contingency(
            [[table.a, table.b], [table.c, table.d]], correction=False
        )[1]
        assert abs(phi_p_value(phi_coefficient(table)) - expected) < 1e-9

    def test_strong_association_is_significant(self):
        p = phi_p_value(phi_coefficient(ContingencyTable(20, 1, 1, 20)))
        assert p < 0.001


# ─── compute_phi_layer ────────────────────────────────────────


class TestComputePhiLayer:

    def test_every_tag_scored(self, scenario_independent):
        journal = scenario_independent + make_journal((["y"], True))
        results = compute_phi_layer(journal=journal, logger=logging.getLogger("test"))
        assert set(results) == {"x", "y"}
        for r in results.values():
            assert r.table.n == len(journal)

    def test_accepts_raw_dicts(self):
        journal = [
            {"events": ["x"], "occurrence_present": True},
            {"events": [], "occurrencePresent": False},
        ]
        results = compute_phi_layer(journal=journal, logger=logging.getLogger("test"))
        assert results["x"].value == 1.0

    def test_malformed_record_fails_fast(self):
        journal = [
            {"events": ["x"], "occurrence_present": True},
            {"events": None, "occurrence_present": False},
        ]
        with pytest.raises(InvalidDayRecordError) as exc:
            compute_phi_layer(journal=journal, logger=logging.getLogger("test"))
        assert exc.value.index == 1

    def test_empty_journal(self):
        assert compute_phi_layer(journal=[], logger=logging.getLogger("test")) == {}
