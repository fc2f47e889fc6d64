"""
Tests for risk-set derivation.
"""
from __future__ import annotations

import pytest

from regpanel.panel.identity import IdentityReconciler
from regpanel.panel.model import RunReport
from regpanel.panel.risk_set import RiskSetFilter, observed_year_range


class TestRiskSetFilter:
    """Tests for RiskSetFilter."""

    def test_band_intersected_with_observed_spells(self, link, status_years):
        """Band 15-50 and cohort 1970 allow 1985-2020; spells start in 1990."""
        _, identity, histories, report = link(status_years("P1", range(1990, 2021), 1970))
        entries = RiskSetFilter(15, 50, 1990, 2020).build(identity, histories, report)
        assert [e.year for e in entries] == list(range(1990, 2021))
        assert entries[0].age == 20
        assert entries[-1].age == 50
        assert all(e.spell_id == "P1:1990" for e in entries)

    def test_target_range_wider_than_observed(self, link, status_years):
        _, identity, histories, report = link(status_years("P1", range(1990, 2021), 1970))
        entries = RiskSetFilter(15, 50, 1980, 2030).build(identity, histories, report)
        assert (entries[0].year, entries[-1].year) == (1990, 2020)

    def test_age_band_cuts(self, link, status_years):
        _, identity, histories, report = link(status_years("P1", range(1980, 2000), 1970))
        entries = RiskSetFilter(15, 25).build(identity, histories, report)
        assert (entries[0].year, entries[-1].year) == (1985, 1995)

    def test_target_range_defaults_to_observed(self, link, sample_rows):
        status, births = sample_rows
        _, identity, histories, report = link(status, births)
        risk_filter = RiskSetFilter(15, 50)
        assert risk_filter.target_range(histories) == (1990, 1999)
        assert observed_year_range(histories) == (1990, 1999)
        entries = risk_filter.build(identity, histories, report)
        assert len(entries) == 33
        assert report.summary.get_value("risk_set", "person_years") == 33

    def test_ordered_by_person_and_year(self, link, sample_rows):
        status, births = sample_rows
        _, identity, histories, report = link(status, births)
        entries = RiskSetFilter(15, 50).build(identity, histories, report)
        keys = [(e.person_id, e.year) for e in entries]
        assert keys == sorted(keys)
        assert len(set(keys)) == len(keys)

    @pytest.mark.parametrize("bands", [
        [(15, 50), (20, 45), (25, 40), (30, 30), (31, 30)],
        [(0, 100), (15, 50), (22, 22)],
    ])
    def test_narrowing_band_never_grows(self, link, sample_rows, bands):
        status, births = sample_rows
        _, identity, histories, _ = link(status, births)
        sizes = [len(RiskSetFilter(lo, hi).build(identity, histories, RunReport())) for lo, hi in bands]
        assert sizes == sorted(sizes, reverse=True)

    def test_missing_cohort_excluded(self, link, status_years):
        status = status_years("P1", range(1990, 1995), None) + status_years("P2", range(1990, 1995), 1970)
        _, identity, histories, report = link(status)
        entries = RiskSetFilter(15, 50).build(identity, histories, report)
        assert {e.person_id for e in entries} == {"P2"}

    def test_unknown_status_years(self, link, sample_rows):
        status, births = sample_rows
        _, identity, histories, report = link(status, births)
        with_unknown = RiskSetFilter(15, 50).build(identity, histories, report)
        without_unknown = RiskSetFilter(15, 50, unknown_status_is_coverage=False).build(identity, histories, report)
        p3_with = [e.year for e in with_unknown if e.person_id == "P3"]
        p3_without = [e.year for e in without_unknown if e.person_id == "P3"]
        assert p3_with == list(range(1990, 1997))
        assert p3_without == [1990, 1991, 1996]
        assert [e.status for e in with_unknown if e.person_id == "P3" and e.year == 1993] == [None]

    def test_unobserved_gap_excluded(self, link, sample_rows):
        status, births = sample_rows
        _, identity, histories, report = link(status, births, gap_fill_policy="leave-gap")
        entries = RiskSetFilter(15, 50).build(identity, histories, report)
        p1_years = [e.year for e in entries if e.person_id == "P1"]
        assert p1_years == [1990, 1991, 1993, 1994, 1995]

    def test_empty_histories(self):
        report = RunReport()
        identity = IdentityReconciler().reconcile([], [], report)
        assert RiskSetFilter(15, 50).build(identity, {}, report) == ()
        assert observed_year_range({}) == (None, None)
