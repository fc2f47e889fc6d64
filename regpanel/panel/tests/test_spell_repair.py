"""
Tests for spell repair.
"""
from __future__ import annotations

from typing import List

import pytest

from regpanel.errors import InvariantViolation
from regpanel.panel.gap_policies import get_policy
from regpanel.panel.identity import IdentityReconciler
from regpanel.panel.model import (CONFLICTING_STATUS, GAP_INSERTED, GAP_MARKED_UNKNOWN,
                                  GAP_UNOBSERVED, RunReport)
from regpanel.panel.spell_repair import SpellRepairer
from regpanel.record_store import StatusRow
from regpanel.spell import ORIGIN_INSERTED, ORIGIN_OBSERVED, ORIGIN_UNKNOWN


def rows_for(person_id, statuses, cohort=1970, start=0) -> List[StatusRow]:
    """statuses: list of (year, status) in extract order."""
    return [StatusRow(person_id, year, cohort, status, "F", "status", start + n)
            for n, (year, status) in enumerate(statuses)]


def repair(rows, policy="forward-fill", max_fill_gap=2, workers=1):
    report = RunReport()
    identity = IdentityReconciler().reconcile(rows, [], report)
    histories = SpellRepairer(get_policy(policy, max_fill_gap), workers=workers).repair(identity, rows, report)
    return histories, report


class TestSpellRepairer:
    """Tests for SpellRepairer."""

    def test_forward_fill_single_missing_year(self):
        """Cohort 1970, 1990-1995 observed except 1992: 1992 carries the 1991 status."""
        rows = rows_for("P1", [(1990, "single"), (1991, "cohabiting"), (1993, "married"),
                               (1994, "married"), (1995, "married")])
        histories, report = repair(rows)
        history = histories["P1"]
        assert list(history.covered_years()) == list(range(1990, 1996))
        filler = history.spell_covering(1992)
        assert filler.origin == ORIGIN_INSERTED
        assert filler.status == "cohabiting"
        assert filler.age_at_start == 22
        assert [g.resolution for g in history.gaps] == ["inserted"]
        assert report.count(GAP_INSERTED) == 1
        assert report.summary.get_value("spells", "inserted_years") == 1

    def test_consecutive_equal_status_merges(self):
        rows = rows_for("P1", [(1990, "single"), (1991, "single"), (1992, "single"), (1993, "married")])
        history = repair(rows)[0]["P1"]
        assert [(s.start_year, s.end_year, s.status) for s in history] == [
            (1990, 1992, "single"), (1993, 1993, "married")]
        assert history.spells[0].source_rows == (("status", 0), ("status", 1), ("status", 2))
        assert history.spells[0].age_at_start == 20
        assert all(s.origin == ORIGIN_OBSERVED for s in history)

    def test_rows_out_of_order(self):
        rows = rows_for("P1", [(1993, "single"), (1990, "single"), (1992, "single"), (1991, "single")])
        history = repair(rows)[0]["P1"]
        assert len(history) == 1
        assert (history.first_year, history.last_year) == (1990, 1993)

    def test_exact_duplicate_rows_collapse(self):
        rows = rows_for("P1", [(1990, "single"), (1990, "single"), (1991, "single")])
        history, report = repair(rows)
        assert len(history["P1"]) == 1
        assert report.count(CONFLICTING_STATUS) == 0

    def test_conflicting_status_keeps_first_row(self):
        rows = rows_for("P1", [(1990, "single"), (1990, "married"), (1991, "single")])
        histories, report = repair(rows)
        assert histories["P1"].spell_covering(1990).status == "single"
        findings = report.findings_of(CONFLICTING_STATUS)
        assert len(findings) == 1
        assert findings[0].year == 1990

    def test_long_gap_marked_unknown(self):
        rows = rows_for("P1", [(1990, "single"), (1994, "single")])
        histories, report = repair(rows, max_fill_gap=2)
        filler = histories["P1"].spell_covering(1992)
        assert filler.origin == ORIGIN_UNKNOWN
        assert filler.status is None
        assert (filler.start_year, filler.end_year) == (1991, 1993)
        assert report.count(GAP_MARKED_UNKNOWN) == 1

    def test_leave_gap(self):
        rows = rows_for("P1", [(1990, "single"), (1991, "single"), (1993, "single")])
        histories, report = repair(rows, policy="leave-gap")
        history = histories["P1"]
        assert history.spell_covering(1992) is None
        assert [(g.start_year, g.end_year, g.resolution) for g in history.gaps] == [(1992, 1992, "unobserved")]
        assert report.count(GAP_UNOBSERVED) == 1

    def test_no_extrapolation(self):
        rows = rows_for("P1", [(1992, "single"), (1994, "single")])
        history = repair(rows)[0]["P1"]
        assert history.spell_covering(1991) is None
        assert history.spell_covering(1995) is None
        assert (history.first_year, history.last_year) == (1992, 1994)

    @pytest.mark.parametrize("policy", ["forward-fill", "mark-unknown"])
    @pytest.mark.parametrize("max_fill_gap", [0, 1, 2, 5])
    def test_spells_contiguous_and_non_overlapping(self, policy, max_fill_gap):
        rows = (rows_for("P1", [(1990, "a"), (1992, "b"), (1993, "b"), (1997, "a"), (1998, "c")])
                + rows_for("P2", [(1985, "a"), (1986, "a"), (1990, "a")], start=5)
                + rows_for("P3", [(2000, "a")], start=8))
        histories = repair(rows, policy=policy, max_fill_gap=max_fill_gap)[0]
        for history in histories.values():
            years = list(history.covered_years())
            assert years == list(range(history.first_year, history.last_year + 1))
            for previous, current in zip(history.spells, history.spells[1:]):
                assert not previous.overlaps(current)
                assert previous.end_year + 1 == current.start_year

    def test_workers_give_same_histories(self):
        rows = []
        for n in range(12):
            rows += rows_for(f"P{n:02d}", [(1990, "a"), (1991 + n % 3, "b"), (1995, "a")], start=3 * n)
        serial = repair(rows, workers=1)
        threaded = repair(rows, workers=4)
        assert serial[0] == threaded[0]
        assert list(serial[0]) == list(threaded[0])
        assert serial[1].findings == threaded[1].findings

    def test_every_person_gets_a_history(self):
        rows = rows_for("P2", [(1990, "a")]) + rows_for("P1", [(1991, "a")], start=1)
        histories = repair(rows)[0]
        assert list(histories) == ["P1", "P2"]
        assert histories["P1"].spells[0].spell_id == "P1:1991"

    def test_status_row_outside_identity_map(self):
        rows = rows_for("P1", [(1990, "a")])
        report = RunReport()
        identity = IdentityReconciler().reconcile(rows, [], report)
        stray = rows_for("P9", [(1990, "a")], start=1)
        with pytest.raises(InvariantViolation) as excinfo:
            SpellRepairer(get_policy("forward-fill")).repair(identity, rows + stray, report)
        assert excinfo.value.details["raw_id"] == "P9"
