"""
Invariant checks on the assembled panel.
"""
from __future__ import annotations

from collections import Counter
from dataclasses import dataclass

from regpanel.errors import InvariantViolation

from .base import STAGE_PANEL, CheckContext, InvariantCheck, register_check


@register_check
@dataclass
class PanelRowCountCheck(InvariantCheck):
    """The panel has exactly one row per risk-set entry, in the same order."""
    check_id: str = "panel_row_count"
    stage: str = STAGE_PANEL

    def run(self, context: CheckContext) -> None:
        panel = context.panel
        if len(panel) != len(context.risk_set):
            raise InvariantViolation(
                f"Panel has {len(panel)} rows for a risk set of {len(context.risk_set)}",
                check_id=self.check_id,
                details={'rows': len(panel), 'risk_set': len(context.risk_set)},
            )
        for row, entry in zip(panel, context.risk_set):
            if (row.person_id, row.year) != (entry.person_id, entry.year):
                raise InvariantViolation(
                    f"Panel row ({row.person_id}, {row.year}) does not match risk-set entry "
                    f"({entry.person_id}, {entry.year})",
                    check_id=self.check_id,
                    details={'row': (row.person_id, row.year), 'entry': (entry.person_id, entry.year)},
                )


@register_check
@dataclass
class PanelEventConservationCheck(InvariantCheck):
    """
    For every role and year, the panel's event count equals the number of
    covered attachments whose person-year is in the panel.
    """
    check_id: str = "panel_event_conservation"
    stage: str = STAGE_PANEL

    def run(self, context: CheckContext) -> None:
        panel = context.panel
        in_panel = {(row.person_id, row.year) for row in panel}
        expected = Counter(
            (a.role, a.event_year) for a in context.attachments
            if a.is_covered and a.role in panel.roles and (a.person_id, a.event_year) in in_panel
        )
        actual = Counter()
        for row in panel:
            for role in panel.roles:
                if row.count(role):
                    actual[(role, row.year)] += row.count(role)
        if expected != actual:
            differences = {f"{role}:{year}": (actual.get((role, year), 0), expected.get((role, year), 0))
                           for role, year in sorted(set(expected) | set(actual))
                           if actual.get((role, year), 0) != expected.get((role, year), 0)}
            raise InvariantViolation(
                f"Panel event counts differ from attachments for {sorted(differences)}",
                check_id=self.check_id,
                details={'panel_vs_attachments': differences},
            )
