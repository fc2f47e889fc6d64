"""
Reconciliation audit: cross-check event counts between the raw event rows,
the attachments and the assembled panel.

The auditor never mutates the panel. It returns a discrepancy report (a tuple
of findings) that names the events and persons involved, so every count
difference can be traced by hand.
"""
from __future__ import annotations

import logging
from collections import defaultdict
from typing import Any, Dict, List, Optional, Sequence, Set, Tuple

from regpanel.register_event import RegisterEvent

from .identity import IdentityMap
from .model import COUNT_MISMATCH, OUTSIDE_RISK_SET, Attachment, Finding, Panel, RunReport

logger = logging.getLogger(__name__)


class ReconciliationAuditor:
    """
    Compares, per role and year, resolvable raw events with covered attachments
    and with the panel's event counts.
    """

    def __init__(self, year_start: Optional[int] = None, year_end: Optional[int] = None):
        self.year_start = year_start
        self.year_end = year_end

    def _in_range(self, year: int) -> bool:
        if self.year_start is not None and year < self.year_start:
            return False
        if self.year_end is not None and year > self.year_end:
            return False
        return True

    def audit(self, identity: IdentityMap, events: Sequence[RegisterEvent],
              attachments: Sequence[Attachment], panel: Panel, report: RunReport) -> Tuple[Finding, ...]:
        """
        Audit one build.

        Args:
            identity: Canonical mapping.
            events: Raw event rows.
            attachments: Attachments produced by the attacher.
            panel: Assembled panel.
            report: Run report receiving the findings and the audit table.

        Returns:
            Tuple[Finding, ...]: Discrepancy findings, ordered by role then year.
        """
        resolvable: Dict[str, Dict[int, Set[Any]]] = defaultdict(lambda: defaultdict(set))
        for event in events:
            for role in event.roles:
                raw = event.identifier(role)
                if raw is not None and identity.resolve(raw) is not None:
                    resolvable[role][event.event_year].add(event.event_key)

        covered: Dict[str, Dict[int, List[Attachment]]] = defaultdict(lambda: defaultdict(list))
        for attachment in attachments:
            if attachment.is_covered:
                covered[attachment.role][attachment.event_year].append(attachment)

        in_panel = {(row.person_id, row.year) for row in panel}
        findings: List[Finding] = []
        table: Dict[str, Dict[int, Dict[str, int]]] = {}

        for role in sorted(set(resolvable) | set(covered)):
            panel_by_year = panel.event_totals_by_year(role) if role in panel.roles else {}
            role_table: Dict[int, Dict[str, int]] = {}
            years = sorted(set(resolvable[role]) | set(covered[role]) | set(panel_by_year))
            for year in years:
                raw_keys = resolvable[role][year]
                attached = covered[role][year]
                counted = [a for a in attached if (a.person_id, a.event_year) in in_panel]
                panel_count = panel_by_year.get(year, 0)
                role_table[year] = {'resolvable': len(raw_keys), 'attached': len(attached), 'in_panel': panel_count}

                for a in attached:
                    if (a.person_id, a.event_year) not in in_panel:
                        findings.append(Finding(
                            finding_type=OUTSIDE_RISK_SET,
                            severity="info",
                            event_id=a.event_id,
                            person_id=a.person_id,
                            role=role,
                            year=year,
                            detail=f"Attached to spell {a.matched_spell_id} but the person-year is not in the risk set",
                        ))

                if not self._in_range(year):
                    continue
                attached_keys = {a.event_key for a in attached}
                if len(raw_keys) != len(attached):
                    missing = sorted((event_id for _, event_id in raw_keys - attached_keys), key=str)
                    findings.append(Finding(
                        finding_type=COUNT_MISMATCH,
                        severity="warning",
                        role=role,
                        year=year,
                        detail=f"{len(raw_keys)} resolvable events, {len(attached)} attached with a covering spell; "
                               f"not attached: {missing}",
                    ))
                if panel_count != len(counted):
                    findings.append(Finding(
                        finding_type=COUNT_MISMATCH,
                        severity="error",
                        role=role,
                        year=year,
                        detail=f"Panel counts {panel_count} events but {len(counted)} attachments fall in the risk set",
                    ))
            table[role] = role_table

        report.extend(findings)
        report.summary.add_value('audit', 'by_role_year', table)
        report.summary.add_value('audit', 'discrepancies', len(findings))
        if findings:
            logger.warning(f"Audit found {len(findings)} discrepancies")
        return tuple(findings)
