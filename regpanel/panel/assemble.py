from __future__ import annotations

import logging
from collections import Counter
from typing import Dict, List, Sequence, Tuple

from regpanel.errors import InvariantViolation

from .model import Attachment, Panel, PanelRow, RiskSetEntry, RunReport

logger = logging.getLogger(__name__)


class PanelAssembler:
    """
    Left-joins the risk set with covered attachments, one row per risk-set entry.

    Each configured role becomes a count column: the number of attached events
    of that role for the person in that year.
    """

    def __init__(self, roles: Sequence[str]):
        self.roles: Tuple[str, ...] = tuple(roles)

    def assemble(self, risk_set: Sequence[RiskSetEntry], attachments: Sequence[Attachment],
                 report: RunReport) -> Panel:
        counts: Counter = Counter()
        for attachment in attachments:
            if attachment.is_covered and attachment.role in self.roles:
                counts[(attachment.person_id, attachment.event_year, attachment.role)] += 1

        rows: List[PanelRow] = []
        seen = set()
        for entry in risk_set:
            key = (entry.person_id, entry.year)
            if key in seen:
                raise InvariantViolation(
                    f"Risk set lists person {entry.person_id} twice for {entry.year}",
                    check_id='panel_row_count',
                    details={'person_id': entry.person_id, 'year': entry.year},
                )
            seen.add(key)
            event_counts: Dict[str, int] = {role: counts.get((entry.person_id, entry.year, role), 0)
                                            for role in self.roles}
            rows.append(PanelRow(entry.person_id, entry.year, entry.age, entry.status, event_counts))

        panel = Panel(rows=tuple(rows), roles=self.roles)
        totals = {role: panel.event_total(role) for role in self.roles}
        report.summary.add_value('panel', 'rows', len(panel))
        report.summary.add_value('panel', 'event_totals', totals)
        report.summary.add_value('panel', 'events_by_year', {role: panel.event_totals_by_year(role) for role in self.roles})
        logger.info(f"Assembled panel with {len(panel)} rows; events {totals}")
        return panel
