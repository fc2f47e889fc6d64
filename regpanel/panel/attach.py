from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from regpanel.errors import DataQualityExceeded
from regpanel.register_event import RegisterEvent
from regpanel.spell import SpellHistory

from .identity import IdentityMap
from .model import (CONFLICTING_ROLE_IDENTIFIER, CROSS_ROLE_CONFLICT, DUPLICATE_EVENT_ROW,
                    UNCOVERED_EVENT, Attachment, Finding, RunReport)

logger = logging.getLogger(__name__)

FLAG_UNCOVERED = 'uncovered'
FLAG_CROSS_ROLE = 'cross_role_conflict'
FLAG_DUPLICATE_ROWS = 'duplicate_rows'


@dataclass
class _Pending:
    event_id: Any
    source: Optional[str]
    role: str
    person_id: str
    event_year: int
    event_type: str
    source_rows: List[Tuple[str, int]] = field(default_factory=list)
    flags: List[str] = field(default_factory=list)


class EventAttacher:
    """
    Attaches events to canonical persons and to the spell covering the event year.

    Events are keyed by (source, event_id), since each register numbers its own
    rows. For a fixed event and role at most one attachment exists: repeated raw rows
    collapse into it, and a later row naming a different person for the same
    role is reported instead of attached. The same person appearing under two
    roles of one event keeps both attachments, flagged for review.

    Attributes:
        max_cross_role_conflict_fraction (float): Limit on events with cross-role conflicts.
    """

    def __init__(self, max_cross_role_conflict_fraction: float = 0.01):
        self.max_cross_role_conflict_fraction = max_cross_role_conflict_fraction

    def attach(self, identity: IdentityMap, histories: Mapping[str, SpellHistory],
               events: Sequence[RegisterEvent], report: RunReport) -> Tuple[Attachment, ...]:
        """
        Build attachments for every resolvable role identifier.

        Args:
            identity: Canonical mapping from the reconciler.
            histories: Repaired spells per person.
            events: Raw event rows in extract order.
            report: Run report receiving findings and summary values.

        Returns:
            Tuple[Attachment, ...]: Attachments in order of first event appearance, then role.

        Raises:
            DataQualityExceeded: If too many events attach one person under several roles.
        """
        pending: Dict[Tuple[Tuple[Optional[str], Any], str], _Pending] = {}
        event_keys: List[Tuple[Optional[str], Any]] = []
        seen_events = set()

        for event in events:
            if event.event_key not in seen_events:
                seen_events.add(event.event_key)
                event_keys.append(event.event_key)
            for role in event.roles:
                raw = event.identifier(role)
                if raw is None:
                    continue
                person_id = identity.resolve(raw)
                if person_id is None:
                    continue
                self._add(pending, event, role, person_id, report)

        by_event: Dict[Tuple[Optional[str], Any], List[_Pending]] = {}
        for item in pending.values():
            by_event.setdefault((item.source, item.event_id), []).append(item)

        conflicted_events = self._flag_cross_role(by_event, report)
        attachments = [self._finish(item, histories, report)
                       for key in event_keys for item in by_event.get(key, [])]

        orphan_counts = identity.orphan_counts()
        covered = sum(1 for a in attachments if a.is_covered)
        fraction = len(conflicted_events) / len(event_keys) if event_keys else 0.0
        report.summary.add_value('attachments', 'events', len(event_keys))
        report.summary.add_value('attachments', 'attachments', len(attachments))
        report.summary.add_value('attachments', 'covered', covered)
        report.summary.add_value('attachments', 'uncovered', len(attachments) - covered)
        report.summary.add_value('attachments', 'orphan_events', orphan_counts)
        report.summary.add_value('attachments', 'cross_role_conflicts', len(conflicted_events))
        if orphan_counts:
            logger.warning(f"Orphan events by role: {orphan_counts}")
        logger.info(f"Attached {len(attachments)} role links for {len(event_keys)} events ({covered} covered)")

        if fraction > self.max_cross_role_conflict_fraction:
            message = (f"Cross-role identifier conflicts in {len(conflicted_events)}/{len(event_keys)} events "
                       f"exceed {self.max_cross_role_conflict_fraction:.2%}")
            logger.error(message)
            raise DataQualityExceeded(message, statistics={
                'events': len(event_keys),
                'cross_role_conflicts': len(conflicted_events),
                'fraction': fraction,
            })
        return tuple(attachments)

    @staticmethod
    def _add(pending: Dict[Tuple[Tuple[Optional[str], Any], str], _Pending], event: RegisterEvent, role: str,
             person_id: str, report: RunReport) -> None:
        ref = (event.source, event.row_number)
        existing = pending.get((event.event_key, role))
        if existing is None:
            pending[(event.event_key, role)] = _Pending(event.event_id, event.source, role, person_id,
                                                        event.event_year, event.event_type, [ref])
            return
        if existing.person_id == person_id:
            existing.source_rows.append(ref)
            if FLAG_DUPLICATE_ROWS not in existing.flags:
                existing.flags.append(FLAG_DUPLICATE_ROWS)
            report.add(Finding(
                finding_type=DUPLICATE_EVENT_ROW,
                severity="info",
                event_id=event.event_id,
                person_id=person_id,
                role=role,
                year=existing.event_year,
                detail=f"Row {event.source}:{event.row_number} repeats the event; collapsed",
            ))
            return
        report.add(Finding(
            finding_type=CONFLICTING_ROLE_IDENTIFIER,
            severity="warning",
            event_id=event.event_id,
            person_id=person_id,
            role=role,
            year=event.event_year,
            detail=f"Row {event.source}:{event.row_number} names {person_id} as {role}; "
                   f"already attached to {existing.person_id}, not attached",
        ))

    @staticmethod
    def _flag_cross_role(by_event: Dict[Tuple[Optional[str], Any], List[_Pending]], report: RunReport) -> set:
        conflicted = set()
        for key, items in by_event.items():
            roles_by_person: Dict[str, List[_Pending]] = {}
            for item in items:
                roles_by_person.setdefault(item.person_id, []).append(item)
            for person_id, same in roles_by_person.items():
                if len(same) < 2:
                    continue
                conflicted.add(key)
                for item in same:
                    item.flags.append(FLAG_CROSS_ROLE)
                report.add(Finding(
                    finding_type=CROSS_ROLE_CONFLICT,
                    severity="warning",
                    event_id=same[0].event_id,
                    person_id=person_id,
                    role=",".join(item.role for item in same),
                    year=same[0].event_year,
                    detail=f"Person {person_id} appears as {[item.role for item in same]} "
                           f"of the same {same[0].source} event",
                ))
        return conflicted

    @staticmethod
    def _finish(item: _Pending, histories: Mapping[str, SpellHistory], report: RunReport) -> Attachment:
        history = histories.get(item.person_id)
        spell = history.spell_covering(item.event_year) if history is not None else None
        flags = list(item.flags)
        if spell is None:
            flags.append(FLAG_UNCOVERED)
            report.add(Finding(
                finding_type=UNCOVERED_EVENT,
                severity="warning",
                event_id=item.event_id,
                person_id=item.person_id,
                role=item.role,
                year=item.event_year,
                detail="No spell covers the event year (outside the observed span or in an unobserved gap)",
            ))
        return Attachment(
            event_id=item.event_id,
            person_id=item.person_id,
            role=item.role,
            event_year=item.event_year,
            matched_spell_id=spell.spell_id if spell is not None else None,
            event_type=item.event_type,
            flags=tuple(flags),
            source_rows=tuple(item.source_rows),
            source=item.source,
        )
