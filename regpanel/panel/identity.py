"""
Identity reconciliation: one canonical person key per real-world individual.

The status register defines the canonical universe. Event role identifiers
are resolved by exact match of their normalised key against that universe;
nothing is ever merged or guessed. Identifiers that do not resolve are
reported, and the reconciler stops the run if too many of a role's rows
reference unknown persons.
"""
from __future__ import annotations

import logging
from collections import Counter, defaultdict
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from regpanel.errors import DataQualityExceeded
from regpanel.identifiers import NearMatchIndex, normalize_identifier
from regpanel.person import Person
from regpanel.record_store import StatusRow
from regpanel.register_event import RegisterEvent

from .model import (AMBIGUOUS_IDENTIFIER, ATTRIBUTE_CONFLICT, MISSING_COHORT,
                    UNRESOLVED_IDENTIFIER, Finding, RunReport)

logger = logging.getLogger(__name__)

REASON_UNKNOWN = 'unknown'
REASON_AMBIGUOUS = 'ambiguous'


@dataclass(frozen=True)
class UnresolvedReference:
    """An event role identifier that matched no canonical person."""
    event_id: Any
    role: str
    raw_id: Any
    key: str
    year: int
    reason: str = REASON_UNKNOWN
    suggestion: Optional[str] = None
    source: Optional[str] = None


@dataclass(frozen=True)
class IdentityMap:
    """
    Read-only result of reconciliation, shared by every later stage.

    Attributes:
        persons (Mapping[str, Person]): person_id -> Person, ordered by person_id.
        raw_to_canonical (Mapping[str, str]): normalised raw key -> person_id for every
            key that resolved (status register keys and event role keys).
        ambiguous_keys (Mapping[str, Tuple[str, ...]]): keys shared by several distinct
            status-register identifiers, with the person ids involved.
        unresolved (Tuple[UnresolvedReference, ...]): distinct unresolved event references.
        normalization (Mapping[str, bool]): normalisation switches used for keys.
    """
    persons: Mapping[str, Person] = field(default_factory=dict)
    raw_to_canonical: Mapping[str, str] = field(default_factory=dict)
    ambiguous_keys: Mapping[str, Tuple[str, ...]] = field(default_factory=dict)
    unresolved: Tuple[UnresolvedReference, ...] = ()
    normalization: Mapping[str, bool] = field(default_factory=dict)

    def __post_init__(self):
        for name in ('persons', 'raw_to_canonical', 'ambiguous_keys', 'normalization'):
            object.__setattr__(self, name, MappingProxyType(dict(getattr(self, name))))

    def key(self, raw: Any) -> Optional[str]:
        return normalize_identifier(raw, **self.normalization)

    def resolve(self, raw: Any) -> Optional[str]:
        """Canonical person id for a raw identifier, or None if it does not resolve."""
        key = self.key(raw)
        if key is None:
            return None
        if key in self.ambiguous_keys:
            # only an exact spelling of one of the colliding identifiers resolves
            spelling = str(raw)
            return spelling if spelling in self.ambiguous_keys[key] else None
        return self.raw_to_canonical.get(key)

    def is_ambiguous(self, raw: Any) -> bool:
        key = self.key(raw)
        return key is not None and key in self.ambiguous_keys

    def orphan_counts(self) -> Dict[str, int]:
        """Distinct events per role with an unresolved identifier."""
        refs = {(ref.source, ref.event_id, ref.role) for ref in self.unresolved}
        counts = Counter(role for _, _, role in refs)
        return dict(sorted(counts.items()))


class IdentityReconciler:
    """
    Builds the canonical universe and resolves event role identifiers.

    Attributes:
        normalization (Dict[str, bool]): Keyword switches for normalize_identifier.
        max_unresolved_fraction (float): Per-role limit on unresolved rows / event rows.
        suggest_near_matches (bool): Attach advisory near-match suggestions to findings.
        near_match_threshold (int): Minimum similarity for a suggestion.
    """

    def __init__(self, normalization: Optional[Dict[str, bool]] = None,
                 max_unresolved_fraction: float = 0.05,
                 suggest_near_matches: bool = True,
                 near_match_threshold: int = 90):
        self.normalization: Dict[str, bool] = dict(normalization or {})
        self.max_unresolved_fraction = max_unresolved_fraction
        self.suggest_near_matches = suggest_near_matches
        self.near_match_threshold = near_match_threshold

    def _key(self, raw: Any) -> Optional[str]:
        return normalize_identifier(raw, **self.normalization)

    def reconcile(self, status_rows: Sequence[StatusRow], events: Sequence[RegisterEvent],
                  report: RunReport) -> IdentityMap:
        """
        Reconcile identifiers across the status register and the event registers.

        Args:
            status_rows: Status register rows (canonical universe).
            events: Raw event rows.
            report: Run report receiving findings and summary values.

        Returns:
            IdentityMap: Read-only canonical mapping.

        Raises:
            DataQualityExceeded: If a role's unresolved fraction exceeds the limit.
        """
        persons, index, ambiguous = self._build_universe(status_rows, report)
        unresolved, resolved_keys, role_rows, role_unresolved_rows = self._resolve_events(events, index, ambiguous, report)

        raw_to_canonical = dict(index)
        raw_to_canonical.update(resolved_keys)
        identity = IdentityMap(
            persons=persons,
            raw_to_canonical=dict(sorted(raw_to_canonical.items())),
            ambiguous_keys=ambiguous,
            unresolved=tuple(unresolved),
            normalization=self.normalization,
        )

        statistics = {}
        for role in sorted(role_rows):
            rows = role_rows[role]
            bad = role_unresolved_rows.get(role, 0)
            statistics[role] = {'event_rows': rows, 'unresolved_rows': bad,
                                'fraction': bad / rows if rows else 0.0}
        report.summary.add_value('identity', 'persons', len(persons))
        report.summary.add_value('identity', 'ambiguous_keys', len(ambiguous))
        report.summary.add_value('identity', 'orphan_events', identity.orphan_counts())
        report.summary.add_value('identity', 'unresolved_by_role', statistics)
        logger.info(f"Reconciled {len(persons)} persons; orphan events by role: {identity.orphan_counts()}")

        breaches = {role: s for role, s in statistics.items() if s['fraction'] > self.max_unresolved_fraction}
        if breaches:
            message = (f"Unresolved identifier fraction exceeds {self.max_unresolved_fraction:.2%} for roles "
                       + ", ".join(f"{role} ({s['unresolved_rows']}/{s['event_rows']})" for role, s in breaches.items()))
            logger.error(message)
            raise DataQualityExceeded(message, statistics=statistics)
        return identity

    def _build_universe(self, status_rows: Sequence[StatusRow], report: RunReport):
        # group the distinct raw spellings behind each normalised key
        spellings: Dict[str, List[str]] = defaultdict(list)
        for row in status_rows:
            key = self._key(row.raw_id)
            spelling = str(row.raw_id)
            if spelling not in spellings[key]:
                spellings[key].append(spelling)

        ambiguous: Dict[str, Tuple[str, ...]] = {}
        for key, raws in spellings.items():
            if len(raws) > 1:
                ambiguous[key] = tuple(sorted(raws))
                report.add(Finding(
                    finding_type=AMBIGUOUS_IDENTIFIER,
                    severity="warning",
                    detail=f"Status register identifiers {sorted(raws)} share key '{key}'; kept as separate persons",
                ))
        if ambiguous:
            logger.warning(f"{len(ambiguous)} identifier keys are ambiguous in the status register")

        persons: Dict[str, Person] = {}
        for row in status_rows:
            key = self._key(row.raw_id)
            person_id = str(row.raw_id) if key in ambiguous else key
            person = persons.get(person_id)
            if person is None:
                persons[person_id] = Person(person_id, raw_id=row.raw_id,
                                            birth_cohort=row.cohort, sex=row.sex,
                                            source=row.source, row_number=row.row_number)
                continue
            for problem in person.assign_attributes(row.cohort, row.sex):
                report.add(Finding(
                    finding_type=ATTRIBUTE_CONFLICT,
                    severity="warning",
                    person_id=person_id,
                    year=row.year,
                    detail=f"{problem} ({row.source} row {row.row_number})",
                ))

        for person_id in sorted(persons):
            if persons[person_id].birth_cohort is None:
                report.add(Finding(
                    finding_type=MISSING_COHORT,
                    severity="warning",
                    person_id=person_id,
                    detail="No birth cohort reported; person cannot enter the risk set",
                ))

        index = {key: key for key in spellings if key not in ambiguous}
        return dict(sorted(persons.items())), index, ambiguous

    def _resolve_events(self, events: Iterable[RegisterEvent], index: Dict[str, str],
                        ambiguous: Dict[str, Tuple[str, ...]], report: RunReport):
        near = NearMatchIndex(index.keys(), self.near_match_threshold) if self.suggest_near_matches else None
        unresolved: List[UnresolvedReference] = []
        seen = set()
        resolved_keys: Dict[str, str] = {}
        role_rows: Counter = Counter()
        role_unresolved_rows: Counter = Counter()

        for event in events:
            for role in event.roles:
                role_rows[role] += 1
                raw = event.identifier(role)
                if raw is None:
                    continue
                key = self._key(raw)
                if key in index:
                    resolved_keys[key] = index[key]
                    continue
                if key in ambiguous and str(raw) in ambiguous[key]:
                    continue
                role_unresolved_rows[role] += 1
                if (event.event_key, role, key) in seen:
                    continue
                seen.add((event.event_key, role, key))

                if key in ambiguous:
                    reason = REASON_AMBIGUOUS
                    suggestion = None
                    detail = f"Identifier {raw!r} matches several status register identifiers {list(ambiguous[key])}"
                    finding_type = AMBIGUOUS_IDENTIFIER
                else:
                    reason = REASON_UNKNOWN
                    match = near.suggest(key) if near is not None else None
                    suggestion = match[0] if match else None
                    detail = f"Event references unknown person {raw!r}"
                    if suggestion is not None:
                        detail += f" (closest known identifier '{suggestion}', score {match[1]:.0f})"
                    finding_type = UNRESOLVED_IDENTIFIER
                unresolved.append(UnresolvedReference(
                    event_id=event.event_id, role=role, raw_id=raw, key=key,
                    year=event.event_year, reason=reason, suggestion=suggestion,
                    source=event.source,
                ))
                report.add(Finding(
                    finding_type=finding_type,
                    severity="warning",
                    event_id=event.event_id,
                    role=role,
                    year=event.event_year,
                    detail=detail,
                ))
        return unresolved, resolved_keys, role_rows, role_unresolved_rows
