from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Iterator, List, Literal, Mapping, Optional, Tuple, Union

import pandas as pd

# Finding types (recoverable conditions collected into the run report)
UNRESOLVED_IDENTIFIER = 'unresolved_identifier'
AMBIGUOUS_IDENTIFIER = 'ambiguous_identifier'
UNCOVERED_EVENT = 'uncovered_event'
CROSS_ROLE_CONFLICT = 'cross_role_identifier_conflict'
CONFLICTING_ROLE_IDENTIFIER = 'conflicting_role_identifier'
DUPLICATE_EVENT_ROW = 'duplicate_event_row'
ATTRIBUTE_CONFLICT = 'attribute_conflict'
CONFLICTING_STATUS = 'conflicting_status'
MISSING_COHORT = 'missing_cohort'
GAP_INSERTED = 'gap_inserted'
GAP_MARKED_UNKNOWN = 'gap_marked_unknown'
GAP_UNOBSERVED = 'gap_unobserved'
OUTSIDE_RISK_SET = 'outside_risk_set'
COUNT_MISMATCH = 'count_mismatch'

Severity = Literal["info", "warning", "error"]


@dataclass(frozen=True)
class Finding:
    """
    One structured diagnostic, traceable to events and persons.

    Attributes:
        finding_type (str): One of the finding type constants.
        severity (Severity): 'info', 'warning' or 'error'.
        event_id (Any): Event concerned, if any.
        person_id (Optional[str]): Canonical person concerned, if any.
        role (Optional[str]): Event role concerned, if any.
        year (Optional[int]): Year concerned, if any.
        detail (str): Human-readable explanation.
    """
    finding_type: str
    severity: Severity = "warning"
    event_id: Any = None
    person_id: Optional[str] = None
    role: Optional[str] = None
    year: Optional[int] = None
    detail: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            'finding_type': self.finding_type,
            'severity': self.severity,
            'event_id': self.event_id,
            'person_id': self.person_id,
            'role': self.role,
            'year': self.year,
            'detail': self.detail,
        }


@dataclass(frozen=True)
class Attachment:
    """
    Resolved association of one event to one person under one role.

    Attributes:
        event_id (Any): Event key.
        person_id (str): Canonical person key.
        role (str): Role the person plays in the event.
        event_year (int): Year of the event.
        matched_spell_id (Optional[str]): Spell covering event_year; None if uncovered.
        event_type (str): Kind of event.
        flags (Tuple[str, ...]): Audit flags, e.g. 'uncovered', 'cross_role_conflict'.
        source_rows (Tuple[Tuple[str, int], ...]): (dataset, row) pairs collapsed into this attachment.
        source (Optional[str]): Event register the event came from.
    """
    event_id: Any
    person_id: str
    role: str
    event_year: int
    matched_spell_id: Optional[str] = None
    event_type: str = 'birth'
    flags: Tuple[str, ...] = ()
    source_rows: Tuple[Tuple[str, int], ...] = ()
    source: Optional[str] = None

    @property
    def event_key(self) -> Tuple[Optional[str], Any]:
        return (self.source, self.event_id)

    @property
    def is_covered(self) -> bool:
        return self.matched_spell_id is not None


@dataclass(frozen=True)
class RiskSetEntry:
    """One person-year at risk."""
    person_id: str
    year: int
    age: int
    status: Any = None
    spell_id: Optional[str] = None


@dataclass(frozen=True)
class PanelRow:
    """
    One person-year of the output panel.

    Attributes:
        person_id (str): Canonical person key.
        year (int): Calendar year.
        age (int): year - cohort.
        status (Any): Status of the covering spell.
        event_counts (Mapping[str, int]): role -> number of attached events in this year.
    """
    person_id: str
    year: int
    age: int
    status: Any = None
    event_counts: Mapping[str, int] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, 'event_counts', MappingProxyType(dict(self.event_counts)))

    def count(self, role: str) -> int:
        return self.event_counts.get(role, 0)

    def had_event(self, role: str) -> bool:
        return self.count(role) > 0

    def to_dict(self, roles: Optional[List[str]] = None) -> Dict[str, Any]:
        roles = list(self.event_counts) if roles is None else roles
        row: Dict[str, Any] = {
            'person_id': self.person_id,
            'year': self.year,
            'age': self.age,
            'status': self.status,
        }
        for role in roles:
            row[f"{role}_event"] = self.had_event(role)
            row[f"{role}_count"] = self.count(role)
        return row


@dataclass(frozen=True)
class Panel:
    """
    The person-period panel: one row per risk-set entry, ordered by (person_id, year).
    """
    rows: Tuple[PanelRow, ...] = ()
    roles: Tuple[str, ...] = ()

    def __len__(self) -> int:
        return len(self.rows)

    def __iter__(self) -> Iterator[PanelRow]:
        return iter(self.rows)

    @property
    def columns(self) -> List[str]:
        cols = ['person_id', 'year', 'age', 'status']
        for role in self.roles:
            cols += [f"{role}_event", f"{role}_count"]
        return cols

    def event_total(self, role: str, year: Optional[int] = None) -> int:
        """Sum of a role's event counts, optionally for one year."""
        return sum(r.count(role) for r in self.rows if year is None or r.year == year)

    def event_totals_by_year(self, role: str) -> Dict[int, int]:
        totals: Counter = Counter()
        for r in self.rows:
            if r.count(role):
                totals[r.year] += r.count(role)
        return dict(sorted(totals.items()))

    def to_records(self) -> List[Dict[str, Any]]:
        return [r.to_dict(list(self.roles)) for r in self.rows]

    def to_dataframe(self) -> pd.DataFrame:
        return pd.DataFrame.from_records(self.to_records(), columns=self.columns)


StatValue = Union[int, float, str, List[Any], Dict[Any, Any]]


@dataclass
class Summary:
    """
    Container for aggregate values collected while building a panel.

    Values are organized into categories (e.g. 'identity', 'spells', 'panel')
    with named values within each category.
    """
    categories: Dict[str, Dict[str, StatValue]] = field(default_factory=dict)

    def add_value(self, category: str, name: str, value: StatValue) -> None:
        """Add a value to a category."""
        if category not in self.categories:
            self.categories[category] = {}
        self.categories[category][name] = value

    def get_value(self, category: str, name: str, default: Optional[StatValue] = None) -> Optional[StatValue]:
        return self.categories.get(category, {}).get(name, default)

    def get_category(self, category: str) -> Dict[str, StatValue]:
        return self.categories.get(category, {})

    def merge(self, other: Summary) -> None:
        """Merge another Summary into this one."""
        for category, values in other.categories.items():
            if category not in self.categories:
                self.categories[category] = {}
            self.categories[category].update(values)

    def to_dict(self) -> Dict[str, Dict[str, StatValue]]:
        return {category: dict(values) for category, values in self.categories.items()}


@dataclass
class RunReport:
    """
    Run-level report returned alongside the panel.

    Attributes:
        findings (List[Finding]): Recoverable conditions from every stage, in stage order.
        summary (Summary): Aggregate values per stage.
    """
    findings: List[Finding] = field(default_factory=list)
    summary: Summary = field(default_factory=Summary)

    def add(self, finding: Finding) -> None:
        self.findings.append(finding)

    def extend(self, findings: List[Finding]) -> None:
        self.findings.extend(findings)

    def count(self, finding_type: str) -> int:
        return sum(1 for f in self.findings if f.finding_type == finding_type)

    def findings_of(self, finding_type: str) -> List[Finding]:
        return [f for f in self.findings if f.finding_type == finding_type]

    def counts_by_type(self) -> Dict[str, int]:
        return dict(sorted(Counter(f.finding_type for f in self.findings).items()))

    def to_records(self) -> List[Dict[str, Any]]:
        return [f.to_dict() for f in self.findings]
