"""
register_event.py - Point-in-time events from an event register.

This module provides the RegisterEvent class: one raw row of an event register
(e.g. a birth), carrying the raw identifiers of the people involved by role
(e.g. 'mother', 'father'). Events are immutable once ingested; only their
attachment to canonical persons is computed downstream.

Module: regpanel.register_event
"""

__all__ = ['RegisterEvent']

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping, Optional, Tuple

from .identifiers import is_absent


@dataclass(frozen=True)
class RegisterEvent:
    """
    One raw event row.

    Attributes:
        event_id (Any): Event key from the register (duplicated rows share it).
        event_year (int): Calendar year of the event.
        role_identifiers (Mapping[str, Any]): role -> raw identifier (None if not reported).
        event_type (str): Kind of event, e.g. 'birth'.
        source (Optional[str]): Declared dataset name the row came from.
        row_number (Optional[int]): Position of the row in its dataset.
    """
    event_id: Any
    event_year: int
    role_identifiers: Mapping[str, Any] = field(default_factory=dict)
    event_type: str = 'birth'
    source: Optional[str] = None
    row_number: Optional[int] = None

    def __post_init__(self):
        object.__setattr__(self, 'role_identifiers', MappingProxyType(dict(self.role_identifiers)))

    def __repr__(self) -> str:
        return f"[ {self.event_type} {self.event_id} : {self.event_year} - {dict(self.role_identifiers)} ]"

    @property
    def event_key(self) -> Tuple[Optional[str], Any]:
        """(source, event_id); event ids are only unique within one register."""
        return (self.source, self.event_id)

    @property
    def roles(self) -> Tuple[str, ...]:
        return tuple(self.role_identifiers.keys())

    def identifier(self, role: str) -> Any:
        """Raw identifier for a role, or None if the role is absent on this row."""
        raw = self.role_identifiers.get(role)
        return None if is_absent(raw) else raw

    def reported_roles(self) -> Tuple[str, ...]:
        """Roles for which this row carries an identifier."""
        return tuple(role for role in self.role_identifiers if self.identifier(role) is not None)
