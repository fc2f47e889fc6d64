"""
errors.py - Fatal error kinds for panel construction.

Recoverable conditions (unresolved identifiers, uncovered events, cross-role
conflicts, ...) are not exceptions: they are collected as findings in the run
report. Only configuration problems, quality-threshold breaches and structural
invariant violations halt a build.

Module: regpanel.errors
"""

__all__ = ['PanelError', 'ConfigurationError', 'SchemaError', 'DataQualityExceeded',
           'InvariantViolation', 'OverlappingSpell', 'PipelineStopped']

from typing import Any, Dict, Optional


class PanelError(Exception):
    """Base class for errors raised while building a panel."""


class ConfigurationError(PanelError, ValueError):
    """Invalid configuration or dataset declaration."""


class SchemaError(PanelError, KeyError):
    """An input row does not match its declared schema."""

    def __str__(self) -> str:
        # KeyError quotes its argument; keep the message readable
        return str(self.args[0]) if self.args else ''


class DataQualityExceeded(PanelError):
    """
    Raised when the input is too unreliable to emit a panel.

    Attributes:
        statistics (Dict[str, Any]): Aggregate counts and fractions behind the decision.
    """

    def __init__(self, message: str, statistics: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.statistics: Dict[str, Any] = dict(statistics or {})


class InvariantViolation(PanelError):
    """
    A structural invariant failed after a stage; indicates a logic bug.

    Attributes:
        check_id (str): Identifier of the failing check.
        details (Dict[str, Any]): Values needed to trace the violation.
    """

    def __init__(self, message: str, check_id: str = '', details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.check_id: str = check_id
        self.details: Dict[str, Any] = dict(details or {})


class OverlappingSpell(InvariantViolation):
    """Two repaired spells of the same person overlap."""

    def __init__(self, person_id: str, first_spell_id: str, second_spell_id: str):
        super().__init__(
            f"Spells {first_spell_id} and {second_spell_id} of person {person_id} overlap",
            check_id='spells_non_overlapping',
            details={'person_id': person_id, 'spell_ids': (first_spell_id, second_spell_id)},
        )
        self.person_id: str = person_id


class PipelineStopped(PanelError):
    """The orchestration layer requested a stop; no partial panel is returned."""
