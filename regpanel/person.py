"""
person.py - Canonical person model for register linkage.

This module provides the Person class: one real-world individual reconciled
across register extracts. It supports:
    - Holding the canonical key and the raw status-register key it came from
    - Assigning birth cohort and sex once, reporting later contradictions
    - Age arithmetic at annual resolution

Module: regpanel.person
"""

__all__ = ['Person']

import logging
from typing import Any, List, Optional

logger = logging.getLogger(__name__)


class Person:
    """
    Represents one person in the canonical universe.

    Attributes:
        person_id (str): Canonical key, assigned by the identity reconciler.
        raw_id (Any): Status-register key the person was created from.
        birth_cohort (Optional[int]): Birth year.
        sex (Optional[str]): Sex as reported by the status register.
        source (Optional[str]): Dataset the first status row came from.
        row_number (Optional[int]): Row of the first status row (for tracing).
    """
    __slots__ = ['person_id', 'raw_id',
                 'birth_cohort', 'sex',
                 'source', 'row_number']

    def __init__(self, person_id: str, raw_id: Any = None,
                 birth_cohort: Optional[int] = None, sex: Optional[str] = None,
                 source: Optional[str] = None, row_number: Optional[int] = None):
        self.person_id: str = person_id
        self.raw_id: Any = raw_id if raw_id is not None else person_id
        self.birth_cohort: Optional[int] = birth_cohort
        self.sex: Optional[str] = sex
        self.source: Optional[str] = source
        self.row_number: Optional[int] = row_number

    def __str__(self) -> str:
        return f"Person(id={self.person_id}, cohort={self.birth_cohort})"

    def __repr__(self) -> str:
        return f"[ {self.person_id} : cohort {self.birth_cohort} - sex {self.sex} - raw {self.raw_id!r} ]"

    def __eq__(self, other) -> bool:
        if not isinstance(other, Person):
            return NotImplemented
        return (self.person_id, self.birth_cohort, self.sex) == (other.person_id, other.birth_cohort, other.sex)

    def __hash__(self) -> int:
        return hash(self.person_id)

    def age_in(self, year: int) -> Optional[int]:
        """
        Age reached in a calendar year (year - cohort); no partial-year arithmetic.

        Returns:
            Optional[int]: Age, or None if the cohort is unknown.
        """
        if self.birth_cohort is None:
            return None
        return year - self.birth_cohort

    def assign_attributes(self, birth_cohort: Optional[int], sex: Optional[str]) -> List[str]:
        """
        Fill in cohort and sex from a further status row.

        Values already assigned are never overwritten; a differing value is
        returned as a problem description instead.

        Args:
            birth_cohort (Optional[int]): Cohort reported by the row.
            sex (Optional[str]): Sex reported by the row.

        Returns:
            List[str]: Descriptions of contradictions (empty if consistent).
        """
        problems = []
        if birth_cohort is not None:
            if self.birth_cohort is None:
                self.birth_cohort = birth_cohort
            elif birth_cohort != self.birth_cohort:
                problems.append(f"Cohort {birth_cohort} contradicts assigned cohort {self.birth_cohort}")
        if sex is not None:
            if self.sex is None:
                self.sex = sex
            elif sex != self.sex:
                problems.append(f"Sex {sex!r} contradicts assigned sex {self.sex!r}")
        return problems
