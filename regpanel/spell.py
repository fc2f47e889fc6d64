"""
spell.py - Status spells and coverage gaps for a person's observed timeline.

A Spell is a continuous run of years with constant status. A Gap annotates a
run of missing years inside the observed span and records how it was resolved;
gaps are annotated, never erased.

Module: regpanel.spell
"""

__all__ = ['Spell', 'Gap', 'SpellHistory',
           'ORIGIN_OBSERVED', 'ORIGIN_INSERTED', 'ORIGIN_UNKNOWN',
           'GAP_INSERTED', 'GAP_UNKNOWN', 'GAP_UNOBSERVED']

from bisect import bisect_right
from dataclasses import dataclass
from typing import Any, Iterator, Optional, Tuple

ORIGIN_OBSERVED = 'observed'
ORIGIN_INSERTED = 'inserted'
ORIGIN_UNKNOWN = 'unknown'

GAP_INSERTED = 'inserted'
GAP_UNKNOWN = 'unknown'
GAP_UNOBSERVED = 'unobserved'


@dataclass(frozen=True)
class Spell:
    """
    A continuous interval of status for one person.

    Attributes:
        person_id (str): Canonical person key.
        start_year (int): First year of the spell.
        end_year (int): Last year of the spell (inclusive).
        status (Any): Status value; None when unknown.
        age_at_start (Optional[int]): start_year - cohort, if the cohort is known.
        origin (str): 'observed', 'inserted' (forward-filled) or 'unknown' (marked gap).
        source_rows (Tuple[Tuple[str, int], ...]): (dataset, row) pairs of the raw status rows.
    """
    person_id: str
    start_year: int
    end_year: int
    status: Any = None
    age_at_start: Optional[int] = None
    origin: str = ORIGIN_OBSERVED
    source_rows: Tuple[Tuple[str, int], ...] = ()

    @property
    def spell_id(self) -> str:
        return f"{self.person_id}:{self.start_year}"

    @property
    def length(self) -> int:
        return self.end_year - self.start_year + 1

    @property
    def is_observed(self) -> bool:
        return self.origin == ORIGIN_OBSERVED

    @property
    def has_known_status(self) -> bool:
        return self.status is not None

    def covers(self, year: int) -> bool:
        return self.start_year <= year <= self.end_year

    def overlaps(self, other: 'Spell') -> bool:
        return self.person_id == other.person_id and \
            self.start_year <= other.end_year and other.start_year <= self.end_year

    def years(self) -> range:
        return range(self.start_year, self.end_year + 1)


@dataclass(frozen=True)
class Gap:
    """
    Missing years strictly inside a person's observed span.

    Attributes:
        person_id (str): Canonical person key.
        start_year (int): First missing year.
        end_year (int): Last missing year (inclusive).
        resolution (str): 'inserted', 'unknown' or 'unobserved'.
    """
    person_id: str
    start_year: int
    end_year: int
    resolution: str

    @property
    def length(self) -> int:
        return self.end_year - self.start_year + 1


@dataclass(frozen=True)
class SpellHistory:
    """
    Ordered, repaired spells of one person plus the gap annotations.

    Attributes:
        person_id (str): Canonical person key.
        spells (Tuple[Spell, ...]): Spells ordered by start_year.
        gaps (Tuple[Gap, ...]): Gaps ordered by start_year.
    """
    person_id: str
    spells: Tuple[Spell, ...] = ()
    gaps: Tuple[Gap, ...] = ()

    def __iter__(self) -> Iterator[Spell]:
        return iter(self.spells)

    def __len__(self) -> int:
        return len(self.spells)

    @property
    def first_year(self) -> Optional[int]:
        return self.spells[0].start_year if self.spells else None

    @property
    def last_year(self) -> Optional[int]:
        return self.spells[-1].end_year if self.spells else None

    def spell_covering(self, year: int) -> Optional[Spell]:
        """
        Return the spell covering a year, or None if the year is outside the
        observed span or inside an unobserved gap.
        """
        starts = [s.start_year for s in self.spells]
        idx = bisect_right(starts, year) - 1
        if idx < 0:
            return None
        spell = self.spells[idx]
        return spell if spell.covers(year) else None

    def covered_years(self) -> Iterator[int]:
        for spell in self.spells:
            yield from spell.years()
