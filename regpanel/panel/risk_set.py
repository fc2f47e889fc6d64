from __future__ import annotations

import logging
from collections import Counter
from typing import Dict, List, Mapping, Optional, Tuple

from regpanel.spell import SpellHistory

from .identity import IdentityMap
from .model import RiskSetEntry, RunReport

logger = logging.getLogger(__name__)


def observed_year_range(histories: Mapping[str, SpellHistory]) -> Tuple[Optional[int], Optional[int]]:
    """First and last year covered by any spell."""
    firsts = [h.first_year for h in histories.values() if h.first_year is not None]
    lasts = [h.last_year for h in histories.values() if h.last_year is not None]
    return (min(firsts) if firsts else None, max(lasts) if lasts else None)


class RiskSetFilter:
    """
    Derives the person-years at risk.

    A (person, year) pair is at risk when year - cohort lies in [min_age, max_age],
    the year lies in the target range and a spell covers the year. Persons
    without a cohort, or without any spell in the range, contribute nothing.
    """

    def __init__(self, min_age: int, max_age: int,
                 year_start: Optional[int] = None, year_end: Optional[int] = None,
                 unknown_status_is_coverage: bool = True):
        self.min_age = min_age
        self.max_age = max_age
        self.year_start = year_start
        self.year_end = year_end
        self.unknown_status_is_coverage = unknown_status_is_coverage

    def target_range(self, histories: Mapping[str, SpellHistory]) -> Tuple[Optional[int], Optional[int]]:
        first, last = observed_year_range(histories)
        start = self.year_start if self.year_start is not None else first
        end = self.year_end if self.year_end is not None else last
        return start, end

    def build(self, identity: IdentityMap, histories: Mapping[str, SpellHistory],
              report: RunReport) -> Tuple[RiskSetEntry, ...]:
        start, end = self.target_range(histories)
        entries: List[RiskSetEntry] = []
        if start is None or end is None:
            logger.warning("No observed years; the risk set is empty")
        else:
            for person_id, person in identity.persons.items():
                if person.birth_cohort is None:
                    continue
                history = histories.get(person_id)
                if history is None:
                    continue
                first = max(start, person.birth_cohort + self.min_age)
                last = min(end, person.birth_cohort + self.max_age)
                for year in range(first, last + 1):
                    spell = history.spell_covering(year)
                    if spell is None:
                        continue
                    if not spell.has_known_status and not self.unknown_status_is_coverage:
                        continue
                    entries.append(RiskSetEntry(person_id, year, year - person.birth_cohort,
                                                spell.status, spell.spell_id))

        by_age: Dict[int, int] = dict(sorted(Counter(e.age for e in entries).items()))
        report.summary.add_value('risk_set', 'target_years', [start, end])
        report.summary.add_value('risk_set', 'age_band', [self.min_age, self.max_age])
        report.summary.add_value('risk_set', 'person_years', len(entries))
        report.summary.add_value('risk_set', 'persons', len({e.person_id for e in entries}))
        report.summary.add_value('risk_set', 'person_years_by_age', by_age)
        logger.info(f"Risk set: {len(entries)} person-years for ages {self.min_age}-{self.max_age}, years {start}-{end}")
        return tuple(entries)
