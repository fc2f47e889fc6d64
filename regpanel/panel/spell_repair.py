"""
Spell repair: turn raw per-person status rows into ordered, non-overlapping spells.

Per person:
    1. collapse exact duplicate (year, status) rows; a year reported with two
       different statuses keeps the first row in extract order
    2. order by year and merge consecutive years of equal status into spells
    3. hand every gap strictly inside the observed span to the gap policy
    4. leave years before the first and after the last observed year alone

Persons are independent, so the work can be spread over a thread pool; the
identity map is only read.
"""
from __future__ import annotations

import logging
from collections import defaultdict
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, List, Optional, Sequence, Tuple

from regpanel.errors import InvariantViolation
from regpanel.person import Person
from regpanel.record_store import StatusRow
from regpanel.spell import GAP_INSERTED, GAP_UNKNOWN, ORIGIN_OBSERVED, Gap, Spell, SpellHistory

from .gap_policies import GapPolicy
from .identity import IdentityMap
from .model import (CONFLICTING_STATUS, GAP_INSERTED as FINDING_GAP_INSERTED,
                    GAP_MARKED_UNKNOWN, GAP_UNOBSERVED as FINDING_GAP_UNOBSERVED,
                    Finding, RunReport)

logger = logging.getLogger(__name__)

GAP_FINDINGS = {
    GAP_INSERTED: (FINDING_GAP_INSERTED, "info"),
    GAP_UNKNOWN: (GAP_MARKED_UNKNOWN, "warning"),
}


class SpellRepairer:
    """
    Applies one gap policy uniformly to every person.

    Attributes:
        policy (GapPolicy): Gap fill policy.
        workers (int): Worker threads; 1 repairs serially.
    """

    def __init__(self, policy: GapPolicy, workers: int = 1):
        self.policy = policy
        self.workers = workers

    def repair(self, identity: IdentityMap, status_rows: Sequence[StatusRow],
               report: RunReport) -> Dict[str, SpellHistory]:
        """
        Repair the spells of every person in the canonical universe.

        Args:
            identity: Canonical mapping from the reconciler.
            status_rows: Raw status register rows.
            report: Run report receiving findings and summary values.

        Returns:
            Dict[str, SpellHistory]: person_id -> repaired history, ordered by person_id.
        """
        rows_by_person: Dict[str, List[StatusRow]] = defaultdict(list)
        for row in status_rows:
            person_id = identity.resolve(row.raw_id)
            if person_id is None:
                raise InvariantViolation(f"Status row {row.source}:{row.row_number} has no canonical person",
                                         check_id="status_rows_resolve",
                                         details={"raw_id": row.raw_id, "source": row.source,
                                                  "row_number": row.row_number})
            rows_by_person[person_id].append(row)

        work = [(identity.persons[pid], rows_by_person.get(pid, [])) for pid in identity.persons]
        if self.workers > 1 and len(work) > 1:
            with ThreadPoolExecutor(max_workers=self.workers) as pool:
                results = list(pool.map(lambda item: self.repair_person(*item), work))
        else:
            results = [self.repair_person(person, rows) for person, rows in work]

        histories: Dict[str, SpellHistory] = {}
        gap_counts: Dict[str, int] = defaultdict(int)
        inserted_years = 0
        for history, findings in results:
            histories[history.person_id] = history
            report.extend(findings)
            for gap in history.gaps:
                gap_counts[gap.resolution] += 1
                if gap.resolution == GAP_INSERTED:
                    inserted_years += gap.length

        report.summary.add_value('spells', 'persons', len(histories))
        report.summary.add_value('spells', 'spells', sum(len(h) for h in histories.values()))
        report.summary.add_value('spells', 'gaps_by_resolution', dict(sorted(gap_counts.items())))
        report.summary.add_value('spells', 'inserted_years', inserted_years)
        report.summary.add_value('spells', 'policy', self.policy.policy_id)
        logger.info(f"Repaired spells for {len(histories)} persons with '{self.policy.policy_id}': "
                    f"gaps {dict(gap_counts)}, {inserted_years} inserted years")
        return histories

    def repair_person(self, person: Person, rows: Sequence[StatusRow]) -> Tuple[SpellHistory, List[Finding]]:
        """
        Repair one person's rows.

        Returns:
            (SpellHistory, findings raised for this person)
        """
        findings: List[Finding] = []
        by_year = self._collapse(person, rows, findings)

        spells: List[Spell] = []
        gaps: List[Gap] = []
        current: Optional[Spell] = None
        for year in sorted(by_year):
            status, sources = by_year[year]
            if current is not None and year == current.end_year + 1 and status == current.status:
                current = Spell(current.person_id, current.start_year, year, current.status,
                                current.age_at_start, ORIGIN_OBSERVED, current.source_rows + sources)
                continue
            if current is not None:
                spells.append(current)
                if year > current.end_year + 1:
                    filler, gap = self.policy.resolve(current.end_year + 1, year - 1, current, person.birth_cohort)
                    self._record_gap(gap, current, findings)
                    gaps.append(gap)
                    if filler is not None:
                        spells.append(filler)
            current = Spell(
                person_id=person.person_id,
                start_year=year,
                end_year=year,
                status=status,
                age_at_start=person.age_in(year),
                origin=ORIGIN_OBSERVED,
                source_rows=sources,
            )
        if current is not None:
            spells.append(current)
        return SpellHistory(person.person_id, tuple(spells), tuple(gaps)), findings

    @staticmethod
    def _collapse(person: Person, rows: Sequence[StatusRow], findings: List[Finding]):
        by_year: Dict[int, Tuple[object, Tuple[Tuple[str, int], ...]]] = {}
        for row in rows:
            ref = ((row.source, row.row_number),)
            if row.year not in by_year:
                by_year[row.year] = (row.status, ref)
                continue
            status, sources = by_year[row.year]
            if row.status == status:
                by_year[row.year] = (status, sources + ref)
            else:
                findings.append(Finding(
                    finding_type=CONFLICTING_STATUS,
                    severity="warning",
                    person_id=person.person_id,
                    year=row.year,
                    detail=f"Status {row.status!r} ({row.source} row {row.row_number}) ignored; "
                           f"year already reported as {status!r}",
                ))
        return by_year

    def _record_gap(self, gap: Gap, previous: Spell, findings: List[Finding]) -> None:
        finding_type, severity = GAP_FINDINGS.get(gap.resolution, (FINDING_GAP_UNOBSERVED, "warning"))
        logger.debug(f"Gap {gap.start_year}-{gap.end_year} for person {gap.person_id}: {gap.resolution} "
                     f"(policy {self.policy.policy_id}, preceding status {previous.status!r})")
        detail = f"{gap.length} missing year(s) {gap.start_year}-{gap.end_year} {gap.resolution}"
        if gap.resolution == GAP_INSERTED:
            detail += f", carrying forward status {previous.status!r} from {previous.end_year}"
        findings.append(Finding(
            finding_type=finding_type,
            severity=severity,
            person_id=gap.person_id,
            year=gap.start_year,
            detail=detail,
        ))
