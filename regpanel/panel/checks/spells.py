"""
Invariant checks on repaired spells.
"""
from __future__ import annotations

from dataclasses import dataclass

from regpanel.errors import InvariantViolation, OverlappingSpell
from regpanel.spell import GAP_UNOBSERVED

from .base import STAGE_SPELLS, CheckContext, InvariantCheck, register_check


@register_check
@dataclass
class SpellsNonOverlappingCheck(InvariantCheck):
    """No two spells of a person overlap, and spells are ordered by start year."""
    check_id: str = "spells_non_overlapping"
    stage: str = STAGE_SPELLS

    def run(self, context: CheckContext) -> None:
        for person_id, history in context.histories.items():
            spells = history.spells
            for previous, current in zip(spells, spells[1:]):
                if current.start_year <= previous.end_year or previous.overlaps(current):
                    raise OverlappingSpell(person_id, previous.spell_id, current.spell_id)


@register_check
@dataclass
class SpellsContiguousCheck(InvariantCheck):
    """
    Consecutive spells are contiguous, or the years between them are exactly
    one gap annotated as unobserved.
    """
    check_id: str = "spells_contiguous"
    stage: str = STAGE_SPELLS

    def run(self, context: CheckContext) -> None:
        for person_id, history in context.histories.items():
            unobserved = {(g.start_year, g.end_year) for g in history.gaps if g.resolution == GAP_UNOBSERVED}
            spells = history.spells
            for previous, current in zip(spells, spells[1:]):
                if current.start_year == previous.end_year + 1:
                    continue
                if (previous.end_year + 1, current.start_year - 1) in unobserved:
                    continue
                raise InvariantViolation(
                    f"Person {person_id} has uncovered years {previous.end_year + 1}-{current.start_year - 1} "
                    f"without an unobserved gap annotation",
                    check_id=self.check_id,
                    details={'person_id': person_id, 'spell_ids': (previous.spell_id, current.spell_id),
                             'policy': context.gap_fill_policy},
                )
