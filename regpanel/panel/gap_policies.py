"""
Gap fill policies for the spell repairer.

A gap is a run of missing years strictly inside a person's observed span. Each
policy decides whether to synthesize a filler spell for it and how the gap is
annotated. Policies register themselves by ``policy_id`` and are selected by
the ``gap_fill_policy`` config value.
"""
from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, Optional, Tuple, Type

from regpanel.errors import ConfigurationError
from regpanel.spell import (GAP_INSERTED, GAP_UNKNOWN, GAP_UNOBSERVED,
                            ORIGIN_INSERTED, ORIGIN_UNKNOWN, Gap, Spell)

logger = logging.getLogger(__name__)

_POLICY_REGISTRY: Dict[str, Type['GapPolicy']] = {}


def register_policy(cls: Type['GapPolicy']) -> Type['GapPolicy']:
    """Decorator to register a gap policy class in the global registry."""
    if getattr(cls, 'policy_id', None):
        _POLICY_REGISTRY[cls.policy_id] = cls
        logger.debug(f"Registered gap policy: {cls.policy_id}")
    else:
        logger.warning(f"Gap policy {cls.__name__} missing 'policy_id' attribute, not registered")
    return cls


def get_policy_registry() -> Dict[str, Type['GapPolicy']]:
    """Get the global gap policy registry."""
    return _POLICY_REGISTRY.copy()


def get_policy(policy_id: str, max_fill_gap: int = 2) -> 'GapPolicy':
    """Instantiate a registered policy by id."""
    try:
        policy_cls = _POLICY_REGISTRY[policy_id]
    except KeyError:
        raise ConfigurationError(f"Unknown gap fill policy '{policy_id}', registered: {sorted(_POLICY_REGISTRY)}")
    return policy_cls(max_fill_gap=max_fill_gap)


@dataclass
class GapPolicy(ABC):
    """
    Base class for gap policies.

    Attributes:
        policy_id: Unique identifier of the policy.
        max_fill_gap: Longest gap (in years) a policy may fill with carried-forward status.
    """
    policy_id: str = ""
    max_fill_gap: int = 2

    @abstractmethod
    def resolve(self, gap_start: int, gap_end: int, previous: Spell,
                birth_cohort: Optional[int] = None) -> Tuple[Optional[Spell], Gap]:
        """
        Decide how to treat the missing years [gap_start, gap_end].

        Args:
            gap_start: First missing year.
            gap_end: Last missing year (inclusive).
            previous: Spell ending in the year before the gap.
            birth_cohort: Person's cohort, for the filler spell's age_at_start.

        Returns:
            (filler spell or None, gap annotation)
        """

    @staticmethod
    def _filler(previous: Spell, gap_start: int, gap_end: int, status, origin: str,
                birth_cohort: Optional[int]) -> Spell:
        return Spell(
            person_id=previous.person_id,
            start_year=gap_start,
            end_year=gap_end,
            status=status,
            age_at_start=gap_start - birth_cohort if birth_cohort is not None else None,
            origin=origin,
        )


@register_policy
@dataclass
class ForwardFillPolicy(GapPolicy):
    """
    Carry the status of the year before the gap into the gap.

    Gaps longer than max_fill_gap are more likely attrition than clerical
    omission; they get an unknown-status spell instead.
    """
    policy_id: str = "forward-fill"

    def resolve(self, gap_start, gap_end, previous, birth_cohort=None):
        length = gap_end - gap_start + 1
        if length <= self.max_fill_gap:
            spell = self._filler(previous, gap_start, gap_end, previous.status, ORIGIN_INSERTED, birth_cohort)
            return spell, Gap(previous.person_id, gap_start, gap_end, GAP_INSERTED)
        spell = self._filler(previous, gap_start, gap_end, None, ORIGIN_UNKNOWN, birth_cohort)
        return spell, Gap(previous.person_id, gap_start, gap_end, GAP_UNKNOWN)


@register_policy
@dataclass
class LeaveGapPolicy(GapPolicy):
    """Keep the gap; the years are annotated as unobserved and stay uncovered."""
    policy_id: str = "leave-gap"

    def resolve(self, gap_start, gap_end, previous, birth_cohort=None):
        return None, Gap(previous.person_id, gap_start, gap_end, GAP_UNOBSERVED)


@register_policy
@dataclass
class MarkUnknownPolicy(GapPolicy):
    """Cover every gap with an unknown-status spell."""
    policy_id: str = "mark-unknown"

    def resolve(self, gap_start, gap_end, previous, birth_cohort=None):
        spell = self._filler(previous, gap_start, gap_end, None, ORIGIN_UNKNOWN, birth_cohort)
        return spell, Gap(previous.person_id, gap_start, gap_end, GAP_UNKNOWN)
