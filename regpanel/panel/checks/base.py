"""
Base classes for invariant checks.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
import logging
from typing import Dict, Mapping, Optional, Sequence, Type

from regpanel.spell import SpellHistory

from ..model import Attachment, Panel, RiskSetEntry

logger = logging.getLogger(__name__)

STAGE_SPELLS = 'spells'
STAGE_ATTACHMENTS = 'attachments'
STAGE_PANEL = 'panel'

# Check Registry
_CHECK_REGISTRY: Dict[str, Type['InvariantCheck']] = {}


def register_check(cls: Type['InvariantCheck']) -> Type['InvariantCheck']:
    """
    Decorator to register a check class in the global registry.

    Usage:
        @register_check
        @dataclass
        class MyCheck(InvariantCheck):
            check_id: str = "my_check"
            stage: str = STAGE_PANEL
            ...
    """
    check_id = getattr(cls, 'check_id', None)
    if check_id:
        _CHECK_REGISTRY[check_id] = cls
        logger.debug(f"Registered invariant check: {check_id}")
    else:
        logger.warning(f"Check {cls.__name__} missing 'check_id' attribute, not registered")
    return cls


def get_check_registry() -> Dict[str, Type['InvariantCheck']]:
    """Get the global check registry."""
    return _CHECK_REGISTRY.copy()


@dataclass
class CheckContext:
    """Stage outputs available to checks; later stages fill in more fields."""
    histories: Mapping[str, SpellHistory] = field(default_factory=dict)
    gap_fill_policy: str = ''
    attachments: Sequence[Attachment] = ()
    risk_set: Sequence[RiskSetEntry] = ()
    panel: Optional[Panel] = None


@dataclass
class InvariantCheck(ABC):
    """
    Base class for structural invariant checks.

    A check runs automatically after its stage and raises InvariantViolation
    (or a subclass) when the invariant does not hold. Checks never modify data.

    Attributes:
        check_id: Unique identifier for this check
        stage: Stage after which the check runs
    """
    check_id: str = ""
    stage: str = ""

    def __post_init__(self):
        if not self.check_id:
            raise ValueError(f"{self.__class__.__name__} must define check_id")

    @abstractmethod
    def run(self, context: CheckContext) -> None:
        """Raise InvariantViolation if the invariant is broken."""
