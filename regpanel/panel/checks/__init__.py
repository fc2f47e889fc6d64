"""Invariant checks: structural guarantees verified after each pipeline stage.

Built-in checks:
    - SpellsNonOverlappingCheck: repaired spells never overlap (raises OverlappingSpell)
    - SpellsContiguousCheck: spells are contiguous or separated by an unobserved gap
    - AttachmentsUniquePerRoleCheck: one person per (event, role)
    - PanelRowCountCheck: one panel row per risk-set entry
    - PanelEventConservationCheck: panel event counts equal covered attachments

Checks are toggled individually through the ``checks_enabled`` config mapping.
"""

from .base import InvariantCheck
from .base import CheckContext
from .base import register_check
from .base import get_check_registry
from .base import STAGE_SPELLS, STAGE_ATTACHMENTS, STAGE_PANEL
from .spells import SpellsNonOverlappingCheck
from .spells import SpellsContiguousCheck
from .attachments import AttachmentsUniquePerRoleCheck
from .panel import PanelRowCountCheck
from .panel import PanelEventConservationCheck

__all__ = [
    'InvariantCheck',
    'CheckContext',
    'register_check',
    'get_check_registry',
    'STAGE_SPELLS',
    'STAGE_ATTACHMENTS',
    'STAGE_PANEL',
    'SpellsNonOverlappingCheck',
    'SpellsContiguousCheck',
    'AttachmentsUniquePerRoleCheck',
    'PanelRowCountCheck',
    'PanelEventConservationCheck',
]
