"""
Invariant checks on attachments.
"""
from __future__ import annotations

from dataclasses import dataclass

from regpanel.errors import InvariantViolation

from .base import STAGE_ATTACHMENTS, CheckContext, InvariantCheck, register_check


@register_check
@dataclass
class AttachmentsUniquePerRoleCheck(InvariantCheck):
    """An event attaches to at most one person per role."""
    check_id: str = "attachments_unique_per_role"
    stage: str = STAGE_ATTACHMENTS

    def run(self, context: CheckContext) -> None:
        seen = {}
        for attachment in context.attachments:
            key = (attachment.event_key, attachment.role)
            if key in seen:
                raise InvariantViolation(
                    f"Event {attachment.event_id} has two {attachment.role} attachments "
                    f"({seen[key]} and {attachment.person_id})",
                    check_id=self.check_id,
                    details={'event_id': attachment.event_id, 'role': attachment.role,
                             'person_ids': (seen[key], attachment.person_id)},
                )
            seen[key] = attachment.person_id
