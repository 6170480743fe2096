"""
Domain: acting user context.

Every state-changing operation is performed on behalf of a user of one
organization. The id ends up in created_by / cancelled_by / voided_by /
changed_by columns and in the audit log.
"""

from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID


@dataclass(frozen=True, slots=True)
class Actor:
    actor_id: UUID
    org_id: UUID
