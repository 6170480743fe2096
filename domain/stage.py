"""
Domain: vehicle stages and stage transitions.

A vehicle is always in exactly one stage. Stages are data (the
`vehicle_stages` lookup table) but the sales lifecycle depends on four
well-known codes:

- prospecto: created by inventory intake
- publicado: open for sale (the default release stage)
- bloqueado: held by an active reservation (owned by the reservation workflows)
- vendido:   sold (owned by the sale workflows)

This module contains only pure domain entities/value objects: no I/O.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional
from uuid import UUID

from .time import require_utc_timestamp

STAGE_PROSPECT: str = "prospecto"
STAGE_PUBLISHED: str = "publicado"
STAGE_BLOCKED: str = "bloqueado"
STAGE_SOLD: str = "vendido"

# Stages only the reservation and sale workflows may move a vehicle into,
# mapped to the workflow that owns each one.
STAGE_OWNERS: dict[str, str] = {
    STAGE_BLOCKED: "a reservation",
    STAGE_SOLD: "a sale",
}
WORKFLOW_OWNED_STAGES: frozenset[str] = frozenset(STAGE_OWNERS)


@dataclass(frozen=True, slots=True)
class VehicleStage:
    """Entry of the configurable stage catalogue."""

    code: str
    name: str
    sort_order: int = 0
    is_terminal: bool = False


@dataclass(frozen=True, slots=True)
class StageTransition:
    """
    One recorded move of a vehicle between stages.

    from_stage is None for the very first stage assignment.
    """

    vehicle_id: UUID
    from_stage: Optional[str]
    to_stage: str
    changed_at: datetime
    changed_by: Optional[UUID] = None
    note: Optional[str] = None
    transition_id: Optional[UUID] = None

    def __post_init__(self) -> None:
        require_utc_timestamp("changed_at", self.changed_at)

    @property
    def is_noop(self) -> bool:
        return self.from_stage == self.to_stage
