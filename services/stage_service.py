"""
Vehicle Stage Tracker.

Single authoritative way to move a vehicle between stages. The actual write
(read current stage, write new stage, append vehicle_stage_history) happens
inside the `transition_vehicle_stage` / `mark_vehicle_sold` database
functions, under a row lock, never as a read-then-write from Python.

Callers may pass `expected_stage` to turn the decision they made from a
possibly stale read into a precondition: the function rejects with
`stale_stage` if the vehicle moved in the meantime.

Manual overrides (the kanban board) are not allowed to fight the
reservation and sale workflows: they are rejected while the vehicle has an
active reservation or sale, and they may never target `bloqueado` or
`vendido`. The same holds for the stage a vehicle is released to when a
reservation closes or a sale is voided.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional
from uuid import UUID

from domain.actor import Actor
from domain.audit import AuditAction, AuditEntity
from domain.errors import InvariantViolationError, NotFoundError, ValidationError
from domain.stage import (
    STAGE_BLOCKED,
    STAGE_OWNERS,
    STAGE_SOLD,
    WORKFLOW_OWNED_STAGES,
    StageTransition,
    VehicleStage,
)
from domain.time import parse_optional_utc_timestamp, utc_now
from domain.vehicle import Vehicle
from repositories.catalog_repository import get_vehicle_stage, list_vehicle_stages
from repositories.reservation_repository import list_active_reservations_for_vehicle
from repositories.rpc import FN_MARK_SOLD, FN_TRANSITION_STAGE, call_atomic
from repositories.sale_repository import list_active_sales_for_vehicle
from repositories.vehicle_repository import get_vehicle_by_id, list_stage_history
from services.audit_service import record_audit

logger = logging.getLogger(__name__)


def list_stages() -> List[VehicleStage]:
    """Stage catalogue, ordered for display."""

    return sorted(list_vehicle_stages(), key=lambda s: (s.sort_order, s.code))


def require_stage(code: Optional[str]) -> VehicleStage:
    """
    Validate that a stage code exists in the catalogue.

    Raises:
        ValidationError: code is empty
        NotFoundError: code is not a known stage
    """

    text = (code or "").strip()
    if not text:
        raise ValidationError("A target stage is required", code="missing_field")
    stage = get_vehicle_stage(text)
    if stage is None:
        raise NotFoundError(f"Unknown vehicle stage: {text}", code="unknown_stage")
    return stage


def require_open_stage(code: Optional[str]) -> VehicleStage:
    """
    Validate a stage an operator may send a vehicle to.

    Raises:
        InvariantViolationError: stage_locked for `bloqueado` and `vendido`
    """

    stage = require_stage(code)
    if stage.code in WORKFLOW_OWNED_STAGES:
        raise InvariantViolationError(
            f"Stage '{stage.code}' can only be reached through {STAGE_OWNERS[stage.code]}",
            code="stage_locked",
        )
    return stage


def require_vehicle(vehicle_id: UUID, actor: Actor) -> Vehicle:
    """
    Fetch a vehicle visible to the actor's organization.

    Vehicles of other organizations are reported as missing.
    """

    vehicle = get_vehicle_by_id(vehicle_id)
    if vehicle is None or vehicle.org_id != actor.org_id:
        raise NotFoundError(f"Vehicle not found: {vehicle_id}", code="vehicle_not_found")
    return vehicle


def _transition_from_result(
    vehicle_id: UUID,
    data: dict,
    *,
    default_to: str,
    actor: Actor,
    note: Optional[str],
) -> StageTransition:
    return StageTransition(
        vehicle_id=vehicle_id,
        from_stage=data.get("from_stage"),
        to_stage=str(data.get("to_stage") or default_to),
        changed_at=parse_optional_utc_timestamp(data.get("changed_at")) or utc_now(),
        changed_by=actor.actor_id,
        note=note,
    )


def transition_stage(
    vehicle_id: UUID,
    target_stage: str,
    actor: Actor,
    *,
    expected_stage: Optional[str] = None,
    note: Optional[str] = None,
) -> StageTransition:
    """
    Move a vehicle to `target_stage` atomically and record the history row.

    Args:
        vehicle_id: vehicle to move
        target_stage: known stage code
        actor: acting user
        expected_stage: optional precondition on the current stage
        note: free text stored on the history row

    Raises:
        ValidationError / NotFoundError: bad stage or vehicle
        InvariantViolationError: stale_stage when expected_stage no longer holds
        StoreError: the remote call failed
    """

    stage = require_stage(target_stage)
    require_vehicle(vehicle_id, actor)

    data = call_atomic(
        FN_TRANSITION_STAGE,
        {
            "p_vehicle_id": str(vehicle_id),
            "p_target_stage": stage.code,
            "p_expected_stage": expected_stage,
            "p_actor_id": str(actor.actor_id),
            "p_note": note,
            "p_manual": False,
        },
    )
    transition = _transition_from_result(
        vehicle_id, dict(data), default_to=stage.code, actor=actor, note=note
    )
    logger.info(
        "Vehicle stage transitioned",
        extra={
            "vehicle_id": str(vehicle_id),
            "from_stage": transition.from_stage,
            "to_stage": transition.to_stage,
            "actor_id": str(actor.actor_id),
        },
    )
    return transition


def mark_vehicle_sold(vehicle_id: UUID, sale_id: UUID, actor: Actor) -> StageTransition:
    """
    Atomically move a vehicle to `vendido` and link the sale that sold it.

    The sale must be active and belong to the vehicle; the database function
    checks both under the vehicle lock.
    """

    require_vehicle(vehicle_id, actor)
    data = call_atomic(
        FN_MARK_SOLD,
        {
            "p_vehicle_id": str(vehicle_id),
            "p_sale_id": str(sale_id),
            "p_actor_id": str(actor.actor_id),
        },
    )
    return _transition_from_result(
        vehicle_id, dict(data), default_to=STAGE_SOLD, actor=actor, note=None
    )


def change_stage_manually(vehicle_id: UUID, target_stage: str, actor: Actor) -> StageTransition:
    """
    Operator-initiated stage change (e.g. dragging a card on the board).

    Rejected with `stage_locked` when the target is workflow-owned or the
    vehicle is currently held by an active reservation or sale. Moving to the
    current stage is a no-op and records nothing.
    """

    stage = require_open_stage(target_stage)

    vehicle = require_vehicle(vehicle_id, actor)
    if vehicle.stage_code == stage.code:
        return StageTransition(
            vehicle_id=vehicle_id,
            from_stage=vehicle.stage_code,
            to_stage=stage.code,
            changed_at=utc_now(),
            changed_by=actor.actor_id,
        )

    if list_active_reservations_for_vehicle(vehicle_id):
        raise InvariantViolationError(
            "Vehicle has an active reservation; cancel or convert it first",
            code="stage_locked",
        )
    if list_active_sales_for_vehicle(vehicle_id):
        raise InvariantViolationError(
            "Vehicle has an active sale; void it to change the stage",
            code="stage_locked",
        )

    data = call_atomic(
        FN_TRANSITION_STAGE,
        {
            "p_vehicle_id": str(vehicle_id),
            "p_target_stage": stage.code,
            "p_expected_stage": vehicle.stage_code,
            "p_actor_id": str(actor.actor_id),
            "p_note": "manual",
            "p_manual": True,
        },
    )
    transition = _transition_from_result(
        vehicle_id, dict(data), default_to=stage.code, actor=actor, note="manual"
    )

    record_audit(
        AuditAction.STAGE_CHANGE,
        AuditEntity.VEHICLE,
        vehicle_id,
        actor,
        {
            "from_stage": transition.from_stage,
            "to_stage": transition.to_stage,
            "license_plate": vehicle.license_plate,
        },
    )
    return transition


def get_stage_history(vehicle_id: UUID, actor: Actor) -> List[StageTransition]:
    require_vehicle(vehicle_id, actor)
    return list_stage_history(vehicle_id)


@dataclass(frozen=True, slots=True)
class ConsistencyReport:
    """Agreement between a vehicle's stage and its active reservations/sales."""

    vehicle_id: UUID
    stage_code: str
    active_reservation_ids: List[UUID] = field(default_factory=list)
    active_sale_ids: List[UUID] = field(default_factory=list)
    issues: List[str] = field(default_factory=list)

    @property
    def is_consistent(self) -> bool:
        return not self.issues


def check_vehicle_consistency(vehicle_id: UUID, actor: Actor) -> ConsistencyReport:
    """
    Report disagreements between the stage and the lifecycle records.

    Read-only; repairs are left to an operator.
    """

    vehicle = require_vehicle(vehicle_id, actor)
    reservations = list_active_reservations_for_vehicle(vehicle_id)
    sales = list_active_sales_for_vehicle(vehicle_id)

    issues: List[str] = []
    if len(reservations) > 1:
        issues.append(f"{len(reservations)} active reservations (at most one allowed)")
    if len(sales) > 1:
        issues.append(f"{len(sales)} active sales (at most one allowed)")
    if sales and vehicle.stage_code != STAGE_SOLD:
        issues.append(f"active sale but stage is '{vehicle.stage_code}'")
    if reservations and not sales and vehicle.stage_code != STAGE_BLOCKED:
        issues.append(f"active reservation but stage is '{vehicle.stage_code}'")
    if reservations and sales:
        issues.append("active reservation on a sold vehicle")
    if vehicle.stage_code == STAGE_SOLD and not sales:
        issues.append("stage is 'vendido' without an active sale")
    if vehicle.stage_code == STAGE_BLOCKED and not reservations:
        issues.append("stage is 'bloqueado' without an active reservation")

    if issues:
        logger.warning(
            "Vehicle lifecycle inconsistency",
            extra={"vehicle_id": str(vehicle_id), "issues": issues},
        )

    return ConsistencyReport(
        vehicle_id=vehicle_id,
        stage_code=vehicle.stage_code,
        active_reservation_ids=[r.reservation_id for r in reservations],
        active_sale_ids=[s.sale_id for s in sales],
        issues=issues,
    )


__all__ = [
    "ConsistencyReport",
    "change_stage_manually",
    "check_vehicle_consistency",
    "get_stage_history",
    "list_stages",
    "mark_vehicle_sold",
    "require_open_stage",
    "require_stage",
    "require_vehicle",
    "transition_stage",
]
