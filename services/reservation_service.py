"""
Reservation Manager.

Creates, cancels, expires and converts deposit-backed holds on vehicles, and
drives the vehicle stage as a side effect:

- create:  reservation `active`, vehicle -> `bloqueado`
- cancel / expire: reservation closed; vehicle -> release stage (default
  `publicado`) only when no other active reservation holds it, otherwise it
  stays `bloqueado`
- convert: sale `active` (+ optional deposit payment), vehicle -> `vendido`,
  reservation `converted`

Each workflow is a single database function executed in one transaction
(`create_reservation_atomic`, `cancel_reservation_atomic`,
`expire_reservation_atomic`, `convert_reservation_to_sale`). The reads done
here before the call only produce early, friendly errors; the function
re-checks every precondition under the vehicle row lock, and a unique
partial index guarantees at most one active reservation per vehicle.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, List, Optional
from uuid import UUID

from domain.actor import Actor
from domain.audit import AuditAction, AuditEntity
from domain.errors import (
    InvariantViolationError,
    LifecycleError,
    NotFoundError,
    StoreError,
    ValidationError,
    clean_optional_text,
    require_positive_amount,
)
from domain.reservation import Reservation, ReservationStatus
from domain.sale import SalePayment, SaleRecord
from domain.stage import STAGE_PUBLISHED
from domain.time import require_utc_timestamp, utc_now
from repositories.reservation_repository import (
    get_reservation_by_id,
    list_active_reservations_before,
    list_active_reservations_for_vehicle,
    list_reservations_by_vehicle,
)
from repositories.rpc import (
    FN_CANCEL_RESERVATION,
    FN_CONVERT_RESERVATION,
    FN_CREATE_RESERVATION,
    FN_EXPIRE_RESERVATION,
    call_atomic,
)
from repositories.sale_payment_repository import list_payments_by_sale
from repositories.sale_repository import get_sale_by_id
from services.audit_service import record_audit
from services.catalog_service import require_customer, require_payment_method
from services.stage_service import require_open_stage, require_vehicle

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ReservationRequest:
    """
    Request to place a hold on a vehicle.

    deposit_amount_cop must be a positive whole number of pesos.
    """

    vehicle_id: UUID
    customer_id: UUID
    deposit_amount_cop: int
    payment_method_code: str
    notes: Optional[str] = None

    def __post_init__(self) -> None:
        require_positive_amount("deposit_amount_cop", self.deposit_amount_cop)
        if not (self.payment_method_code or "").strip():
            raise ValidationError("A payment method is required", code="missing_field")


@dataclass(frozen=True, slots=True)
class ConversionRequest:
    """Request to turn an active reservation into a sale."""

    reservation_id: UUID
    final_price_cop: int
    payment_method_code: str
    register_deposit_as_payment: bool = False
    notes: Optional[str] = None

    def __post_init__(self) -> None:
        require_positive_amount("final_price_cop", self.final_price_cop)
        if not (self.payment_method_code or "").strip():
            raise ValidationError("A payment method is required", code="missing_field")


@dataclass(frozen=True, slots=True)
class ReleaseResult:
    """
    Outcome of cancelling or expiring a reservation.

    vehicle_released is False when another active reservation still holds
    the vehicle (it then stays `bloqueado`).
    """

    reservation: Reservation
    vehicle_stage: str
    vehicle_released: bool


@dataclass(frozen=True, slots=True)
class ConversionResult:
    reservation: Reservation
    sale: SaleRecord
    deposit_payment: Optional[SalePayment] = None


@dataclass(frozen=True, slots=True)
class ExpiryReport:
    """Result of a batch expiry run."""

    candidates: List[UUID] = field(default_factory=list)
    expired: List[UUID] = field(default_factory=list)
    failed: Dict[UUID, str] = field(default_factory=dict)


def _require_reservation(reservation_id: UUID, actor: Actor) -> Reservation:
    reservation = get_reservation_by_id(reservation_id)
    if reservation is None or reservation.org_id != actor.org_id:
        raise NotFoundError(f"Reservation not found: {reservation_id}", code="reservation_not_found")
    return reservation


def _require_active(reservation: Reservation) -> None:
    if not reservation.is_active:
        raise InvariantViolationError(
            f"Reservation is {reservation.status.value}, not active",
            code="reservation_not_active",
        )


def _reload_reservation(reservation_id: UUID) -> Reservation:
    reservation = get_reservation_by_id(reservation_id)
    if reservation is None:
        raise StoreError(f"Reservation {reservation_id} missing after commit", code="unexpected_response")
    return reservation


def create_reservation(request: ReservationRequest, actor: Actor) -> Reservation:
    """
    Place an active reservation and block the vehicle.

    Process:
    1. Validate vehicle (visible, not archived, not sold), customer and payment method
    2. Reject early if the vehicle already has an active reservation
    3. create_reservation_atomic(): lock vehicle, re-check, insert reservation,
       assign receipt number, move vehicle to `bloqueado`
    4. Queue audit `reservation_create`

    Raises:
        ValidationError, NotFoundError, InvariantViolationError, StoreError
    """

    vehicle = require_vehicle(request.vehicle_id, actor)
    if vehicle.is_archived:
        raise InvariantViolationError("Vehicle is archived", code="vehicle_archived")
    if vehicle.is_sold:
        raise InvariantViolationError("Vehicle is already sold", code="vehicle_already_sold")

    method = require_payment_method(request.payment_method_code)
    require_customer(request.customer_id, actor)

    if list_active_reservations_for_vehicle(request.vehicle_id):
        logger.warning(
            "Reservation rejected: vehicle already reserved",
            extra={"vehicle_id": str(request.vehicle_id), "actor_id": str(actor.actor_id)},
        )
        raise InvariantViolationError("Vehicle already has an active reservation", code="vehicle_already_reserved")

    data = call_atomic(
        FN_CREATE_RESERVATION,
        {
            "p_org_id": str(actor.org_id),
            "p_vehicle_id": str(request.vehicle_id),
            "p_customer_id": str(request.customer_id),
            "p_deposit_amount_cop": request.deposit_amount_cop,
            "p_payment_method_code": method.code,
            "p_notes": clean_optional_text(request.notes),
            "p_actor_id": str(actor.actor_id),
        },
    )
    reservation = _reload_reservation(UUID(str(data["reservation_id"])))

    logger.info(
        "Reservation created",
        extra={
            "reservation_id": str(reservation.reservation_id),
            "vehicle_id": str(reservation.vehicle_id),
            "receipt_number": reservation.receipt_number,
            "actor_id": str(actor.actor_id),
        },
    )
    record_audit(
        AuditAction.RESERVATION_CREATE,
        AuditEntity.RESERVATION,
        reservation.reservation_id,
        actor,
        {
            "vehicle_id": reservation.vehicle_id,
            "customer_id": reservation.customer_id,
            "deposit_amount_cop": reservation.deposit_amount_cop,
            "payment_method_code": reservation.payment_method_code,
            "receipt_number": reservation.receipt_number,
        },
    )
    return reservation


def _release_reservation(
    function_name: str,
    action: AuditAction,
    reservation_id: UUID,
    actor: Actor,
    *,
    reason: Optional[str],
    release_stage: str,
) -> ReleaseResult:
    stage = require_open_stage(release_stage)
    reservation = _require_reservation(reservation_id, actor)
    _require_active(reservation)

    data = call_atomic(
        function_name,
        {
            "p_reservation_id": str(reservation_id),
            "p_reason": reason,
            "p_actor_id": str(actor.actor_id),
            "p_release_stage": stage.code,
        },
    )
    updated = _reload_reservation(reservation_id)
    result = ReleaseResult(
        reservation=updated,
        vehicle_stage=str(data.get("vehicle_stage") or stage.code),
        vehicle_released=bool(data.get("vehicle_released", True)),
    )

    logger.info(
        "Reservation %s",
        updated.status.value,
        extra={
            "reservation_id": str(reservation_id),
            "vehicle_id": str(updated.vehicle_id),
            "vehicle_stage": result.vehicle_stage,
            "actor_id": str(actor.actor_id),
        },
    )
    record_audit(
        action,
        AuditEntity.RESERVATION,
        reservation_id,
        actor,
        {
            "vehicle_id": updated.vehicle_id,
            "reason": reason,
            "vehicle_stage": result.vehicle_stage,
            "vehicle_released": result.vehicle_released,
        },
    )
    return result


def cancel_reservation(
    reservation_id: UUID,
    actor: Actor,
    reason: Optional[str] = None,
    *,
    release_stage: str = STAGE_PUBLISHED,
) -> ReleaseResult:
    """
    Cancel an active reservation.

    The vehicle returns to `release_stage` unless another active reservation
    still holds it, in which case it stays `bloqueado`.
    """

    return _release_reservation(
        FN_CANCEL_RESERVATION,
        AuditAction.RESERVATION_CANCEL,
        reservation_id,
        actor,
        reason=clean_optional_text(reason),
        release_stage=release_stage,
    )


def expire_reservation(
    reservation_id: UUID,
    actor: Actor,
    *,
    release_stage: str = STAGE_PUBLISHED,
) -> ReleaseResult:
    """Mark an active reservation `expired`; same vehicle release rule as cancellation."""

    return _release_reservation(
        FN_EXPIRE_RESERVATION,
        AuditAction.RESERVATION_EXPIRE,
        reservation_id,
        actor,
        reason="expired",
        release_stage=release_stage,
    )


def expire_stale_reservations(
    max_age_days: int,
    actor: Actor,
    *,
    now: Optional[datetime] = None,
    dry_run: bool = False,
) -> ExpiryReport:
    """
    Expire every active reservation of the actor's organization older than
    `max_age_days`.

    One failing reservation does not stop the batch; failures are logged and
    reported by id.
    """

    if isinstance(max_age_days, bool) or not isinstance(max_age_days, int) or max_age_days < 1:
        raise ValidationError("max_age_days must be a positive integer", code="invalid_amount")
    now = now or utc_now()
    require_utc_timestamp("now", now)

    stale = list_active_reservations_before(actor.org_id, now - timedelta(days=max_age_days))
    report = ExpiryReport(candidates=[r.reservation_id for r in stale])
    if dry_run:
        return report

    for reservation in stale:
        try:
            expire_reservation(reservation.reservation_id, actor)
        except LifecycleError as exc:
            logger.warning(
                "Failed to expire reservation",
                extra={"reservation_id": str(reservation.reservation_id), "error_code": exc.code},
            )
            report.failed[reservation.reservation_id] = exc.message
            continue
        report.expired.append(reservation.reservation_id)

    logger.info(
        "Reservation expiry run finished",
        extra={
            "candidates": len(report.candidates),
            "expired": len(report.expired),
            "failed": len(report.failed),
        },
    )
    return report


def convert_to_sale(request: ConversionRequest, actor: Actor) -> ConversionResult:
    """
    Convert an active reservation into a sale.

    convert_reservation_to_sale() runs, in one transaction:
    1. insert the sale (`active`, referencing the reservation)
    2. optionally insert the deposit as an `in` payment
    3. mark the vehicle sold (stage `vendido`, sold_sale_id)
    4. set the reservation `converted`

    Raises:
        ValidationError, NotFoundError, InvariantViolationError, StoreError
    """

    method = require_payment_method(request.payment_method_code)
    reservation = _require_reservation(request.reservation_id, actor)
    _require_active(reservation)

    data = call_atomic(
        FN_CONVERT_RESERVATION,
        {
            "p_reservation_id": str(request.reservation_id),
            "p_final_price_cop": request.final_price_cop,
            "p_payment_method_code": method.code,
            "p_register_deposit_as_payment": bool(request.register_deposit_as_payment),
            "p_notes": clean_optional_text(request.notes),
            "p_actor_id": str(actor.actor_id),
        },
    )

    sale_id = UUID(str(data["sale_id"]))
    sale = get_sale_by_id(sale_id)
    if sale is None:
        raise StoreError(f"Sale {sale_id} missing after commit", code="unexpected_response")

    deposit_payment: Optional[SalePayment] = None
    if data.get("payment_id"):
        payment_id = UUID(str(data["payment_id"]))
        deposit_payment = next(
            (p for p in list_payments_by_sale(sale_id) if p.payment_id == payment_id), None
        )

    converted = _reload_reservation(request.reservation_id)

    logger.info(
        "Reservation converted to sale",
        extra={
            "reservation_id": str(converted.reservation_id),
            "sale_id": str(sale_id),
            "vehicle_id": str(sale.vehicle_id),
            "actor_id": str(actor.actor_id),
        },
    )
    record_audit(
        AuditAction.RESERVATION_CONVERT,
        AuditEntity.RESERVATION,
        converted.reservation_id,
        actor,
        {
            "sale_id": sale_id,
            "vehicle_id": sale.vehicle_id,
            "final_price_cop": sale.final_price_cop,
            "deposit_registered": deposit_payment is not None,
        },
    )
    return ConversionResult(reservation=converted, sale=sale, deposit_payment=deposit_payment)


def list_vehicle_reservations(vehicle_id: UUID, actor: Actor) -> List[Reservation]:
    require_vehicle(vehicle_id, actor)
    return list_reservations_by_vehicle(vehicle_id)


__all__ = [
    "ConversionRequest",
    "ConversionResult",
    "ExpiryReport",
    "ReleaseResult",
    "ReservationRequest",
    "cancel_reservation",
    "convert_to_sale",
    "create_reservation",
    "expire_reservation",
    "expire_stale_reservations",
    "list_vehicle_reservations",
]
