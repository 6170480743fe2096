"""
Sale Manager.

Handles direct (non-reservation) sales, voids, and the sale payment ledger.

- create_direct_sale: sale `active`, vehicle -> `vendido`
  (create_direct_sale_atomic). Rejected while the vehicle is sold, has an
  active sale, or is held by an active reservation; a reserved vehicle is
  sold by converting its reservation.
- void_sale: sale `voided` with reason and operator-chosen return stage
  (never `bloqueado` or `vendido`),
  vehicle -> return stage, optional refund as an `out` payment
  (void_sale_atomic). All three steps commit together.
- register_payment: append a ledger entry to an active sale.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional
from uuid import UUID

from domain.actor import Actor
from domain.audit import AuditAction, AuditEntity
from domain.errors import (
    InvariantViolationError,
    NotFoundError,
    StoreError,
    ValidationError,
    clean_optional_text,
    require_positive_amount,
    require_text,
)
from domain.sale import PaymentDirection, PaymentSummary, SalePayment, SaleRecord
from repositories.reservation_repository import list_active_reservations_for_vehicle
from repositories.rpc import FN_CREATE_DIRECT_SALE, FN_VOID_SALE, call_atomic
from repositories.sale_payment_repository import insert_sale_payment, list_payments_by_sale
from repositories.sale_repository import (
    get_sale_by_id,
    list_active_sales_for_vehicle,
    list_sales_by_vehicle,
)
from services.audit_service import record_audit
from services.catalog_service import require_customer, require_payment_method
from services.stage_service import require_open_stage, require_vehicle

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class DirectSaleRequest:
    """Request to sell a vehicle without a prior reservation."""

    vehicle_id: UUID
    customer_id: UUID
    final_price_cop: int
    payment_method_code: str
    notes: Optional[str] = None

    def __post_init__(self) -> None:
        require_positive_amount("final_price_cop", self.final_price_cop)
        if not (self.payment_method_code or "").strip():
            raise ValidationError("A payment method is required", code="missing_field")


@dataclass(frozen=True, slots=True)
class VoidRequest:
    """
    Request to void an active sale.

    return_stage_code is chosen by the operator: there is no single correct
    prior stage. A refund requires both a positive amount and a method.
    """

    sale_id: UUID
    void_reason: str
    return_stage_code: str
    refund_amount_cop: Optional[int] = None
    refund_method_code: Optional[str] = None

    def __post_init__(self) -> None:
        require_text("void_reason", self.void_reason)
        require_text("return_stage_code", self.return_stage_code)
        if self.refund_amount_cop is not None and self.refund_amount_cop != 0:
            require_positive_amount("refund_amount_cop", self.refund_amount_cop)
            if not (self.refund_method_code or "").strip():
                raise ValidationError("A refund method is required for a refund", code="missing_field")

    @property
    def has_refund(self) -> bool:
        return bool(self.refund_amount_cop and self.refund_amount_cop > 0)


@dataclass(frozen=True, slots=True)
class VoidResult:
    sale: SaleRecord
    vehicle_stage: str
    refund_payment: Optional[SalePayment] = None


def _require_sale(sale_id: UUID, actor: Actor) -> SaleRecord:
    sale = get_sale_by_id(sale_id)
    if sale is None or sale.org_id != actor.org_id:
        raise NotFoundError(f"Sale not found: {sale_id}", code="sale_not_found")
    return sale


def _require_active_sale(sale: SaleRecord) -> None:
    if not sale.is_active:
        raise InvariantViolationError(f"Sale is {sale.status.value}, not active", code="sale_not_active")


def _reload_sale(sale_id: UUID) -> SaleRecord:
    sale = get_sale_by_id(sale_id)
    if sale is None:
        raise StoreError(f"Sale {sale_id} missing after commit", code="unexpected_response")
    return sale


def create_direct_sale(request: DirectSaleRequest, actor: Actor) -> SaleRecord:
    """
    Sell a vehicle directly and mark it sold.

    Raises:
        ValidationError, NotFoundError, InvariantViolationError, StoreError
    """

    vehicle = require_vehicle(request.vehicle_id, actor)
    if vehicle.is_archived:
        raise InvariantViolationError("Vehicle is archived", code="vehicle_archived")
    if vehicle.is_sold or list_active_sales_for_vehicle(request.vehicle_id):
        raise InvariantViolationError("Vehicle is already sold", code="vehicle_already_sold")
    if list_active_reservations_for_vehicle(request.vehicle_id):
        raise InvariantViolationError(
            "Vehicle has an active reservation; convert it instead of selling directly",
            code="vehicle_already_reserved",
        )

    method = require_payment_method(request.payment_method_code)
    require_customer(request.customer_id, actor)

    data = call_atomic(
        FN_CREATE_DIRECT_SALE,
        {
            "p_org_id": str(actor.org_id),
            "p_vehicle_id": str(request.vehicle_id),
            "p_customer_id": str(request.customer_id),
            "p_final_price_cop": request.final_price_cop,
            "p_payment_method_code": method.code,
            "p_notes": clean_optional_text(request.notes),
            "p_actor_id": str(actor.actor_id),
        },
    )
    sale = _reload_sale(UUID(str(data["sale_id"])))

    logger.info(
        "Direct sale created",
        extra={
            "sale_id": str(sale.sale_id),
            "vehicle_id": str(sale.vehicle_id),
            "actor_id": str(actor.actor_id),
        },
    )
    record_audit(
        AuditAction.SALE_CREATE,
        AuditEntity.SALE,
        sale.sale_id,
        actor,
        {
            "vehicle_id": sale.vehicle_id,
            "customer_id": sale.customer_id,
            "final_price_cop": sale.final_price_cop,
            "payment_method_code": sale.payment_method_code,
        },
    )
    return sale


def void_sale(request: VoidRequest, actor: Actor) -> VoidResult:
    """
    Void an active sale.

    void_sale_atomic() runs, in one transaction:
    1. sale -> `voided` (reason, timestamp, actor, return stage)
    2. vehicle -> return stage, clearing the sold link
    3. refund `out` payment when requested
    """

    stage = require_open_stage(request.return_stage_code)
    refund_method: Optional[str] = None
    if request.has_refund:
        refund_method = require_payment_method(request.refund_method_code).code

    sale = _require_sale(request.sale_id, actor)
    _require_active_sale(sale)

    data = call_atomic(
        FN_VOID_SALE,
        {
            "p_sale_id": str(request.sale_id),
            "p_void_reason": request.void_reason.strip(),
            "p_return_stage_code": stage.code,
            "p_refund_amount_cop": request.refund_amount_cop if request.has_refund else None,
            "p_refund_method_code": refund_method,
            "p_actor_id": str(actor.actor_id),
        },
    )
    voided = _reload_sale(request.sale_id)

    refund: Optional[SalePayment] = None
    if data.get("payment_id"):
        payment_id = UUID(str(data["payment_id"]))
        refund = next((p for p in list_payments_by_sale(request.sale_id) if p.payment_id == payment_id), None)

    vehicle_stage = str(data.get("vehicle_stage") or stage.code)
    logger.info(
        "Sale voided",
        extra={
            "sale_id": str(request.sale_id),
            "vehicle_id": str(voided.vehicle_id),
            "vehicle_stage": vehicle_stage,
            "actor_id": str(actor.actor_id),
        },
    )
    record_audit(
        AuditAction.SALE_VOID,
        AuditEntity.SALE,
        request.sale_id,
        actor,
        {
            "vehicle_id": voided.vehicle_id,
            "void_reason": voided.void_reason,
            "return_stage_code": stage.code,
            "refund_amount_cop": refund.amount_cop if refund else None,
        },
    )
    return VoidResult(sale=voided, vehicle_stage=vehicle_stage, refund_payment=refund)


def register_payment(
    sale_id: UUID,
    amount_cop: int,
    direction: PaymentDirection,
    payment_method_code: str,
    actor: Actor,
    notes: Optional[str] = None,
) -> SalePayment:
    """Append a payment (in) or refund (out) to an active sale's ledger."""

    require_positive_amount("amount_cop", amount_cop)
    try:
        direction = PaymentDirection(direction)
    except ValueError:
        raise ValidationError(f"Unknown payment direction: {direction!r}", code="invalid_direction") from None
    method = require_payment_method(payment_method_code)
    sale = _require_sale(sale_id, actor)
    _require_active_sale(sale)

    payment = insert_sale_payment(
        org_id=actor.org_id,
        sale_id=sale_id,
        amount_cop=amount_cop,
        direction=direction,
        payment_method_code=method.code,
        created_by=actor.actor_id,
        notes=clean_optional_text(notes),
    )
    record_audit(
        AuditAction.PAYMENT_CREATE,
        AuditEntity.SALE_PAYMENT,
        payment.payment_id,
        actor,
        {
            "sale_id": sale_id,
            "amount_cop": amount_cop,
            "direction": direction,
            "payment_method_code": method.code,
        },
    )
    return payment


def list_sale_payments(sale_id: UUID, actor: Actor) -> List[SalePayment]:
    _require_sale(sale_id, actor)
    return list_payments_by_sale(sale_id)


def get_payment_summary(sale_id: UUID, actor: Actor) -> PaymentSummary:
    sale = _require_sale(sale_id, actor)
    return PaymentSummary.build(sale, list_payments_by_sale(sale_id))


def list_vehicle_sales(vehicle_id: UUID, actor: Actor) -> List[SaleRecord]:
    require_vehicle(vehicle_id, actor)
    return list_sales_by_vehicle(vehicle_id)


__all__ = [
    "DirectSaleRequest",
    "VoidRequest",
    "VoidResult",
    "create_direct_sale",
    "get_payment_summary",
    "list_sale_payments",
    "list_vehicle_sales",
    "register_payment",
    "void_sale",
]
