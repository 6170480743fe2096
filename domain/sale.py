"""
Domain: Sale events and their payment ledger.

Contract excerpts relevant here:
- A vehicle has at most one `active` sale.
- A sale is created `active` (directly or by converting a reservation) and
  may be `voided` once; voiding records the operator-chosen return stage.
- SalePayment entries are append-only: never mutated, only inserted.
  Direction `in` is money received (e.g. the reservation deposit),
  `out` is money returned (refunds on void).

All timestamps must be passed explicitly.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Iterable, Mapping, Optional
from uuid import UUID

from .time import require_utc_timestamp


class SaleStatus(str, Enum):
    ACTIVE = "active"
    VOIDED = "voided"


class PaymentDirection(str, Enum):
    IN = "in"
    OUT = "out"


@dataclass(frozen=True, slots=True)
class SaleRecord:
    """
    Immutable record of a sale of one vehicle.

    Captures the complete sale transaction including:
    - Who bought it (customer_id)
    - What was sold (vehicle_id, plus the vehicle_snapshot taken at sale time)
    - How much was agreed (final_price_cop, whole pesos)
    - Which reservation it came from, if any
    - Void information when it has been reversed
    """

    sale_id: UUID
    org_id: UUID
    vehicle_id: UUID
    customer_id: UUID
    status: SaleStatus
    final_price_cop: int
    payment_method_code: str
    sale_date: datetime
    reservation_id: Optional[UUID] = None
    notes: Optional[str] = None
    created_by: Optional[UUID] = None
    void_reason: Optional[str] = None
    voided_at: Optional[datetime] = None
    voided_by: Optional[UUID] = None
    return_stage_code: Optional[str] = None
    vehicle_snapshot: Optional[Mapping[str, Any]] = None

    def __post_init__(self) -> None:
        require_utc_timestamp("sale_date", self.sale_date)
        if self.voided_at is not None:
            require_utc_timestamp("voided_at", self.voided_at)
        if self.final_price_cop <= 0:
            raise ValueError("final_price_cop must be greater than 0")

    @property
    def is_active(self) -> bool:
        return self.status is SaleStatus.ACTIVE

    @property
    def from_reservation(self) -> bool:
        return self.reservation_id is not None


@dataclass(frozen=True, slots=True)
class SalePayment:
    payment_id: UUID
    sale_id: UUID
    amount_cop: int
    direction: PaymentDirection
    payment_method_code: str
    paid_at: datetime
    notes: Optional[str] = None
    created_by: Optional[UUID] = None

    def __post_init__(self) -> None:
        require_utc_timestamp("paid_at", self.paid_at)
        if self.amount_cop <= 0:
            raise ValueError("amount_cop must be greater than 0")

    @property
    def signed_amount(self) -> int:
        return self.amount_cop if self.direction is PaymentDirection.IN else -self.amount_cop


@dataclass(frozen=True, slots=True)
class PaymentSummary:
    """Totals of a sale's ledger against its final price."""

    sale_id: UUID
    final_price_cop: int
    total_in_cop: int
    total_out_cop: int
    payment_count: int

    @property
    def net_cop(self) -> int:
        return self.total_in_cop - self.total_out_cop

    @property
    def balance_due_cop(self) -> int:
        return max(self.final_price_cop - self.net_cop, 0)

    @property
    def is_fully_paid(self) -> bool:
        return self.net_cop >= self.final_price_cop

    @staticmethod
    def build(sale: SaleRecord, payments: Iterable[SalePayment]) -> "PaymentSummary":
        total_in = 0
        total_out = 0
        count = 0
        for payment in payments:
            count += 1
            if payment.direction is PaymentDirection.IN:
                total_in += payment.amount_cop
            else:
                total_out += payment.amount_cop
        return PaymentSummary(
            sale_id=sale.sale_id,
            final_price_cop=sale.final_price_cop,
            total_in_cop=total_in,
            total_out_cop=total_out,
            payment_count=count,
        )
