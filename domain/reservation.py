"""
Domain: Reservation (a deposit-backed hold on one vehicle for one customer).

Contract rules implemented here:
- A reservation is created `active`.
- `active` -> `cancelled` | `expired` | `converted`; the three are terminal.
- At most one `active` reservation per vehicle (enforced by the database
  through a unique partial index and inside the atomic functions; this module
  only models the per-reservation state machine).

This module contains only pure domain entities/value objects: no I/O.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import UUID

from .time import require_utc_timestamp


class ReservationStatus(str, Enum):
    ACTIVE = "active"
    CONVERTED = "converted"
    CANCELLED = "cancelled"
    EXPIRED = "expired"

    @property
    def is_terminal(self) -> bool:
        return self is not ReservationStatus.ACTIVE


# Allowed moves of the reservation state machine.
RESERVATION_TRANSITIONS: dict[ReservationStatus, frozenset[ReservationStatus]] = {
    ReservationStatus.ACTIVE: frozenset(
        {ReservationStatus.CONVERTED, ReservationStatus.CANCELLED, ReservationStatus.EXPIRED}
    ),
    ReservationStatus.CONVERTED: frozenset(),
    ReservationStatus.CANCELLED: frozenset(),
    ReservationStatus.EXPIRED: frozenset(),
}


def can_transition(current: ReservationStatus, target: ReservationStatus) -> bool:
    return target in RESERVATION_TRANSITIONS[current]


@dataclass(frozen=True, slots=True)
class Reservation:
    """
    Immutable snapshot of a reservation row.

    deposit_amount_cop is in whole Colombian pesos.
    receipt_seq/receipt_year are assigned by the database on creation and
    give the human-readable receipt number.
    """

    reservation_id: UUID
    org_id: UUID
    vehicle_id: UUID
    customer_id: UUID
    status: ReservationStatus
    deposit_amount_cop: int
    payment_method_code: str
    reserved_at: datetime
    notes: Optional[str] = None
    created_by: Optional[UUID] = None
    cancel_reason: Optional[str] = None
    cancelled_at: Optional[datetime] = None
    cancelled_by: Optional[UUID] = None
    receipt_seq: Optional[int] = None
    receipt_year: Optional[int] = None

    def __post_init__(self) -> None:
        require_utc_timestamp("reserved_at", self.reserved_at)
        if self.cancelled_at is not None:
            require_utc_timestamp("cancelled_at", self.cancelled_at)
        if self.deposit_amount_cop <= 0:
            raise ValueError("deposit_amount_cop must be greater than 0")

    @property
    def is_active(self) -> bool:
        return self.status is ReservationStatus.ACTIVE

    @property
    def receipt_number(self) -> Optional[str]:
        """Human-readable receipt number, e.g. RES-2026-00017."""

        if self.receipt_seq is None or self.receipt_year is None:
            return None
        return f"RES-{self.receipt_year}-{self.receipt_seq:05d}"

    def age_days(self, now: datetime) -> float:
        require_utc_timestamp("now", now)
        return (now - self.reserved_at).total_seconds() / 86400
