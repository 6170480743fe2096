"""
Reservation repository (persistence).

This module provides *only* read operations for the Reservation domain
entity. Reservations are created, cancelled, expired and converted by the
atomic database functions (see repositories/rpc.py); this module does not
enforce business rules.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, List, Mapping, Optional
from uuid import UUID

from domain.reservation import Reservation, ReservationStatus
from domain.time import parse_optional_utc_timestamp, parse_utc_timestamp, to_iso_utc
from repositories.client import get_supabase
from repositories.common import first_or_none, optional_int, optional_uuid, run_query

# Supabase table name for reservations.
# Keep this aligned with your database schema.
_RESERVATIONS_TABLE: str = "reservations"


def _row_to_reservation(row: Mapping[str, Any]) -> Reservation:
    """Convert a Supabase row into a Reservation."""

    return Reservation(
        reservation_id=UUID(str(row["id"])),
        org_id=UUID(str(row["org_id"])),
        vehicle_id=UUID(str(row["vehicle_id"])),
        customer_id=UUID(str(row["customer_id"])),
        status=ReservationStatus(str(row["status"])),
        deposit_amount_cop=int(row["deposit_amount_cop"]),
        payment_method_code=str(row["payment_method_code"]),
        reserved_at=parse_utc_timestamp(row["reserved_at"]),
        notes=row.get("notes"),
        created_by=optional_uuid(row.get("created_by")),
        cancel_reason=row.get("cancel_reason"),
        cancelled_at=parse_optional_utc_timestamp(row.get("cancelled_at")),
        cancelled_by=optional_uuid(row.get("cancelled_by")),
        receipt_seq=optional_int(row.get("receipt_seq")),
        receipt_year=optional_int(row.get("receipt_year")),
    )


def get_reservation_by_id(reservation_id: UUID) -> Optional[Reservation]:
    """
    Retrieve a single reservation by its ID.

    Returns:
        Reservation or None if not found
    """

    rows = run_query(
        get_supabase()
        .table(_RESERVATIONS_TABLE)
        .select("*")
        .eq("id", str(reservation_id))
        .limit(1),
        action="get reservation",
    )
    row = first_or_none(rows)
    return _row_to_reservation(row) if row else None


def list_reservations_by_vehicle(vehicle_id: UUID) -> List[Reservation]:
    """
    Retrieve all reservations of a vehicle, newest first.

    Returns:
        List[Reservation] (possibly empty)
    """

    rows = run_query(
        get_supabase()
        .table(_RESERVATIONS_TABLE)
        .select("*")
        .eq("vehicle_id", str(vehicle_id))
        .order("reserved_at", desc=True),
        action="list reservations",
    )
    return [_row_to_reservation(row) for row in rows]


def list_active_reservations_for_vehicle(
    vehicle_id: UUID,
    *,
    exclude_reservation_id: Optional[UUID] = None,
) -> List[Reservation]:
    """
    Retrieve the active reservations of a vehicle.

    Normally returns zero or one item; more than one means the
    single-active-reservation invariant was bypassed and needs repair.
    """

    query = (
        get_supabase()
        .table(_RESERVATIONS_TABLE)
        .select("*")
        .eq("vehicle_id", str(vehicle_id))
        .eq("status", ReservationStatus.ACTIVE.value)
    )
    if exclude_reservation_id is not None:
        query = query.neq("id", str(exclude_reservation_id))
    rows = run_query(query, action="list active reservations")
    return [_row_to_reservation(row) for row in rows]


def list_active_reservations_before(org_id: UUID, reserved_before: datetime) -> List[Reservation]:
    """Active reservations of an organization created before the given UTC instant, oldest first."""

    rows = run_query(
        get_supabase()
        .table(_RESERVATIONS_TABLE)
        .select("*")
        .eq("org_id", str(org_id))
        .eq("status", ReservationStatus.ACTIVE.value)
        .lt("reserved_at", to_iso_utc(reserved_before, name="reserved_before"))
        .order("reserved_at"),
        action="list stale reservations",
    )
    return [_row_to_reservation(row) for row in rows]


__all__ = [
    "get_reservation_by_id",
    "list_reservations_by_vehicle",
    "list_active_reservations_for_vehicle",
    "list_active_reservations_before",
]
