"""
Sale repository (persistence).

This module provides *only* read operations for the SaleRecord domain
entity. Sales are created and voided by the atomic database functions; it
does not enforce business rules (e.g., one active sale per vehicle).
"""

from __future__ import annotations

from typing import Any, List, Mapping, Optional
from uuid import UUID

from domain.sale import SaleRecord, SaleStatus
from domain.time import parse_optional_utc_timestamp, parse_utc_timestamp
from repositories.client import get_supabase
from repositories.common import first_or_none, optional_uuid, run_query

# Supabase table name for sale records.
# Keep this aligned with your database schema.
_SALES_TABLE: str = "sales"


def _row_to_sale(row: Mapping[str, Any]) -> SaleRecord:
    """Convert a Supabase row into a SaleRecord."""

    snapshot = row.get("vehicle_snapshot")
    return SaleRecord(
        sale_id=UUID(str(row["id"])),
        org_id=UUID(str(row["org_id"])),
        vehicle_id=UUID(str(row["vehicle_id"])),
        customer_id=UUID(str(row["customer_id"])),
        status=SaleStatus(str(row["status"])),
        final_price_cop=int(row["final_price_cop"]),
        payment_method_code=str(row["payment_method_code"]),
        sale_date=parse_utc_timestamp(row["sale_date"]),
        reservation_id=optional_uuid(row.get("reservation_id")),
        notes=row.get("notes"),
        created_by=optional_uuid(row.get("created_by")),
        void_reason=row.get("void_reason"),
        voided_at=parse_optional_utc_timestamp(row.get("voided_at")),
        voided_by=optional_uuid(row.get("voided_by")),
        return_stage_code=row.get("return_stage_code"),
        vehicle_snapshot=dict(snapshot) if isinstance(snapshot, Mapping) else None,
    )


def get_sale_by_id(sale_id: UUID) -> Optional[SaleRecord]:
    """
    Retrieve a single sale record by its ID.

    Args:
        sale_id: Sale identifier

    Returns:
        SaleRecord or None if not found
    """

    rows = run_query(
        get_supabase()
        .table(_SALES_TABLE)
        .select("*")
        .eq("id", str(sale_id))
        .limit(1),
        action="get sale",
    )
    row = first_or_none(rows)
    return _row_to_sale(row) if row else None


def list_sales_by_vehicle(vehicle_id: UUID) -> List[SaleRecord]:
    """
    Retrieve all sale records of a vehicle, newest first.

    Returns:
        List[SaleRecord] (possibly empty)
    """

    rows = run_query(
        get_supabase()
        .table(_SALES_TABLE)
        .select("*")
        .eq("vehicle_id", str(vehicle_id))
        .order("sale_date", desc=True),
        action="list sales",
    )
    return [_row_to_sale(row) for row in rows]


def list_active_sales_for_vehicle(vehicle_id: UUID) -> List[SaleRecord]:
    rows = run_query(
        get_supabase()
        .table(_SALES_TABLE)
        .select("*")
        .eq("vehicle_id", str(vehicle_id))
        .eq("status", SaleStatus.ACTIVE.value),
        action="list active sales",
    )
    return [_row_to_sale(row) for row in rows]


__all__ = [
    "get_sale_by_id",
    "list_sales_by_vehicle",
    "list_active_sales_for_vehicle",
]
