"""
Vehicle repository (persistence).

Read-only access to vehicles and their stage history. Stage changes never go
through a table update from Python: they are performed by the atomic
functions (`transition_vehicle_stage`, `mark_vehicle_sold`, and the
reservation/sale workflow functions).
"""

from __future__ import annotations

from typing import Any, List, Mapping, Optional
from uuid import UUID

from domain.stage import StageTransition
from domain.time import parse_optional_utc_timestamp, parse_utc_timestamp
from domain.vehicle import Vehicle
from repositories.client import get_supabase
from repositories.common import first_or_none, optional_int, optional_uuid, run_query

# Supabase table names.
# Keep these aligned with your database schema.
_VEHICLES_TABLE: str = "vehicles"
_STAGE_HISTORY_TABLE: str = "vehicle_stage_history"

_VEHICLE_COLUMNS: str = (
    "id, org_id, stage_code, brand, line, model_year, license_plate, "
    "is_archived, sold_sale_id, sold_at"
)


def _row_to_vehicle(row: Mapping[str, Any]) -> Vehicle:
    """Convert a Supabase row into a Vehicle."""

    return Vehicle(
        vehicle_id=UUID(str(row["id"])),
        org_id=UUID(str(row["org_id"])),
        stage_code=str(row["stage_code"]),
        brand=row.get("brand"),
        line=row.get("line"),
        model_year=optional_int(row.get("model_year")),
        license_plate=row.get("license_plate"),
        is_archived=bool(row.get("is_archived", False)),
        sold_sale_id=optional_uuid(row.get("sold_sale_id")),
        sold_at=parse_optional_utc_timestamp(row.get("sold_at")),
    )


def _row_to_transition(row: Mapping[str, Any]) -> StageTransition:
    return StageTransition(
        transition_id=optional_uuid(row.get("id")),
        vehicle_id=UUID(str(row["vehicle_id"])),
        from_stage=row.get("from_stage_code"),
        to_stage=str(row["to_stage_code"]),
        changed_at=parse_utc_timestamp(row["changed_at"]),
        changed_by=optional_uuid(row.get("changed_by")),
        note=row.get("note"),
    )


def get_vehicle_by_id(vehicle_id: UUID) -> Optional[Vehicle]:
    """
    Retrieve a single vehicle by its ID.

    Returns:
        Vehicle or None if not found
    """

    rows = run_query(
        get_supabase()
        .table(_VEHICLES_TABLE)
        .select(_VEHICLE_COLUMNS)
        .eq("id", str(vehicle_id))
        .limit(1),
        action="get vehicle",
    )
    row = first_or_none(rows)
    return _row_to_vehicle(row) if row else None


def list_vehicles_by_org(org_id: UUID, *, include_archived: bool = False) -> List[Vehicle]:
    """List the vehicles of an organization (non-archived by default)."""

    query = get_supabase().table(_VEHICLES_TABLE).select(_VEHICLE_COLUMNS).eq("org_id", str(org_id))
    if not include_archived:
        query = query.eq("is_archived", False)
    rows = run_query(query, action="list vehicles")
    return [_row_to_vehicle(row) for row in rows]


def list_stage_history(vehicle_id: UUID) -> List[StageTransition]:
    """
    Retrieve the stage history of a vehicle, newest first.

    Returns:
        List[StageTransition] (possibly empty)
    """

    rows = run_query(
        get_supabase()
        .table(_STAGE_HISTORY_TABLE)
        .select("*")
        .eq("vehicle_id", str(vehicle_id))
        .order("changed_at", desc=True),
        action="list stage history",
    )
    return [_row_to_transition(row) for row in rows]


__all__ = [
    "get_vehicle_by_id",
    "list_vehicles_by_org",
    "list_stage_history",
]
