"""
Catalog repository: vehicle stages and payment methods.

Both are small lookup tables that every lifecycle form needs.
"""

from __future__ import annotations

from typing import Any, List, Mapping, Optional

from domain.payment_method import PaymentMethod
from domain.stage import VehicleStage
from repositories.client import get_supabase
from repositories.common import first_or_none, run_query

_STAGES_TABLE: str = "vehicle_stages"
_PAYMENT_METHODS_TABLE: str = "payment_methods"


def _row_to_stage(row: Mapping[str, Any]) -> VehicleStage:
    return VehicleStage(
        code=str(row["code"]),
        name=str(row.get("name") or row["code"]),
        sort_order=int(row.get("sort_order") or 0),
        is_terminal=bool(row.get("is_terminal", False)),
    )


def _row_to_payment_method(row: Mapping[str, Any]) -> PaymentMethod:
    return PaymentMethod(
        code=str(row["code"]),
        name=str(row.get("name") or row["code"]),
        is_active=bool(row.get("is_active", True)),
    )


def list_vehicle_stages() -> List[VehicleStage]:
    """Return the stage catalogue ordered by sort_order."""

    rows = run_query(
        get_supabase().table(_STAGES_TABLE).select("code, name, sort_order, is_terminal").order("sort_order"),
        action="list vehicle stages",
    )
    return [_row_to_stage(row) for row in rows]


def get_vehicle_stage(code: str) -> Optional[VehicleStage]:
    rows = run_query(
        get_supabase()
        .table(_STAGES_TABLE)
        .select("code, name, sort_order, is_terminal")
        .eq("code", code)
        .limit(1),
        action="get vehicle stage",
    )
    row = first_or_none(rows)
    return _row_to_stage(row) if row else None


def list_payment_methods(*, active_only: bool = True) -> List[PaymentMethod]:
    query = get_supabase().table(_PAYMENT_METHODS_TABLE).select("code, name, is_active")
    if active_only:
        query = query.eq("is_active", True)
    rows = run_query(query.order("name"), action="list payment methods")
    return [_row_to_payment_method(row) for row in rows]


def get_payment_method(code: str) -> Optional[PaymentMethod]:
    rows = run_query(
        get_supabase()
        .table(_PAYMENT_METHODS_TABLE)
        .select("code, name, is_active")
        .eq("code", code)
        .limit(1),
        action="get payment method",
    )
    row = first_or_none(rows)
    return _row_to_payment_method(row) if row else None


__all__ = [
    "list_vehicle_stages",
    "get_vehicle_stage",
    "list_payment_methods",
    "get_payment_method",
]
