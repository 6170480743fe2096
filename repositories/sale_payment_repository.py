"""
Sale payment repository (persistence).

The payment ledger is append-only: this module inserts and reads entries and
never updates or deletes them.
"""

from __future__ import annotations

from typing import Any, List, Mapping, Optional
from uuid import UUID, uuid4

from domain.errors import StoreError
from domain.sale import PaymentDirection, SalePayment
from domain.time import parse_utc_timestamp
from repositories.client import get_supabase
from repositories.common import first_or_none, optional_uuid, run_query

_SALE_PAYMENTS_TABLE: str = "sale_payments"


def _row_to_payment(row: Mapping[str, Any]) -> SalePayment:
    return SalePayment(
        payment_id=UUID(str(row["id"])),
        sale_id=UUID(str(row["sale_id"])),
        amount_cop=int(row["amount_cop"]),
        direction=PaymentDirection(str(row["direction"])),
        payment_method_code=str(row["payment_method_code"]),
        paid_at=parse_utc_timestamp(row["paid_at"]),
        notes=row.get("notes"),
        created_by=optional_uuid(row.get("created_by")),
    )


def insert_sale_payment(
    *,
    org_id: UUID,
    sale_id: UUID,
    amount_cop: int,
    direction: PaymentDirection,
    payment_method_code: str,
    created_by: UUID,
    notes: Optional[str] = None,
) -> SalePayment:
    """
    Append a ledger entry to a sale.

    `paid_at` is left to the column default so direct entries and the ones
    written by the atomic functions share the database clock.

    Returns:
        SalePayment as stored
    """

    payment_id = uuid4()
    payload: dict[str, Any] = {
        "id": str(payment_id),
        "org_id": str(org_id),
        "sale_id": str(sale_id),
        "amount_cop": amount_cop,
        "direction": direction.value,
        "payment_method_code": payment_method_code,
        "notes": notes,
        "created_by": str(created_by),
    }

    rows = run_query(
        get_supabase().table(_SALE_PAYMENTS_TABLE).insert(payload),
        action="record sale payment",
    )
    row = first_or_none(rows)
    if row is None:
        row = first_or_none(
            run_query(
                get_supabase().table(_SALE_PAYMENTS_TABLE).select("*").eq("id", str(payment_id)),
                action="read back sale payment",
            )
        )
    if row is None:
        raise StoreError(f"Sale payment {payment_id} was not stored", code="store_error")
    return _row_to_payment(row)


def list_payments_by_sale(sale_id: UUID) -> List[SalePayment]:
    """
    Retrieve the ledger of a sale, newest first.

    Returns:
        List[SalePayment] (possibly empty)
    """

    rows = run_query(
        get_supabase()
        .table(_SALE_PAYMENTS_TABLE)
        .select("*")
        .eq("sale_id", str(sale_id))
        .order("paid_at", desc=True),
        action="list sale payments",
    )
    return [_row_to_payment(row) for row in rows]


__all__ = ["insert_sale_payment", "list_payments_by_sale"]
