"""
Customer repository.

Provides the lookups the lifecycle needs to validate the buyer of a
reservation or sale.
"""

from __future__ import annotations

from typing import Any, Mapping, Optional
from uuid import UUID

from domain.customer import Customer
from domain.time import parse_optional_utc_timestamp
from repositories.client import get_supabase
from repositories.common import first_or_none, run_query

_CUSTOMERS_TABLE: str = "customers"


def _row_to_customer(row: Mapping[str, Any]) -> Customer:
    return Customer(
        customer_id=UUID(str(row["id"])),
        org_id=UUID(str(row["org_id"])),
        full_name=str(row["full_name"]),
        phone=row.get("phone"),
        email=row.get("email"),
        document_id=row.get("document_id"),
        created_at=parse_optional_utc_timestamp(row.get("created_at")),
    )


def get_customer_by_id(customer_id: UUID) -> Optional[Customer]:
    """
    Get a customer by their ID.

    Args:
        customer_id: UUID of the customer

    Returns:
        Customer domain model or None if not found
    """
    rows = run_query(
        get_supabase()
        .table(_CUSTOMERS_TABLE)
        .select("*")
        .eq("id", str(customer_id))
        .limit(1),
        action="fetch customer",
    )
    row = first_or_none(rows)
    return _row_to_customer(row) if row else None


__all__ = ["get_customer_by_id"]
