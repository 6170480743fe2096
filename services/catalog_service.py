"""
Lookup validation shared by the reservation and sale workflows.
"""

from __future__ import annotations

from typing import List, Optional
from uuid import UUID

from domain.actor import Actor
from domain.customer import Customer
from domain.errors import NotFoundError, ValidationError
from domain.payment_method import PaymentMethod
from repositories.catalog_repository import get_payment_method, list_payment_methods
from repositories.customer_repository import get_customer_by_id


def list_active_payment_methods() -> List[PaymentMethod]:
    return list_payment_methods(active_only=True)


def require_payment_method(code: Optional[str]) -> PaymentMethod:
    """
    Validate a payment method code.

    Raises:
        ValidationError: code is empty
        NotFoundError: unknown or inactive method
    """

    text = (code or "").strip()
    if not text:
        raise ValidationError("A payment method is required", code="missing_field")
    method = get_payment_method(text)
    if method is None or not method.is_active:
        raise NotFoundError(f"Unknown payment method: {text}", code="unknown_payment_method")
    return method


def require_customer(customer_id: UUID, actor: Actor) -> Customer:
    customer = get_customer_by_id(customer_id)
    if customer is None or not customer.belongs_to(actor.org_id):
        raise NotFoundError(f"Customer not found: {customer_id}", code="customer_not_found")
    return customer


__all__ = [
    "list_active_payment_methods",
    "require_customer",
    "require_payment_method",
]
