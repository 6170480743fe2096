"""
Domain: Customer.

Reservations and sales reference customers by id only (association, no
ownership). The lifecycle needs a customer to exist and to belong to the
same organization as the vehicle.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional
from uuid import UUID

from .time import require_utc_timestamp


@dataclass(frozen=True, slots=True)
class Customer:
    customer_id: UUID
    org_id: UUID
    full_name: str
    phone: Optional[str] = None
    email: Optional[str] = None
    document_id: Optional[str] = None
    created_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        """Validate timestamps are UTC-aware."""
        if self.created_at is not None:
            require_utc_timestamp("created_at", self.created_at)

    def belongs_to(self, org_id: UUID) -> bool:
        return self.org_id == org_id
