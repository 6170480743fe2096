"""
Domain: audit log entries.

Write-once, append-only records of state-changing actions. Produced as a
side effect of the lifecycle workflows; a failed write never affects the
workflow that produced it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Mapping, Optional
from uuid import UUID

from .time import require_utc_timestamp


class AuditAction(str, Enum):
    STAGE_CHANGE = "stage_change"
    RESERVATION_CREATE = "reservation_create"
    RESERVATION_CANCEL = "reservation_cancel"
    RESERVATION_EXPIRE = "reservation_expire"
    RESERVATION_CONVERT = "reservation_convert"
    SALE_CREATE = "sale_create"
    SALE_VOID = "sale_void"
    PAYMENT_CREATE = "payment_create"


class AuditEntity(str, Enum):
    VEHICLE = "vehicle"
    RESERVATION = "reservation"
    SALE = "sale"
    SALE_PAYMENT = "sale_payment"


@dataclass(frozen=True, slots=True)
class AuditLogEntry:
    action: str
    entity: str
    org_id: UUID
    actor_id: Optional[UUID]
    entity_id: Optional[str] = None
    payload: Mapping[str, Any] = field(default_factory=dict)
    created_at: Optional[datetime] = None
    entry_id: Optional[UUID] = None

    def __post_init__(self) -> None:
        if self.created_at is not None:
            require_utc_timestamp("created_at", self.created_at)
