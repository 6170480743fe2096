"""
Domain: Vehicle (a physical unit of inventory).

The vehicle row is the one piece of shared mutable state in the sales
lifecycle: reservation and sale workflows both move its `stage_code`, and
they only ever do so through the atomic stage functions in the database.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional
from uuid import UUID

from .stage import STAGE_BLOCKED, STAGE_SOLD
from .time import require_utc_timestamp


@dataclass(frozen=True, slots=True)
class Vehicle:
    vehicle_id: UUID
    org_id: UUID
    stage_code: str
    brand: Optional[str] = None
    line: Optional[str] = None
    model_year: Optional[int] = None
    license_plate: Optional[str] = None  # unique within org when present
    is_archived: bool = False
    sold_sale_id: Optional[UUID] = None
    sold_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        if not self.stage_code:
            raise ValueError("stage_code is required")
        if self.sold_at is not None:
            require_utc_timestamp("sold_at", self.sold_at)

    @property
    def is_sold(self) -> bool:
        return self.stage_code == STAGE_SOLD

    @property
    def is_blocked(self) -> bool:
        return self.stage_code == STAGE_BLOCKED

    @property
    def display_name(self) -> str:
        parts = [p for p in (self.brand, self.line, str(self.model_year) if self.model_year else None) if p]
        label = " ".join(parts) or str(self.vehicle_id)
        if self.license_plate:
            return f"{label} ({self.license_plate})"
        return label
