"""Domain: payment method catalogue entry (cash, transfer, card...)."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class PaymentMethod:
    code: str
    name: str
    is_active: bool = True
