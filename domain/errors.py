"""
Domain: error taxonomy for the sales lifecycle.

Every error carries a short machine-readable `code` so the API layer and the
atomic database functions share one vocabulary. Each class also subclasses the
builtin exception callers already catch for that kind of failure
(ValueError for bad input or broken rules, LookupError for missing rows,
RuntimeError for store failures).
"""

from __future__ import annotations

from typing import Any, Mapping, Optional


class LifecycleError(Exception):
    """Base class for all sales lifecycle failures."""

    default_code: str = "lifecycle_error"

    def __init__(
        self,
        message: str,
        *,
        code: Optional[str] = None,
        details: Optional[Mapping[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.details = dict(details or {})

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {"error": self.code, "message": self.message}
        if self.details:
            body["details"] = self.details
        return body


class ValidationError(LifecycleError, ValueError):
    """Bad input, rejected before any remote call."""

    default_code = "validation_error"


class NotFoundError(LifecycleError, LookupError):
    """A referenced vehicle, reservation, sale, customer or stage does not exist."""

    default_code = "not_found"


class InvariantViolationError(LifecycleError, ValueError):
    """
    A lifecycle rule rejected the operation.

    Examples: vehicle already reserved, reservation not active, sale already
    voided, stale stage precondition.
    """

    default_code = "invariant_violation"


class StoreError(LifecycleError, RuntimeError):
    """The remote store (Supabase/PostgREST) failed; message is passed through verbatim."""

    default_code = "store_error"


def require_positive_amount(name: str, value: Any) -> int:
    """
    Validate a whole-peso amount.

    Booleans are rejected even though they are ints.
    """

    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{name} must be a whole number of pesos", code="invalid_amount")
    if value <= 0:
        raise ValidationError(f"{name} must be greater than 0", code="invalid_amount")
    return value


def require_text(name: str, value: Optional[str]) -> str:
    text = (value or "").strip()
    if not text:
        raise ValidationError(f"{name} is required", code="missing_field")
    return text


def clean_optional_text(value: Optional[str]) -> Optional[str]:
    text = (value or "").strip()
    return text or None
