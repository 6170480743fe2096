"""
Atomic lifecycle functions (PostgreSQL, called through Supabase `rpc`).

Each multi-step workflow of the sales lifecycle runs as one PostgreSQL
function in a single transaction (see db/migrations). The functions lock the
vehicle row, re-check their preconditions and return a JSON object:

    {"success": true, ...ids...}
    {"success": false, "error": "<code>", "message": "<text>"}

`call_atomic` normalizes both that contract and the supabase-py quirk where a
JSON-returning function surfaces as an APIError, and raises the matching
lifecycle error for failures.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

from postgrest.exceptions import APIError

from domain.errors import (
    InvariantViolationError,
    LifecycleError,
    NotFoundError,
    StoreError,
    ValidationError,
)
from repositories.client import get_supabase
from repositories.common import api_error_body, store_error_from_api_error

logger = logging.getLogger(__name__)

FN_TRANSITION_STAGE: str = "transition_vehicle_stage"
FN_MARK_SOLD: str = "mark_vehicle_sold"
FN_CREATE_RESERVATION: str = "create_reservation_atomic"
FN_CANCEL_RESERVATION: str = "cancel_reservation_atomic"
FN_EXPIRE_RESERVATION: str = "expire_reservation_atomic"
FN_CONVERT_RESERVATION: str = "convert_reservation_to_sale"
FN_CREATE_DIRECT_SALE: str = "create_direct_sale_atomic"
FN_VOID_SALE: str = "void_sale_atomic"

_NOT_FOUND_CODES = frozenset(
    {
        "vehicle_not_found",
        "reservation_not_found",
        "sale_not_found",
        "customer_not_found",
        "unknown_stage",
        "unknown_payment_method",
    }
)

_INVARIANT_CODES = frozenset(
    {
        "vehicle_already_reserved",
        "vehicle_already_sold",
        "vehicle_has_active_sale",
        "vehicle_archived",
        "reservation_not_active",
        "sale_not_active",
        "stale_stage",
        "stage_locked",
        "org_mismatch",
    }
)

_VALIDATION_CODES = frozenset({"invalid_amount", "missing_field", "invalid_stage"})


@dataclass(frozen=True, slots=True)
class AtomicResult:
    """Normalized result of an atomic lifecycle function."""

    success: bool
    data: Mapping[str, Any] = field(default_factory=dict)
    error_code: Optional[str] = None
    error_message: Optional[str] = None

    def get(self, key: str, default: Any = None) -> Any:
        return self.data.get(key, default)


def error_for_code(code: Optional[str], message: Optional[str]) -> LifecycleError:
    """Map an atomic function error code onto the lifecycle error taxonomy."""

    text = message or code or "atomic operation failed"
    if code in _NOT_FOUND_CODES:
        return NotFoundError(text, code=code)
    if code in _INVARIANT_CODES:
        return InvariantViolationError(text, code=code)
    if code in _VALIDATION_CODES:
        return ValidationError(text, code=code)
    return StoreError(text, code=code)


def _result_from_body(body: Any) -> Optional[AtomicResult]:
    if not isinstance(body, Mapping) or "success" not in body:
        return None
    if body.get("success") is True:
        return AtomicResult(success=True, data=dict(body))
    return AtomicResult(
        success=False,
        data=dict(body),
        error_code=body.get("error"),
        error_message=body.get("message"),
    )


def execute_atomic(function_name: str, params: Mapping[str, Any]) -> AtomicResult:
    """
    Call an atomic function and normalize its outcome without raising for
    business failures. Transport/store failures still raise StoreError.
    """

    try:
        response = get_supabase().rpc(function_name, dict(params)).execute()
    except APIError as exc:
        # supabase-py may raise APIError for a JSON body, both for success
        # and for error responses of the function.
        result = _result_from_body(api_error_body(exc))
        if result is not None:
            return result
        raise store_error_from_api_error(exc, action=f"call {function_name}") from exc

    error = getattr(response, "error", None)
    if error:
        raise StoreError(f"Failed to call {function_name}: {error}")

    data = getattr(response, "data", None)
    if isinstance(data, list) and len(data) == 1:
        data = data[0]
    result = _result_from_body(data)
    if result is None:
        raise StoreError(
            f"Unexpected response from {function_name}: {data!r}", code="unexpected_response"
        )
    return result


def call_atomic(function_name: str, params: Mapping[str, Any]) -> Mapping[str, Any]:
    """
    Call an atomic function and return its success payload.

    Raises:
        ValidationError / NotFoundError / InvariantViolationError / StoreError
    """

    result = execute_atomic(function_name, params)
    if result.success:
        return result.data

    logger.info(
        "Atomic function rejected the operation",
        extra={
            "function": function_name,
            "error_code": result.error_code,
            "error_message": result.error_message,
        },
    )
    raise error_for_code(result.error_code, result.error_message)


__all__ = [
    "AtomicResult",
    "FN_TRANSITION_STAGE",
    "FN_MARK_SOLD",
    "FN_CREATE_RESERVATION",
    "FN_CANCEL_RESERVATION",
    "FN_EXPIRE_RESERVATION",
    "FN_CONVERT_RESERVATION",
    "FN_CREATE_DIRECT_SALE",
    "FN_VOID_SALE",
    "call_atomic",
    "error_for_code",
    "execute_atomic",
]
