"""
Shared persistence helpers for the Supabase repositories.

Every repository call goes through `run_query` so store failures surface the
same way everywhere: the PostgREST message/code/details are kept verbatim on a
`StoreError`, and unique violations (SQLSTATE 23505) on the lifecycle indexes
become `InvariantViolationError`.
"""

from __future__ import annotations

import logging
from typing import Any, List, Mapping, Optional
from uuid import UUID

from postgrest.exceptions import APIError

from domain.errors import InvariantViolationError, StoreError

logger = logging.getLogger(__name__)

UNIQUE_VIOLATION: str = "23505"

# Unique partial indexes that encode lifecycle invariants.
_INVARIANT_INDEXES: dict[str, str] = {
    "reservations_one_active_per_vehicle": "vehicle_already_reserved",
    "sales_one_active_per_vehicle": "vehicle_already_sold",
}


def api_error_body(exc: APIError) -> dict[str, Any]:
    """Best-effort extraction of the JSON body carried by a PostgREST APIError."""

    try:
        body = exc.json() if callable(getattr(exc, "json", None)) else {}
    except (TypeError, ValueError):
        body = {}
    if not isinstance(body, dict):
        body = {}
    for attr in ("message", "code", "details", "hint"):
        value = getattr(exc, attr, None)
        if value is not None and attr not in body:
            body[attr] = value
    return body


def store_error_from_api_error(exc: APIError, *, action: str) -> Exception:
    """Translate a PostgREST APIError into the lifecycle error taxonomy."""

    body = api_error_body(exc)
    code = str(body.get("code") or "")
    message = str(body.get("message") or exc)
    details = {k: body[k] for k in ("code", "details", "hint") if body.get(k) is not None}

    if code == UNIQUE_VIOLATION:
        text = f"{message} {body.get('details') or ''}"
        for index_name, error_code in _INVARIANT_INDEXES.items():
            if index_name in text:
                return InvariantViolationError(
                    f"Failed to {action}: {message}", code=error_code, details=details
                )

    return StoreError(f"Failed to {action}: {message}", code=code or None, details=details)


def run_query(query: Any, *, action: str) -> List[Mapping[str, Any]]:
    """
    Execute a PostgREST query builder and return its rows.

    Raises:
        StoreError / InvariantViolationError on failure
    """

    try:
        response = query.execute()
    except APIError as exc:
        err = store_error_from_api_error(exc, action=action)
        logger.warning(
            "Supabase query failed",
            extra={"action": action, "error_code": getattr(err, "code", None)},
        )
        raise err from exc

    # Older clients report failures on the response instead of raising.
    error = getattr(response, "error", None)
    if error:
        code = getattr(error, "code", None)
        if str(code) == UNIQUE_VIOLATION:
            raise InvariantViolationError(f"Failed to {action}: {error}", code="duplicate")
        raise StoreError(f"Failed to {action}: {error}", code=str(code) if code else None)

    data = getattr(response, "data", None)
    if data is None:
        return []
    if isinstance(data, dict):
        return [data]
    return list(data)


def first_or_none(rows: List[Mapping[str, Any]]) -> Optional[Mapping[str, Any]]:
    return rows[0] if rows else None


def optional_uuid(value: Any) -> Optional[UUID]:
    if value is None or value == "":
        return None
    return UUID(str(value))


def optional_int(value: Any) -> Optional[int]:
    if value is None or value == "":
        return None
    return int(value)


__all__ = [
    "UNIQUE_VIOLATION",
    "api_error_body",
    "store_error_from_api_error",
    "run_query",
    "first_or_none",
    "optional_uuid",
    "optional_int",
]
