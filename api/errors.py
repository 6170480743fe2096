"""
Lifecycle error to HTTP mapping.

Response body: {"detail": {"error": <code>, "message": <text>}}
"""

import logging

from fastapi import HTTPException

from domain.errors import (
    InvariantViolationError,
    LifecycleError,
    NotFoundError,
    StoreError,
    ValidationError,
)

logger = logging.getLogger(__name__)

_STATUS_BY_TYPE = (
    (ValidationError, 422),
    (NotFoundError, 404),
    (InvariantViolationError, 409),
    (StoreError, 502),
)


def status_for(exc: LifecycleError) -> int:
    for error_type, status_code in _STATUS_BY_TYPE:
        if isinstance(exc, error_type):
            return status_code
    return 500


def http_error(exc: LifecycleError) -> HTTPException:
    status_code = status_for(exc)
    if status_code >= 500:
        logger.error("Request failed", extra={"error_code": exc.code, "error_message": exc.message})
    return HTTPException(status_code=status_code, detail=exc.to_dict())
