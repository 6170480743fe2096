"""
Audit service: best-effort, fire-and-forget audit logging.

Lifecycle workflows record what they did *after* their atomic function has
committed. Audit writes run on a single background worker (AUDIT_MODE=async,
the default) or inline (AUDIT_MODE=sync). In both modes a failed write is
logged and swallowed: the audit trail never decides whether a workflow
succeeded.
"""

from __future__ import annotations

import logging
import os
import threading
from concurrent.futures import Future, ThreadPoolExecutor, wait
from typing import Any, List, Mapping, Optional, Union

from domain.actor import Actor
from domain.audit import AuditAction, AuditEntity, AuditLogEntry
from repositories import audit_repository

logger = logging.getLogger(__name__)

AUDIT_MODE_ASYNC: str = "async"
AUDIT_MODE_SYNC: str = "sync"


class AuditSink:
    """Queue of pending audit writes."""

    def __init__(self, mode: str = AUDIT_MODE_ASYNC) -> None:
        if mode not in (AUDIT_MODE_ASYNC, AUDIT_MODE_SYNC):
            raise ValueError(f"Unknown audit mode: {mode!r}")
        self.mode = mode
        self._lock = threading.Lock()
        self._pending: List[Future] = []
        self._executor: Optional[ThreadPoolExecutor] = None
        if mode == AUDIT_MODE_ASYNC:
            self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="audit")

    def submit(self, entry: AuditLogEntry) -> None:
        if self._executor is None:
            self._write(entry)
            return
        future = self._executor.submit(self._write, entry)
        with self._lock:
            self._pending = [f for f in self._pending if not f.done()]
            self._pending.append(future)

    def flush(self, timeout: Optional[float] = None) -> None:
        """Block until every queued write has finished (or timeout)."""

        with self._lock:
            pending = list(self._pending)
        if pending:
            wait(pending, timeout=timeout)

    def shutdown(self) -> None:
        """Wait for queued writes and stop the worker; later submits raise RuntimeError."""

        if self._executor is not None:
            self._executor.shutdown(wait=True)

    @staticmethod
    def _write(entry: AuditLogEntry) -> None:
        try:
            audit_repository.insert_audit_entry(entry)
        except Exception:
            # Audit failures must never reach the caller.
            logger.error(
                "Failed to write audit log entry",
                exc_info=True,
                extra={
                    "audit_action": entry.action,
                    "audit_entity": entry.entity,
                    "audit_entity_id": entry.entity_id,
                },
            )
            return
        logger.debug(
            "Audit %s on %s",
            entry.action,
            entry.entity,
            extra={"audit_entity_id": entry.entity_id},
        )


_sink: Optional[AuditSink] = None
_sink_lock = threading.Lock()


def get_audit_sink() -> AuditSink:
    global _sink
    with _sink_lock:
        if _sink is None:
            _sink = AuditSink(os.getenv("AUDIT_MODE", AUDIT_MODE_ASYNC).strip().lower() or AUDIT_MODE_ASYNC)
        return _sink


def set_audit_sink(sink: Optional[AuditSink]) -> None:
    """Replace the process-wide sink (None resets to the env-configured one)."""

    global _sink
    with _sink_lock:
        previous = _sink
        _sink = sink
    if previous is not None and previous is not sink:
        previous.shutdown()


def record_audit(
    action: Union[AuditAction, str],
    entity: Union[AuditEntity, str],
    entity_id: Any,
    actor: Actor,
    payload: Optional[Mapping[str, Any]] = None,
) -> None:
    """Queue an audit entry; never raises because of the audit store."""

    if actor.org_id is None:
        logger.warning(
            "Audit skipped: actor has no organization",
            extra={"audit_action": str(getattr(action, "value", action)), "actor_id": str(actor.actor_id)},
        )
        return

    entry = AuditLogEntry(
        action=action.value if isinstance(action, AuditAction) else str(action),
        entity=entity.value if isinstance(entity, AuditEntity) else str(entity),
        org_id=actor.org_id,
        actor_id=actor.actor_id,
        entity_id=str(entity_id) if entity_id is not None else None,
        payload=_jsonable(payload or {}),
    )
    try:
        get_audit_sink().submit(entry)
    except RuntimeError:
        # Sink already shut down.
        logger.warning("Audit sink unavailable, entry dropped", extra={"audit_action": entry.action})


def list_audit_entries(entity: Union[AuditEntity, str], entity_id: Any) -> List[AuditLogEntry]:
    name = entity.value if isinstance(entity, AuditEntity) else str(entity)
    return audit_repository.list_audit_entries(name, str(entity_id))


def flush() -> None:
    get_audit_sink().flush()


def _jsonable(value: Any) -> Any:
    """Convert UUIDs, enums and other values to JSON-friendly primitives."""

    if isinstance(value, Mapping):
        return {str(k): _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    enum_value = getattr(value, "value", None)
    if isinstance(enum_value, (str, int)):
        return enum_value
    return str(value)


__all__ = [
    "AUDIT_MODE_ASYNC",
    "AUDIT_MODE_SYNC",
    "AuditSink",
    "flush",
    "get_audit_sink",
    "list_audit_entries",
    "record_audit",
    "set_audit_sink",
]
