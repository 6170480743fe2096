"""
Audit log repository.

Insert-only access to `audit_log`, plus the read used by history views.
"""

from __future__ import annotations

from typing import Any, List, Mapping
from uuid import UUID

from domain.audit import AuditLogEntry
from domain.time import parse_optional_utc_timestamp
from repositories.client import get_supabase
from repositories.common import optional_uuid, run_query

_AUDIT_TABLE: str = "audit_log"


def _row_to_entry(row: Mapping[str, Any]) -> AuditLogEntry:
    payload = row.get("payload")
    return AuditLogEntry(
        entry_id=optional_uuid(row.get("id")),
        org_id=UUID(str(row["org_id"])),
        actor_id=optional_uuid(row.get("actor_id")),
        action=str(row["action"]),
        entity=str(row["entity"]),
        entity_id=row.get("entity_id"),
        payload=dict(payload) if isinstance(payload, Mapping) else {},
        created_at=parse_optional_utc_timestamp(row.get("created_at")),
    )


def insert_audit_entry(entry: AuditLogEntry) -> None:
    payload: dict[str, Any] = {
        "org_id": str(entry.org_id),
        "actor_id": str(entry.actor_id) if entry.actor_id else None,
        "action": entry.action,
        "entity": entry.entity,
        "entity_id": entry.entity_id,
        "payload": dict(entry.payload),
    }
    run_query(get_supabase().table(_AUDIT_TABLE).insert(payload), action="insert audit log")


def list_audit_entries(entity: str, entity_id: str) -> List[AuditLogEntry]:
    """Audit trail of one entity, newest first."""

    rows = run_query(
        get_supabase()
        .table(_AUDIT_TABLE)
        .select("*")
        .eq("entity", entity)
        .eq("entity_id", entity_id)
        .order("created_at", desc=True),
        action="list audit log",
    )
    return [_row_to_entry(row) for row in rows]


__all__ = ["insert_audit_entry", "list_audit_entries"]
