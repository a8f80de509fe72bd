"""Audit log helper — append-only writes to audit_logs table."""
import json
import logging
import uuid
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from app.models.audit import AuditLog

logger = logging.getLogger(__name__)


async def log_async(
    db: AsyncSession,
    action: str,
    entity_type: str,
    entity_id: uuid.UUID | str | None = None,
    actor_id: uuid.UUID | str | None = None,
    after: Any | None = None,
    ip_address: str | None = None,
    notes: str | None = None,
) -> AuditLog:
    """Write a single audit log entry.

    Args:
        db: Async session; the entry is flushed, the caller commits.
        action: Short verb, e.g. 'import.completed', 'backup.restored'.
        entity_type: Import target or entity name, e.g. 'orders'.
        entity_id: PK of the affected record, if there is exactly one.
        actor_id: Owner who performed the action.
        after: Dict snapshot of the result (JSON-serialisable).
        ip_address: Client address from the request.
        notes: Free-text annotation.
    """
    entry = AuditLog(
        actor_id=uuid.UUID(str(actor_id)) if actor_id else None,
        action=action,
        entity_type=entity_type,
        entity_id=uuid.UUID(str(entity_id)) if entity_id else None,
        after_state=json.dumps(after, default=str) if after is not None else None,
        ip_address=ip_address,
        notes=notes,
    )
    db.add(entry)
    await db.flush()
    logger.debug("Audit: %s %s/%s", action, entity_type, entity_id)
    return entry
