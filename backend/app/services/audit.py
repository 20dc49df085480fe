"""Audit log helper — append-only writes to audit_logs table."""
import json
import logging
import uuid
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Session

from app.models.audit import AuditLog

logger = logging.getLogger(__name__)


def _build_entry(
    action: str,
    entity_type: str,
    entity_id: uuid.UUID | str | None,
    actor_id: uuid.UUID | str | None,
    actor_email: str | None,
    before: Any | None,
    after: Any | None,
    notes: str | None,
) -> AuditLog:
    return AuditLog(
        actor_id=uuid.UUID(str(actor_id)) if actor_id else None,
        actor_email=actor_email,
        action=action,
        entity_type=entity_type,
        entity_id=uuid.UUID(str(entity_id)) if entity_id else None,
        before_state=json.dumps(before, default=str) if before is not None else None,
        after_state=json.dumps(after, default=str) if after is not None else None,
        notes=notes,
    )


def log(
    db: Session,
    action: str,
    entity_type: str,
    entity_id: uuid.UUID | str | None = None,
    actor_id: uuid.UUID | str | None = None,
    actor_email: str | None = None,
    before: Any | None = None,
    after: Any | None = None,
    notes: str | None = None,
) -> AuditLog:
    """Write a single audit log entry.

    Args:
        db: Sync SQLAlchemy session (Celery tasks). Async callers use log_async.
        action: Short verb, e.g. 'invoice_submitted', 'role_granted'.
        entity_type: Table/domain name, e.g. 'invoice', 'user'.
        entity_id: PK of the affected record.
        actor_id: User who performed the action (None for system actions).
        actor_email: Denormalised email (preserved if user is later deleted).
        before: Dict snapshot of state before the action (JSON-serialisable).
        after: Dict snapshot of state after the action.
        notes: Free-text annotation.
    """
    entry = _build_entry(action, entity_type, entity_id, actor_id, actor_email, before, after, notes)
    db.add(entry)
    db.flush()  # get id without committing; caller controls the transaction
    logger.debug("Audit: %s %s/%s", action, entity_type, entity_id)
    return entry


async def log_async(
    db: AsyncSession,
    action: str,
    entity_type: str,
    entity_id: uuid.UUID | str | None = None,
    actor_id: uuid.UUID | str | None = None,
    actor_email: str | None = None,
    before: Any | None = None,
    after: Any | None = None,
    notes: str | None = None,
) -> AuditLog:
    """Async twin of log() for the API layer. Does not commit."""
    entry = _build_entry(action, entity_type, entity_id, actor_id, actor_email, before, after, notes)
    db.add(entry)
    await db.flush()
    logger.debug("Audit: %s %s/%s", action, entity_type, entity_id)
    return entry
