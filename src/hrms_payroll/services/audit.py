"""Audit trail recording."""

from __future__ import annotations

from typing import Any
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from hrms_payroll.models import AuditEvent


def record_audit(
    session: AsyncSession,
    entity_type: str,
    entity_id: UUID,
    action: str,
    actor_id: UUID | None = None,
    details: dict[str, Any] | None = None,
) -> AuditEvent:
    """Add an audit event to the session's current transaction."""
    event = AuditEvent(
        actor_id=actor_id,
        entity_type=entity_type,
        entity_id=entity_id,
        action=action,
        details=details,
    )
    session.add(event)
    return event
