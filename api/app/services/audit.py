"""Audit trail writes. Events are added to the caller's session and commit with it."""

from sqlalchemy.ext.asyncio import AsyncSession

from app.models.audit import AuditAction, AuditEvent


async def record_event(
    db: AsyncSession,
    actor_id: int | None,
    action: AuditAction,
    resource_type: str,
    resource_id: int | None = None,
    organization_id: int | None = None,
    details: dict | None = None,
) -> AuditEvent:
    event = AuditEvent(
        actor_id=actor_id,
        action=action,
        resource_type=resource_type,
        resource_id=resource_id,
        organization_id=organization_id,
        details=details or {},
    )
    db.add(event)
    await db.flush()
    return event
