"""Application audit trail."""

from __future__ import annotations

import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..engine.actor import Actor
from ..engine.clock import utcnow
from ..models.application import Application, ApplicationAuditLog


def add_entry(
    db: AsyncSession,
    application: Application,
    action: str,
    actor: Actor | None = None,
    *,
    old_value: dict | None = None,
    new_value: dict | None = None,
    metadata: dict | None = None,
) -> ApplicationAuditLog:
    """Stage an audit entry in the caller's unit of work. Does not commit."""
    actor = actor or Actor.system()
    entry = ApplicationAuditLog(
        application_id=application.id,
        action=action,
        performed_by_user_id=actor.user_id,
        performed_by_role=actor.role,
        company_id=actor.company_id or application.company_id,
        old_value=old_value,
        new_value=new_value,
        metadata_json=metadata,
        # Explicit so entries written in the same second keep their order
        created_at=utcnow(),
    )
    db.add(entry)
    return entry


async def get_audit_log(
    db: AsyncSession, application_id: uuid.UUID
) -> list[ApplicationAuditLog]:
    stmt = (
        select(ApplicationAuditLog)
        .where(ApplicationAuditLog.application_id == application_id)
        .order_by(ApplicationAuditLog.created_at)
    )
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def list_company_audit_log(
    db: AsyncSession, company_id: str, *, limit: int = 100
) -> list[ApplicationAuditLog]:
    stmt = (
        select(ApplicationAuditLog)
        .where(ApplicationAuditLog.company_id == company_id)
        .order_by(ApplicationAuditLog.created_at.desc())
        .limit(limit)
    )
    result = await db.execute(stmt)
    return list(result.scalars().all())
