"""Candidate ownership, sourcing protection and outreach."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import EnginePolicy
from ..engine.clock import as_utc, utcnow
from ..errors import BusinessRuleError, CandidateProtectedError, NotFoundError
from ..events import EventPublisher, LoggingEventPublisher
from ..models.candidate import Candidate, CandidateOutreach, CandidateSourcer

logger = logging.getLogger(__name__)

ENGAGEMENT_FIELDS = ("opened_at", "clicked_at", "replied_at", "unsubscribed_at", "bounced")


def first_contact_sources(current_sourcer: CandidateSourcer | None) -> bool:
    """First outreach to a never-sourced candidate makes the sender its sourcer.

    Only the absence of any record counts. An expired record means the
    candidate was sourced before, and outreach alone does not re-source it.
    """
    return current_sourcer is None


def is_protected(sourcer: CandidateSourcer | None, now: datetime | None = None) -> bool:
    if sourcer is None:
        return False
    return as_utc(sourcer.protection_expires_at) > (now or utcnow())


class CandidateOwnershipService:
    def __init__(
        self,
        db: AsyncSession,
        events: EventPublisher | None = None,
        policy: EnginePolicy | None = None,
    ):
        self.db = db
        self.events = events or LoggingEventPublisher()
        self.policy = policy or EnginePolicy.from_settings()

    async def _get_candidate(self, candidate_id: uuid.UUID) -> Candidate:
        candidate = await self.db.get(Candidate, candidate_id)
        if candidate is None:
            raise NotFoundError("Candidate", candidate_id)
        return candidate

    async def _current_sourcer(self, candidate: Candidate) -> CandidateSourcer | None:
        if candidate.current_sourcer_id is None:
            return None
        return await self.db.get(CandidateSourcer, candidate.current_sourcer_id)

    async def get_candidate_sourcer(self, candidate_id: uuid.UUID) -> CandidateSourcer | None:
        candidate = await self._get_candidate(candidate_id)
        return await self._current_sourcer(candidate)

    async def source_candidate(
        self,
        candidate_id: uuid.UUID,
        sourcer_id: str,
        sourcer_type: str = "recruiter",
        protection_window_days: int | None = None,
        notes: str | None = None,
    ) -> CandidateSourcer:
        """Claim a candidate for ``sourcer_id``. First sourcer wins."""
        if protection_window_days is not None and protection_window_days < 0:
            raise BusinessRuleError(
                "Protection window cannot be negative",
                {"protection_window_days": protection_window_days},
            )
        candidate = await self._get_candidate(candidate_id)
        current = await self._current_sourcer(candidate)
        now = utcnow()

        if is_protected(current, now):
            if current.sourcer_id == sourcer_id:
                return current
            raise CandidateProtectedError(
                f"Candidate is already sourced by another party until "
                f"{as_utc(current.protection_expires_at).isoformat()}",
                {
                    "candidate_id": str(candidate_id),
                    "protection_expires_at": as_utc(current.protection_expires_at).isoformat(),
                },
            )

        window = (
            protection_window_days
            if protection_window_days is not None
            else self.policy.protection_window_days
        )
        record = CandidateSourcer(
            candidate_id=candidate.id,
            sourcer_id=sourcer_id,
            sourcer_type=sourcer_type,
            sourced_at=now,
            protection_window_days=window,
            protection_expires_at=now + timedelta(days=window),
            notes=notes,
        )
        self.db.add(record)
        await self.db.flush()

        # Swap the pointer only if nobody else got there since we read it
        expected = candidate.current_sourcer_id
        guard = (
            Candidate.current_sourcer_id.is_(None)
            if expected is None
            else Candidate.current_sourcer_id == expected
        )
        result = await self.db.execute(
            update(Candidate)
            .where(Candidate.id == candidate.id, guard)
            .values(current_sourcer_id=record.id)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            await self.db.rollback()
            raise CandidateProtectedError(
                "Candidate was sourced concurrently by another party",
                {"candidate_id": str(candidate_id)},
            )
        await self.db.commit()
        await self.db.refresh(candidate)
        logger.info("Candidate %s sourced by %s until %s", candidate_id, sourcer_id, record.protection_expires_at)

        await self.events.publish(
            "candidate.sourced",
            {
                "candidate_id": candidate.id,
                "sourcer_id": sourcer_id,
                "sourcer_type": sourcer_type,
                "protection_expires_at": record.protection_expires_at,
            },
            self.policy.source_service,
        )
        return record

    async def can_work_with(self, candidate_id: uuid.UUID, user_id: str) -> bool:
        sourcer = await self.get_candidate_sourcer(candidate_id)
        if not is_protected(sourcer):
            return True
        return sourcer.sourcer_id == user_id

    async def record_outreach(
        self,
        candidate_id: uuid.UUID,
        recruiter_id: str,
        subject: str,
        body: str,
        job_id: uuid.UUID | None = None,
    ) -> CandidateOutreach:
        candidate = await self._get_candidate(candidate_id)
        if first_contact_sources(await self._current_sourcer(candidate)):
            await self.source_candidate(candidate.id, recruiter_id, notes="First outreach")

        outreach = CandidateOutreach(
            candidate_id=candidate.id,
            recruiter_id=recruiter_id,
            job_id=job_id,
            sent_at=utcnow(),
            email_subject=subject,
            email_body=body,
            bounced=False,
        )
        self.db.add(outreach)
        await self.db.commit()
        await self.db.refresh(outreach)

        await self.events.publish(
            "candidate.outreach_sent",
            {
                "outreach_id": outreach.id,
                "candidate_id": candidate.id,
                "recruiter_id": recruiter_id,
                "job_id": job_id,
            },
            self.policy.source_service,
        )
        return outreach

    async def update_outreach_engagement(
        self, outreach_id: uuid.UUID, **fields
    ) -> CandidateOutreach:
        outreach = await self.db.get(CandidateOutreach, outreach_id)
        if outreach is None:
            raise NotFoundError("Outreach", outreach_id)
        for key, value in fields.items():
            if key in ENGAGEMENT_FIELDS and value is not None:
                setattr(outreach, key, value)
        await self.db.commit()
        await self.db.refresh(outreach)
        return outreach

    async def list_sourcers(self, status: str = "active") -> list[CandidateSourcer]:
        """Current sourcer records filtered by protection status (active/expired/all)."""
        stmt = (
            select(CandidateSourcer)
            .join(Candidate, Candidate.current_sourcer_id == CandidateSourcer.id)
            .order_by(CandidateSourcer.protection_expires_at)
        )
        now = utcnow()
        if status == "active":
            stmt = stmt.where(CandidateSourcer.protection_expires_at > now)
        elif status == "expired":
            stmt = stmt.where(CandidateSourcer.protection_expires_at <= now)
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def list_candidate_outreach(self, candidate_id: uuid.UUID) -> list[CandidateOutreach]:
        stmt = (
            select(CandidateOutreach)
            .where(CandidateOutreach.candidate_id == candidate_id)
            .order_by(CandidateOutreach.sent_at.desc())
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def list_recruiter_outreach(self, recruiter_id: str) -> list[CandidateOutreach]:
        stmt = (
            select(CandidateOutreach)
            .where(CandidateOutreach.recruiter_id == recruiter_id)
            .order_by(CandidateOutreach.sent_at.desc())
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())
