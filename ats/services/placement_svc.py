"""Placement lifecycle: hire, activation, guarantee window, failure, replacement."""

from __future__ import annotations

import logging
import uuid
from datetime import date, datetime, timedelta

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import EnginePolicy
from ..directory import RecruiterDirectory
from ..engine.actor import Actor
from ..engine.clock import as_utc, to_datetime, utcnow
from ..engine.stages import ApplicationStage, PlacementState, check_placement_transition
from ..errors import (
    BusinessRuleError,
    GuaranteeExpiredError,
    InvalidTransitionError,
    NotFoundError,
)
from ..events import EventPublisher, LoggingEventPublisher
from ..models.job import Job
from ..models.placement import Placement, PlacementCollaborator
from .application_svc import ApplicationWorkflow

logger = logging.getLogger(__name__)

OPEN_STATES = (PlacementState.HIRED.value, PlacementState.ACTIVE.value)


def is_within_guarantee(placement: Placement, now: datetime | None = None) -> bool:
    """True while the guarantee deadline is still ahead. Never cached."""
    expires = as_utc(placement.guarantee_expires_at)
    if expires is None:
        return False
    return expires > (now or utcnow())


def calculate_fee(salary: float, fee_percentage: float, recruiter_share_ratio: float) -> dict:
    fee_amount = round(salary * fee_percentage / 100, 2)
    recruiter_share = round(fee_amount * recruiter_share_ratio, 2)
    return {
        "fee_amount": fee_amount,
        "recruiter_share": recruiter_share,
        "platform_share": round(fee_amount - recruiter_share, 2),
    }


class PlacementLifecycleService:
    def __init__(
        self,
        db: AsyncSession,
        events: EventPublisher | None = None,
        policy: EnginePolicy | None = None,
        directory: RecruiterDirectory | None = None,
    ):
        self.db = db
        self.events = events or LoggingEventPublisher()
        self.policy = policy or EnginePolicy.from_settings()
        self.workflow = ApplicationWorkflow(db, self.events, self.policy, directory)

    async def get_placement(self, placement_id: uuid.UUID) -> Placement:
        placement = await self.db.get(Placement, placement_id)
        if placement is None:
            raise NotFoundError("Placement", placement_id)
        return placement

    def is_within_guarantee(self, placement: Placement, now: datetime | None = None) -> bool:
        return is_within_guarantee(placement, now)

    async def _publish(self, event_type: str, placement: Placement, **extra) -> None:
        payload = {
            "placement_id": placement.id,
            "application_id": placement.application_id,
            "job_id": placement.job_id,
            "candidate_id": placement.candidate_id,
            "company_id": placement.company_id,
            "recruiter_id": placement.recruiter_id,
        }
        payload.update(extra)
        await self.events.publish(event_type, payload, self.policy.source_service)

    async def _transition(self, placement: Placement, new_state: PlacementState, **fields) -> str:
        # Validated before any field is touched
        check_placement_transition(placement.state, new_state.value)
        old_state = placement.state
        placement.state = new_state.value
        for key, value in fields.items():
            setattr(placement, key, value)
        await self.db.commit()
        await self.db.refresh(placement)
        logger.info("Placement %s: %s -> %s", placement.id, old_state, new_state.value)
        return old_state

    async def record_hire(
        self,
        application_id: uuid.UUID,
        salary: float,
        fee_percentage: float | None = None,
        actor: Actor | None = None,
    ) -> Placement:
        """Move a represented application to ``hired`` and open its placement."""
        application = await self.workflow.get_application(application_id)
        if not application.recruiter_id:
            raise BusinessRuleError(
                "Only applications with a recruiter of record create placements",
                {"application_id": str(application.id)},
            )
        if salary <= 0:
            raise BusinessRuleError("Salary must be positive", {"salary": salary})
        job = await self.db.get(Job, application.job_id)
        if job is None:
            raise NotFoundError("Job", application.job_id)

        fee_pct = job.fee_percentage if fee_percentage is None else fee_percentage
        fees = calculate_fee(salary, fee_pct, self.policy.recruiter_share_ratio)

        old_stage = self.workflow.prepare_stage_change(
            application, ApplicationStage.HIRED.value, actor
        )
        placement = Placement(
            application_id=application.id,
            job_id=application.job_id,
            candidate_id=application.candidate_id,
            company_id=job.company_id,
            recruiter_id=application.recruiter_id,
            state=PlacementState.HIRED.value,
            salary=salary,
            fee_percentage=fee_pct,
            hired_at=utcnow(),
            guarantee_days=(
                job.guarantee_days if job.guarantee_days is not None else self.policy.guarantee_days
            ),
            **fees,
        )
        self.db.add(placement)
        await self.db.commit()
        await self.db.refresh(placement)
        await self.db.refresh(application)
        logger.info("Placement %s created for application %s", placement.id, application.id)

        await self.workflow.publish_event(
            "application.stage_changed",
            application,
            old_stage=old_stage,
            new_stage=ApplicationStage.HIRED.value,
        )
        await self._publish(
            "placement.created",
            placement,
            salary=placement.salary,
            fee_amount=placement.fee_amount,
            recruiter_share=placement.recruiter_share,
            platform_share=placement.platform_share,
        )
        return placement

    async def activate(
        self, placement_id: uuid.UUID, start_date: date | datetime
    ) -> Placement:
        placement = await self.get_placement(placement_id)
        start = to_datetime(start_date)
        old_state = await self._transition(
            placement,
            PlacementState.ACTIVE,
            start_date=start,
            guarantee_expires_at=start + timedelta(days=placement.guarantee_days),
        )
        await self._publish(
            "placement.state_changed", placement, old_state=old_state, new_state=placement.state
        )
        await self._publish(
            "placement.activated",
            placement,
            start_date=start,
            guarantee_days=placement.guarantee_days,
            guarantee_expires_at=as_utc(placement.guarantee_expires_at),
        )
        return placement

    async def complete(
        self, placement_id: uuid.UUID, end_date: date | datetime | None = None
    ) -> Placement:
        placement = await self.get_placement(placement_id)
        old_state = await self._transition(
            placement,
            PlacementState.COMPLETED,
            end_date=to_datetime(end_date) or utcnow(),
        )

        stmt = (
            select(PlacementCollaborator)
            .where(PlacementCollaborator.placement_id == placement.id)
            .order_by(PlacementCollaborator.created_at)
        )
        collaborators = (await self.db.execute(stmt)).scalars().all()
        await self._publish(
            "placement.state_changed", placement, old_state=old_state, new_state=placement.state
        )
        await self._publish(
            "placement.completed",
            placement,
            end_date=as_utc(placement.end_date),
            recruiter_share=placement.recruiter_share,
            collaborators=[
                {
                    "recruiter_id": c.recruiter_id,
                    "role": c.role,
                    "split_percentage": c.split_percentage,
                    "split_amount": c.split_amount,
                }
                for c in collaborators
            ],
        )
        return placement

    async def fail(
        self, placement_id: uuid.UUID, reason: str, now: datetime | None = None
    ) -> Placement:
        placement = await self.get_placement(placement_id)
        now = now or utcnow()
        within = is_within_guarantee(placement, now)
        old_state = await self._transition(
            placement,
            PlacementState.FAILED,
            failed_at=now,
            failure_reason=reason,
        )
        await self._publish(
            "placement.state_changed", placement, old_state=old_state, new_state=placement.state
        )
        await self._publish(
            "placement.failed",
            placement,
            failure_reason=reason,
            failed_at=now,
            within_guarantee=within,
        )
        return placement

    async def request_replacement(
        self, failed_placement_id: uuid.UUID, now: datetime | None = None
    ) -> Placement:
        """Notify that a guaranteed replacement is owed. Does not create it."""
        placement = await self.get_placement(failed_placement_id)
        if placement.state != PlacementState.FAILED.value:
            raise InvalidTransitionError(
                placement.state,
                "replacement",
                "Replacement can only be requested for a failed placement",
            )
        if not is_within_guarantee(placement, now):
            raise GuaranteeExpiredError(
                "Guarantee period has expired",
                {
                    "placement_id": str(placement.id),
                    "guarantee_expires_at": (
                        as_utc(placement.guarantee_expires_at).isoformat()
                        if placement.guarantee_expires_at
                        else None
                    ),
                },
            )
        logger.info("Replacement requested for placement %s", placement.id)
        await self._publish(
            "placement.replacement_requested",
            placement,
            failure_reason=placement.failure_reason,
            guarantee_expires_at=as_utc(placement.guarantee_expires_at),
        )
        return placement

    async def link_replacement(
        self, failed_placement_id: uuid.UUID, replacement_placement_id: uuid.UUID
    ) -> Placement:
        failed = await self.get_placement(failed_placement_id)
        if failed.state != PlacementState.FAILED.value:
            raise InvalidTransitionError(
                failed.state,
                "replacement",
                "Only a failed placement can be replaced",
            )
        if failed.id == replacement_placement_id:
            raise BusinessRuleError("A placement cannot replace itself")
        # The replacement's own state is not checked
        replacement = await self.get_placement(replacement_placement_id)
        replacement.replacement_placement_id = failed.id
        await self.db.commit()
        await self.db.refresh(replacement)
        logger.info("Placement %s linked as replacement for %s", replacement.id, failed.id)
        return replacement

    async def list_by_state(self, state: str) -> list[Placement]:
        stmt = (
            select(Placement)
            .where(Placement.state == PlacementState(state).value)
            .order_by(Placement.created_at.desc())
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def list_expiring_guarantees(
        self, days: int, now: datetime | None = None
    ) -> list[Placement]:
        """Open placements whose guarantee ends within ``days``.

        Completed and failed placements never appear, whatever their stored
        deadline says.
        """
        now = now or utcnow()
        stmt = (
            select(Placement)
            .where(
                Placement.state.in_(OPEN_STATES),
                Placement.guarantee_expires_at.is_not(None),
                Placement.guarantee_expires_at > now,
                Placement.guarantee_expires_at <= now + timedelta(days=days),
            )
            .order_by(Placement.guarantee_expires_at)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())
