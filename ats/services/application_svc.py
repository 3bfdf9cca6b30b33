"""Application workflow: stage transitions and their side effects.

Each transition writes the row change and its audit entry in one commit.
The domain event goes out only after that commit succeeds.
"""

from __future__ import annotations

import logging
import uuid
from datetime import timedelta

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import EnginePolicy
from ..directory import DatabaseRecruiterDirectory, RecruiterDirectory
from ..engine.actor import Actor
from ..engine.clock import utcnow
from ..engine.stages import (
    INACTIVE_STAGES,
    ApplicationStage,
    check_pipeline_transition,
    check_strict_transition,
    is_terminal,
)
from ..errors import (
    BusinessRuleError,
    DuplicateApplicationError,
    InvalidTransitionError,
    NotFoundError,
    OwnershipConflictError,
)
from ..events import EventPublisher, LoggingEventPublisher, to_jsonable
from ..models.application import Application, ApplicationAuditLog
from ..models.candidate import Candidate
from ..models.job import Job
from . import audit_svc
from .ownership_svc import CandidateOwnershipService

logger = logging.getLogger(__name__)

Stage = ApplicationStage


def append_note(existing: str | None, note: str) -> str:
    entry = f"[{utcnow().isoformat()}] {note}"
    return f"{existing}\n\n{entry}" if existing else entry


class ApplicationWorkflow:
    """Owns the application stage machine."""

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
        self.directory = directory or DatabaseRecruiterDirectory(db)
        self.ownership = CandidateOwnershipService(db, self.events, self.policy)

    # ── Reads ─────────────────────────────────────────────────────────────

    async def get_application(self, application_id: uuid.UUID) -> Application:
        application = await self.db.get(Application, application_id)
        if application is None:
            raise NotFoundError("Application", application_id)
        return application

    async def list_applications(
        self,
        *,
        candidate_id: uuid.UUID | None = None,
        job_id: uuid.UUID | None = None,
        recruiter_id: str | None = None,
        company_id: str | None = None,
        stage: str | None = None,
        limit: int | None = None,
    ) -> list[Application]:
        stmt = select(Application)
        if candidate_id:
            stmt = stmt.where(Application.candidate_id == candidate_id)
        if job_id:
            stmt = stmt.where(Application.job_id == job_id)
        if recruiter_id:
            stmt = stmt.where(Application.recruiter_id == recruiter_id)
        if company_id:
            stmt = stmt.where(Application.company_id == company_id)
        if stage:
            stmt = stmt.where(Application.stage == stage)
        stmt = stmt.order_by(Application.created_at.desc())
        if limit:
            stmt = stmt.limit(limit)
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def get_audit_log(self, application_id: uuid.UUID) -> list[ApplicationAuditLog]:
        await self.get_application(application_id)
        return await audit_svc.get_audit_log(self.db, application_id)

    async def list_pending_for_recruiter(self, recruiter_id: str) -> list[Application]:
        return await self.list_applications(recruiter_id=recruiter_id, stage=Stage.SCREEN.value)

    async def list_pending_opportunities(self, candidate_id: uuid.UUID) -> list[Application]:
        return await self.list_applications(
            candidate_id=candidate_id, stage=Stage.RECRUITER_PROPOSED.value
        )

    # ── Helpers ───────────────────────────────────────────────────────────

    async def _get_job(self, job_id: uuid.UUID) -> Job:
        job = await self.db.get(Job, job_id)
        if job is None:
            raise NotFoundError("Job", job_id)
        return job

    async def _get_candidate(self, candidate_id: uuid.UUID) -> Candidate:
        candidate = await self.db.get(Candidate, candidate_id)
        if candidate is None:
            raise NotFoundError("Candidate", candidate_id)
        return candidate

    async def _ensure_no_active(self, candidate_id: uuid.UUID, job_id: uuid.UUID) -> None:
        stmt = select(Application.id).where(
            Application.candidate_id == candidate_id,
            Application.job_id == job_id,
            Application.stage.not_in([s.value for s in INACTIVE_STAGES]),
        )
        existing = (await self.db.execute(stmt)).first()
        if existing is not None:
            raise DuplicateApplicationError(
                "Candidate already has an active application for this job",
                {"application_id": str(existing[0])},
            )

    def stage_change(
        self,
        application: Application,
        action: str,
        actor: Actor | None,
        changes: dict,
        metadata: dict | None = None,
    ) -> dict:
        """Apply ``changes`` and stage the matching audit entry without committing.

        Returns the previous values of the changed fields.
        """
        old_value = {key: getattr(application, key) for key in changes}
        for key, value in changes.items():
            setattr(application, key, value)
        audit_svc.add_entry(
            self.db,
            application,
            action,
            actor,
            old_value=to_jsonable(old_value),
            new_value=to_jsonable(changes),
            metadata=to_jsonable(metadata) if metadata else None,
        )
        return old_value

    async def _commit_change(
        self,
        application: Application,
        action: str,
        actor: Actor | None,
        changes: dict,
        metadata: dict | None = None,
    ) -> dict:
        old_value = self.stage_change(application, action, actor, changes, metadata)
        await self.db.commit()
        await self.db.refresh(application)
        logger.info(
            "Application %s %s: %s -> %s",
            application.id,
            action,
            old_value.get("stage", "-"),
            changes.get("stage", "-"),
        )
        return old_value

    async def _create(
        self,
        application: Application,
        action: str,
        actor: Actor,
        metadata: dict | None = None,
    ) -> Application:
        self.db.add(application)
        await self.db.flush()
        audit_svc.add_entry(
            self.db,
            application,
            action,
            actor,
            new_value={"stage": application.stage, "recruiter_id": application.recruiter_id},
            metadata=to_jsonable(metadata) if metadata else None,
        )
        await self.db.commit()
        await self.db.refresh(application)
        logger.info("Application %s created at %s", application.id, application.stage)
        return application

    async def publish_event(self, event_type: str, application: Application, **extra) -> None:
        payload = {
            "application_id": application.id,
            "job_id": application.job_id,
            "candidate_id": application.candidate_id,
            "recruiter_id": application.recruiter_id,
            "company_id": application.company_id,
        }
        payload.update(extra)
        await self.events.publish(event_type, payload, self.policy.source_service)

    # ── Entry points ──────────────────────────────────────────────────────

    async def submit_application(
        self,
        candidate_id: uuid.UUID,
        job_id: uuid.UUID,
        notes: str | None = None,
        candidate_user_id: str | None = None,
    ) -> Application:
        """Candidate-initiated submission.

        A represented candidate lands in ``screen`` for their recruiter;
        everyone else goes straight to the company at ``submitted``.
        """
        job = await self._get_job(job_id)
        candidate = await self._get_candidate(candidate_id)
        await self._ensure_no_active(candidate.id, job.id)

        recruiter_id = await self.directory.active_recruiter_for(candidate.id)
        stage = Stage.SCREEN if recruiter_id else Stage.SUBMITTED
        application = Application(
            candidate_id=candidate.id,
            job_id=job.id,
            company_id=job.company_id,
            recruiter_id=recruiter_id,
            stage=stage.value,
            notes=notes,
        )
        actor = Actor(candidate_user_id or candidate.user_id or str(candidate.id), "candidate")
        action = "submitted_to_recruiter" if recruiter_id else "submitted_to_company"
        await self._create(application, action, actor, {"notes": notes})

        await self.publish_event("application.created", application, stage=application.stage)
        return application

    async def propose_job(
        self,
        recruiter_id: str,
        candidate_id: uuid.UUID,
        job_id: uuid.UUID,
        pitch: str | None = None,
    ) -> Application:
        """Recruiter-initiated proposal awaiting the candidate's answer."""
        job = await self._get_job(job_id)
        candidate = await self._get_candidate(candidate_id)

        representing = await self.directory.active_recruiter_for(candidate.id)
        if representing != recruiter_id:
            raise OwnershipConflictError(
                "Recruiter does not actively represent this candidate",
                {"candidate_id": str(candidate.id)},
            )
        if not await self.ownership.can_work_with(candidate.id, recruiter_id):
            raise OwnershipConflictError(
                "Candidate is protected by another sourcer",
                {"candidate_id": str(candidate.id)},
            )
        await self._ensure_no_active(candidate.id, job.id)

        application = Application(
            candidate_id=candidate.id,
            job_id=job.id,
            company_id=job.company_id,
            recruiter_id=recruiter_id,
            stage=Stage.RECRUITER_PROPOSED.value,
            notes=pitch,
            action_due_date=utcnow() + timedelta(hours=self.policy.proposal_response_hours),
        )
        await self._create(application, "recruiter_proposed", Actor(recruiter_id, "recruiter"))

        await self.publish_event(
            "application.recruiter_proposed",
            application,
            pitch=pitch,
            action_due_date=application.action_due_date,
        )
        return application

    # ── Candidate responses ───────────────────────────────────────────────

    async def _get_proposal_for(
        self, application_id: uuid.UUID, candidate_id: uuid.UUID, requested: Stage
    ) -> Application:
        application = await self.get_application(application_id)
        if str(application.candidate_id) != str(candidate_id):
            raise OwnershipConflictError("Only the proposed candidate can respond to this proposal")
        if application.stage != Stage.RECRUITER_PROPOSED.value:
            raise InvalidTransitionError(
                application.stage,
                requested.value,
                f"Proposal is no longer awaiting a response (stage {application.stage})",
            )
        check_strict_transition(application.stage, requested.value)
        return application

    async def candidate_approve(
        self, application_id: uuid.UUID, candidate_id: uuid.UUID
    ) -> Application:
        application = await self._get_proposal_for(application_id, candidate_id, Stage.DRAFT)
        await self._commit_change(
            application,
            "candidate_approved",
            Actor(str(candidate_id), "candidate"),
            {"stage": Stage.DRAFT.value},
        )
        await self.publish_event("application.candidate_approved", application)
        return application

    async def candidate_decline(
        self,
        application_id: uuid.UUID,
        candidate_id: uuid.UUID,
        reason: str | None = None,
        notes: str | None = None,
    ) -> Application:
        application = await self._get_proposal_for(application_id, candidate_id, Stage.REJECTED)
        await self._commit_change(
            application,
            "candidate_declined",
            Actor(str(candidate_id), "candidate"),
            {
                "stage": Stage.REJECTED.value,
                "decline_reason": reason,
                "decline_notes": notes,
            },
            {"reason": reason, "notes": notes},
        )
        await self.publish_event(
            "application.candidate_declined",
            application,
            decline_reason=reason,
            decline_notes=notes,
        )
        return application

    # ── Draft and AI review ───────────────────────────────────────────────

    async def complete_draft(self, application_id: uuid.UUID, user_id: str) -> Application:
        application = await self.get_application(application_id)
        if application.stage != Stage.DRAFT.value:
            raise InvalidTransitionError(
                application.stage,
                Stage.AI_REVIEW.value,
                f"Cannot complete draft, application is in {application.stage} stage",
            )
        check_strict_transition(application.stage, Stage.AI_REVIEW.value)
        await self._commit_change(
            application,
            "stage_changed",
            Actor(user_id, "candidate"),
            {"stage": Stage.AI_REVIEW.value},
            {"reason": "Application draft completed"},
        )
        # Scoring runs elsewhere and reports back through handle_ai_review_completed
        await self.publish_event("application.draft_completed", application)
        return application

    async def handle_ai_review_completed(
        self, application_id: uuid.UUID, fit_score: float | None
    ) -> Application:
        application = await self.get_application(application_id)
        if application.stage != Stage.AI_REVIEW.value:
            # Duplicate or late callback
            logger.info(
                "Ignoring AI review result for application %s in stage %s",
                application.id,
                application.stage,
            )
            return application

        target = Stage.SCREEN if application.recruiter_id else Stage.SUBMITTED
        check_strict_transition(application.stage, target.value)
        await self._commit_change(
            application,
            "stage_changed",
            Actor.system(),
            {"stage": target.value, "ai_reviewed": True, "ai_fit_score": fit_score},
            {"reason": "AI review completed"},
        )
        await self.publish_event(
            "application.stage_changed",
            application,
            old_stage=Stage.AI_REVIEW.value,
            new_stage=target.value,
            ai_fit_score=fit_score,
        )
        return application

    # ── Recruiter and company actions ─────────────────────────────────────

    async def recruiter_submit(
        self,
        application_id: uuid.UUID,
        recruiter_id: str,
        recruiter_notes: str | None = None,
    ) -> Application:
        application = await self.get_application(application_id)
        if application.stage != Stage.SCREEN.value:
            raise InvalidTransitionError(
                application.stage,
                Stage.SUBMITTED.value,
                "Application must be in screen stage to submit to company",
            )
        if application.recruiter_id != recruiter_id:
            raise OwnershipConflictError(
                "Recruiter does not own this application",
                {"application_id": str(application.id)},
            )
        check_strict_transition(application.stage, Stage.SUBMITTED.value)

        changes: dict = {"stage": Stage.SUBMITTED.value}
        if recruiter_notes:
            changes["recruiter_notes"] = append_note(application.recruiter_notes, recruiter_notes)
        await self._commit_change(
            application, "submitted_to_company", Actor(recruiter_id, "recruiter"), changes
        )

        candidate = await self.db.get(Candidate, application.candidate_id)
        await self.publish_event(
            "application.submitted_to_company",
            application,
            candidate_user_id=candidate.user_id if candidate else None,
        )
        return application

    def prepare_stage_change(
        self,
        application: Application,
        new_stage: str,
        actor: Actor | None,
        notes: str | None = None,
    ) -> str:
        """Validate a pipeline move and stage it with its audit entry.

        Returns the previous stage. The caller commits.
        """
        target = check_pipeline_transition(application.stage, new_stage)
        changes: dict = {"stage": target.value}
        if notes:
            changes["notes"] = notes
        old = self.stage_change(
            application,
            "stage_changed",
            actor,
            changes,
            {"job_id": application.job_id, "candidate_id": application.candidate_id, "notes": notes},
        )
        return old["stage"]

    async def change_stage(
        self,
        application_id: uuid.UUID,
        new_stage: str,
        notes: str | None = None,
        actor: Actor | None = None,
    ) -> Application:
        """Company-driven pipeline move: forward only, or off to rejected."""
        application = await self.get_application(application_id)
        target = check_pipeline_transition(application.stage, new_stage)
        if target == Stage.HIRED and application.recruiter_id:
            raise BusinessRuleError(
                "Represented hires must be recorded through the placement lifecycle",
                {"application_id": str(application.id)},
            )

        old_stage = self.prepare_stage_change(application, target.value, actor, notes)
        await self.db.commit()
        await self.db.refresh(application)
        logger.info("Application %s stage_changed: %s -> %s", application.id, old_stage, target.value)

        await self.publish_event(
            "application.stage_changed",
            application,
            old_stage=old_stage,
            new_stage=target.value,
        )
        return application

    async def accept_application(
        self, application_id: uuid.UUID, actor: Actor | None = None
    ) -> Application:
        """Company acceptance unlocks full candidate detail. Repeat calls are no-ops."""
        application = await self.get_application(application_id)
        if application.accepted_by_company:
            return application

        await self._commit_change(
            application,
            "accepted",
            actor,
            {"accepted_by_company": True, "accepted_at": utcnow()},
            {"stage": application.stage},
        )
        await self.publish_event(
            "application.accepted",
            application,
            accepted_by_user_id=actor.user_id if actor else None,
            accepted_at=application.accepted_at,
        )
        return application

    async def withdraw(
        self,
        application_id: uuid.UUID,
        candidate_id: uuid.UUID,
        reason: str | None = None,
    ) -> Application:
        application = await self.get_application(application_id)
        if str(application.candidate_id) != str(candidate_id):
            raise OwnershipConflictError("You can only withdraw your own applications")
        if application.stage == Stage.WITHDRAWN.value:
            raise InvalidTransitionError(
                application.stage, Stage.WITHDRAWN.value, "Application is already withdrawn"
            )
        if application.stage == Stage.REJECTED.value:
            raise InvalidTransitionError(
                application.stage, Stage.WITHDRAWN.value, "Cannot withdraw a rejected application"
            )
        check_strict_transition(application.stage, Stage.WITHDRAWN.value)

        candidate = await self._get_candidate(application.candidate_id)
        reason = reason or "Candidate withdrew application"
        old = await self._commit_change(
            application,
            "withdrawn",
            Actor(candidate.user_id or str(candidate.id), "candidate"),
            {"stage": Stage.WITHDRAWN.value},
            {"reason": reason},
        )
        await self.publish_event(
            "application.withdrawn",
            application,
            candidate_user_id=candidate.user_id,
            reason=reason,
            previous_stage=old["stage"],
        )
        return application

    async def request_prescreen(
        self,
        application_id: uuid.UUID,
        company_id: str,
        requested_by: str,
        recruiter_id: str | None = None,
        message: str | None = None,
    ) -> Application:
        """Company asks for a recruiter screen on a direct application.

        Without ``recruiter_id`` the application waits at ``screen`` for
        assignment outside this engine.
        """
        application = await self.get_application(application_id)
        job = await self._get_job(application.job_id)
        if job.company_id != company_id:
            raise OwnershipConflictError(
                "Cannot request pre-screen for an application to another company's job"
            )
        if application.recruiter_id:
            raise BusinessRuleError(
                "Application already has a recruiter assigned",
                {"recruiter_id": application.recruiter_id},
            )
        if application.stage != Stage.SUBMITTED.value:
            raise InvalidTransitionError(
                application.stage,
                Stage.SCREEN.value,
                f"Cannot request pre-screen for application in {application.stage} stage",
            )
        check_strict_transition(application.stage, Stage.SCREEN.value)

        auto_assign = not recruiter_id
        await self._commit_change(
            application,
            "prescreen_requested",
            Actor(requested_by, "company", company_id),
            {"stage": Stage.SCREEN.value, "recruiter_id": recruiter_id},
            {"message": message, "auto_assign": auto_assign},
        )
        await self.publish_event(
            "application.prescreen_requested",
            application,
            requested_by_user_id=requested_by,
            message=message,
            auto_assign=auto_assign,
        )
        return application

    async def add_note(
        self, application_id: uuid.UUID, note: str, actor: Actor | None = None
    ) -> Application:
        application = await self.get_application(application_id)
        if is_terminal(application.stage):
            raise BusinessRuleError(
                f"Application is {application.stage} and its notes are closed",
                {"stage": application.stage},
            )
        await self._commit_change(
            application,
            "note_added",
            actor,
            {"recruiter_notes": append_note(application.recruiter_notes, note)},
            {"note": note},
        )
        return application
