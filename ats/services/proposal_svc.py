"""Proposal view: read-only projection of applications into pending actions.

A proposal answers three questions for the caller: what kind of thing is
this, who has to move next, and how soon. Nothing here writes.
"""

from __future__ import annotations

import logging
import math
import uuid
from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import EnginePolicy
from ..directory import DatabaseRecruiterDirectory, RecruiterDirectory
from ..engine.clock import as_utc, utcnow
from ..engine.stages import TERMINAL_STAGES, ApplicationStage
from ..models.application import Application
from ..models.candidate import Candidate
from ..models.job import Job
from ..models.recruiter import Recruiter

logger = logging.getLogger(__name__)

S = ApplicationStage

PROPOSAL_TYPES = (
    "job_opportunity",
    "direct_application",
    "application_screen",
    "application_review",
    "interview_invitation",
    "job_offer",
)

# Who must move next, by stage
PENDING_PARTY = {
    S.RECRUITER_PROPOSED: "candidate",
    S.DRAFT: "candidate",
    S.AI_REVIEW: "system",
    S.SCREEN: "recruiter",
    S.SUBMITTED: "company",
    S.INTERVIEW: "company",
    S.OFFER: "candidate",
}

PENDING_ACTION = {
    S.RECRUITER_PROPOSED: "respond_to_opportunity",
    S.DRAFT: "complete_application",
    S.AI_REVIEW: "await_ai_review",
    S.SCREEN: "conduct_screen",
    S.SUBMITTED: "review_application",
    S.INTERVIEW: "schedule_interview",
    S.OFFER: "respond_to_offer",
}

HUMAN_PARTIES = ("candidate", "recruiter", "company")

STATUS_BADGES = {
    S.RECRUITER_PROPOSED: ("Pending Response", "warning", "clock"),
    S.DRAFT: ("In Progress", "info", "pencil"),
    S.AI_REVIEW: ("AI Reviewing", "info", "robot"),
    S.SCREEN: ("Screening", "info", "phone"),
    S.SUBMITTED: ("Under Review", "info", "eye"),
    S.INTERVIEW: ("Interview Stage", "info", "calendar"),
    S.OFFER: ("Offer Extended", "success", "handshake"),
    S.HIRED: ("Hired", "success", "check-circle"),
    S.REJECTED: ("Declined", "error", "times-circle"),
    S.WITHDRAWN: ("Withdrawn", "neutral", "ban"),
}

ACTION_LABELS = {
    "job_opportunity": "Review Opportunity",
    "application_screen": "Conduct Screen",
    "application_review": "Review Application",
    "interview_invitation": "Schedule Interview",
    "job_offer": "Review Offer",
}

LIST_STATES = ("actionable", "waiting", "completed")
MAX_PAGE_SIZE = 100


@dataclass
class StatusBadge:
    text: str
    color: str
    icon: str


@dataclass
class Proposal:
    id: uuid.UUID
    type: str
    stage: str
    candidate_id: uuid.UUID
    candidate_name: str
    job_id: uuid.UUID
    job_title: str
    company_id: str | None
    recruiter_id: str | None
    recruiter_name: str | None
    pending_action_by: str
    pending_action_type: str
    can_current_user_act: bool
    action_due_date: datetime | None
    expires_at: datetime | None
    is_urgent: bool
    is_overdue: bool
    hours_remaining: float | None
    status_badge: StatusBadge
    action_label: str
    subtitle: str
    proposal_notes: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def is_completed(self) -> bool:
        return ApplicationStage(self.stage) in TERMINAL_STAGES


@dataclass
class ProposalFilters:
    state: str | None = None  # actionable/waiting/completed
    type: str | None = None
    urgent_only: bool = False
    sort_by: str = "created_at"  # created_at/urgency
    page: int = 1
    limit: int = 25


@dataclass
class ProposalSummary:
    actionable_count: int = 0
    waiting_count: int = 0
    urgent_count: int = 0
    overdue_count: int = 0


@dataclass
class ProposalPage:
    data: list[Proposal]
    total: int
    page: int
    limit: int
    total_pages: int
    summary: ProposalSummary = field(default_factory=ProposalSummary)


def proposal_type(stage: str, has_recruiter: bool) -> str:
    stage = ApplicationStage(stage)
    if stage == S.RECRUITER_PROPOSED:
        return "job_opportunity"
    if stage in (S.AI_REVIEW, S.SCREEN):
        return "application_screen"
    if stage == S.INTERVIEW:
        return "interview_invitation"
    if stage == S.OFFER:
        return "job_offer"
    if stage == S.DRAFT:
        return "direct_application"
    # submitted and the terminal stages
    return "application_review" if has_recruiter else "direct_application"


def pending_party(stage: str) -> str:
    return PENDING_PARTY.get(ApplicationStage(stage), "none")


def pending_action(stage: str) -> str:
    return PENDING_ACTION.get(ApplicationStage(stage), "none")


def urgency(
    due: datetime | None, now: datetime, urgent_window_hours: int = 24
) -> tuple[bool, bool, float | None]:
    """Return (is_urgent, is_overdue, hours_remaining) for a deadline."""
    due = as_utc(due)
    if due is None:
        return False, False, None
    hours = (due - now).total_seconds() / 3600
    is_overdue = hours < 0
    is_urgent = 0 <= hours < urgent_window_hours
    return is_urgent, is_overdue, max(0.0, hours)


def status_badge(stage: str) -> StatusBadge:
    text, color, icon = STATUS_BADGES.get(ApplicationStage(stage), (stage, "neutral", "circle"))
    return StatusBadge(text, color, icon)


def action_label(kind: str) -> str:
    return ACTION_LABELS.get(kind, "Take Action")


class ProposalService:
    def __init__(
        self,
        db: AsyncSession,
        policy: EnginePolicy | None = None,
        directory: RecruiterDirectory | None = None,
    ):
        self.db = db
        self.policy = policy or EnginePolicy.from_settings()
        self.directory = directory or DatabaseRecruiterDirectory(db)

    def can_act(self, application: Application, entity_id: str, role: str, party: str) -> bool:
        if role == "admin":
            return party in HUMAN_PARTIES
        if party != role:
            return False
        if party == "candidate":
            return str(application.candidate_id) == str(entity_id)
        if party == "recruiter":
            return application.recruiter_id == entity_id
        if party == "company":
            return application.company_id == entity_id
        return False

    def subtitle(
        self,
        kind: str,
        role: str,
        candidate_name: str,
        recruiter_name: str | None,
        job_title: str,
        company_name: str,
    ) -> str:
        if kind == "job_opportunity":
            return f"From {recruiter_name or 'Recruiter'}"
        if kind == "direct_application":
            return f"Applied by {candidate_name}"
        if kind == "application_screen":
            return f"Screen: {candidate_name}"
        if kind == "application_review":
            if role == "recruiter":
                return f"Submitted to {company_name}"
            return f"From {recruiter_name or candidate_name}"
        if kind == "interview_invitation":
            return f"Interview: {candidate_name}"
        if kind == "job_offer":
            return f"Offer for {job_title}"
        return ""

    def enrich(
        self,
        application: Application,
        entity_id: str,
        role: str,
        now: datetime | None = None,
        *,
        candidate: Candidate | None = None,
        job: Job | None = None,
        recruiter: Recruiter | None = None,
    ) -> Proposal:
        now = now or utcnow()
        kind = proposal_type(application.stage, bool(application.recruiter_id))
        party = pending_party(application.stage)
        is_urgent, is_overdue, hours = urgency(
            application.action_due_date or application.expires_at,
            now,
            self.policy.urgent_window_hours,
        )
        candidate_name = candidate.full_name if candidate else "Candidate"
        recruiter_name = (recruiter.name if recruiter else None) or (
            "Recruiter" if application.recruiter_id else None
        )
        job_title = job.title if job else "Position"

        return Proposal(
            id=application.id,
            type=kind,
            stage=application.stage,
            candidate_id=application.candidate_id,
            candidate_name=candidate_name,
            job_id=application.job_id,
            job_title=job_title,
            company_id=application.company_id,
            recruiter_id=application.recruiter_id,
            recruiter_name=recruiter_name,
            pending_action_by=party,
            pending_action_type=pending_action(application.stage),
            can_current_user_act=self.can_act(application, entity_id, role, party),
            action_due_date=as_utc(application.action_due_date),
            expires_at=as_utc(application.expires_at),
            is_urgent=is_urgent,
            is_overdue=is_overdue,
            hours_remaining=hours,
            status_badge=status_badge(application.stage),
            action_label=action_label(kind),
            subtitle=self.subtitle(kind, role, candidate_name, recruiter_name, job_title, "Company"),
            proposal_notes=application.recruiter_notes or application.notes,
            created_at=as_utc(application.created_at),
            updated_at=as_utc(application.updated_at),
        )

    async def _load_for(self, entity_id: str, role: str) -> list[Application]:
        stmt = select(Application).order_by(Application.created_at.desc())
        if role == "recruiter":
            stmt = stmt.where(Application.recruiter_id == entity_id)
        elif role == "candidate":
            try:
                stmt = stmt.where(Application.candidate_id == uuid.UUID(str(entity_id)))
            except ValueError:
                return []
        elif role == "company":
            stmt = stmt.where(Application.company_id == entity_id)
        elif role != "admin":
            return []
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def _related(self, applications: list[Application]) -> tuple[dict, dict, dict]:
        candidate_ids = {a.candidate_id for a in applications}
        job_ids = {a.job_id for a in applications}
        recruiter_ids = {a.recruiter_id for a in applications if a.recruiter_id}
        candidates, jobs, recruiters = {}, {}, {}
        if candidate_ids:
            rows = await self.db.execute(select(Candidate).where(Candidate.id.in_(candidate_ids)))
            candidates = {c.id: c for c in rows.scalars().all()}
        if job_ids:
            rows = await self.db.execute(select(Job).where(Job.id.in_(job_ids)))
            jobs = {j.id: j for j in rows.scalars().all()}
        if recruiter_ids:
            rows = await self.db.execute(select(Recruiter).where(Recruiter.id.in_(recruiter_ids)))
            recruiters = {r.id: r for r in rows.scalars().all()}
        return candidates, jobs, recruiters

    async def list_for_user(
        self,
        caller_id: str,
        role: str,
        filters: ProposalFilters | None = None,
        now: datetime | None = None,
    ) -> ProposalPage:
        filters = filters or ProposalFilters()
        page = max(1, filters.page)
        limit = max(1, min(filters.limit, MAX_PAGE_SIZE))

        resolution = await self.directory.resolve(caller_id, role)
        if not resolution.is_resolved:
            logger.info("No proposals for %s %s (%s)", role, caller_id, resolution.status)
            return ProposalPage(data=[], total=0, page=page, limit=limit, total_pages=0)

        applications = await self._load_for(resolution.entity_id, role)
        candidates, jobs, recruiters = await self._related(applications)
        now = now or utcnow()
        proposals = [
            self.enrich(
                a,
                resolution.entity_id,
                role,
                now,
                candidate=candidates.get(a.candidate_id),
                job=jobs.get(a.job_id),
                recruiter=recruiters.get(a.recruiter_id),
            )
            for a in applications
        ]

        # Counts cover everything the caller can see, before filters and paging
        summary = ProposalSummary(
            actionable_count=sum(1 for p in proposals if p.can_current_user_act),
            waiting_count=sum(1 for p in proposals if _is_waiting(p)),
            urgent_count=sum(1 for p in proposals if p.is_urgent),
            overdue_count=sum(1 for p in proposals if p.is_overdue),
        )

        filtered = proposals
        if filters.state == "actionable":
            filtered = [p for p in filtered if p.can_current_user_act]
        elif filters.state == "waiting":
            filtered = [p for p in filtered if _is_waiting(p)]
        elif filters.state == "completed":
            filtered = [p for p in filtered if p.is_completed]
        if filters.type:
            filtered = [p for p in filtered if p.type == filters.type]
        if filters.urgent_only:
            filtered = [p for p in filtered if p.is_urgent]
        if filters.sort_by == "urgency":
            filtered = sorted(filtered, key=_urgency_key)

        start = (page - 1) * limit
        return ProposalPage(
            data=filtered[start:start + limit],
            total=len(filtered),
            page=page,
            limit=limit,
            total_pages=math.ceil(len(filtered) / limit),
            summary=summary,
        )

    async def get_actionable(self, caller_id: str, role: str) -> list[Proposal]:
        page = await self.list_for_user(
            caller_id,
            role,
            ProposalFilters(state="actionable", sort_by="urgency", limit=MAX_PAGE_SIZE),
        )
        return page.data

    async def get_waiting(self, caller_id: str, role: str) -> list[Proposal]:
        page = await self.list_for_user(
            caller_id, role, ProposalFilters(state="waiting", limit=MAX_PAGE_SIZE)
        )
        return page.data


def _is_waiting(proposal: Proposal) -> bool:
    return not proposal.can_current_user_act and not proposal.is_completed


def _urgency_key(proposal: Proposal) -> tuple:
    # Overdue first, then soonest deadline, then undated
    if proposal.is_overdue:
        return (0, 0.0)
    if proposal.hours_remaining is not None:
        return (1, proposal.hours_remaining)
    return (2, 0.0)
