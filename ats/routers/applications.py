"""Application workflow API."""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from ..database import get_db
from ..models.application import Application, ApplicationAuditLog
from ..schemas.application import (
    AIReviewResult,
    ApplicationSubmit,
    JobProposal,
    NoteCreate,
    PrescreenRequest,
    ProposalDecline,
    RecruiterSubmit,
    StageChange,
    Withdrawal,
)
from ..services import audit_svc
from ..services.application_svc import ApplicationWorkflow
from .deps import Caller, get_caller, get_workflow, require_role

router = APIRouter(prefix="/applications", tags=["applications"])


def _application_dict(a: Application) -> dict:
    return {
        "id": str(a.id),
        "candidate_id": str(a.candidate_id),
        "job_id": str(a.job_id),
        "company_id": a.company_id,
        "recruiter_id": a.recruiter_id,
        "stage": a.stage,
        "accepted_by_company": a.accepted_by_company,
        "accepted_at": a.accepted_at.isoformat() if a.accepted_at else None,
        "notes": a.notes,
        "recruiter_notes": a.recruiter_notes,
        "ai_reviewed": a.ai_reviewed,
        "ai_fit_score": a.ai_fit_score,
        "action_due_date": a.action_due_date.isoformat() if a.action_due_date else None,
        "decline_reason": a.decline_reason,
        "created_at": a.created_at.isoformat() if a.created_at else None,
        "updated_at": a.updated_at.isoformat() if a.updated_at else None,
    }


def _audit_dict(e: ApplicationAuditLog) -> dict:
    return {
        "id": str(e.id),
        "application_id": str(e.application_id),
        "action": e.action,
        "performed_by_user_id": e.performed_by_user_id,
        "performed_by_role": e.performed_by_role,
        "company_id": e.company_id,
        "old_value": e.old_value,
        "new_value": e.new_value,
        "metadata": e.metadata_json,
        "created_at": e.created_at.isoformat() if e.created_at else None,
    }


async def _company_application(
    workflow: ApplicationWorkflow, application_id: uuid.UUID, caller: Caller
) -> Application:
    application = await workflow.get_application(application_id)
    if caller.role == "company" and application.company_id != caller.entity_id:
        raise HTTPException(status_code=403, detail="Application belongs to another company")
    return application


async def _readable_application(
    workflow: ApplicationWorkflow, application_id: uuid.UUID, caller: Caller
) -> Application:
    application = await workflow.get_application(application_id)
    if caller.role == "candidate":
        allowed = str(application.candidate_id) == caller.entity_id
    elif caller.role == "recruiter":
        allowed = application.recruiter_id == caller.entity_id
    elif caller.role == "company":
        allowed = application.company_id == caller.entity_id
    else:
        allowed = True
    if not allowed:
        raise HTTPException(status_code=403, detail="Application is not visible to this caller")
    return application


# ── Reads ─────────────────────────────────────────────────────────────────

@router.get("")
async def list_applications(
    candidate_id: uuid.UUID | None = None,
    job_id: uuid.UUID | None = None,
    stage: str | None = None,
    limit: int = 100,
    caller: Caller = Depends(get_caller),
    workflow: ApplicationWorkflow = Depends(get_workflow),
):
    filters: dict = {"candidate_id": candidate_id, "job_id": job_id, "stage": stage}
    if caller.role == "recruiter":
        filters["recruiter_id"] = caller.entity_id
    elif caller.role == "company":
        filters["company_id"] = caller.entity_id
    elif caller.role == "candidate":
        filters["candidate_id"] = uuid.UUID(caller.entity_id)
    applications = await workflow.list_applications(limit=min(limit, 500), **filters)
    return [_application_dict(a) for a in applications]


@router.get("/pending")
async def list_pending_screens(
    caller: Caller = Depends(get_caller),
    workflow: ApplicationWorkflow = Depends(get_workflow),
):
    require_role(caller, "recruiter")
    applications = await workflow.list_pending_for_recruiter(caller.entity_id)
    return [_application_dict(a) for a in applications]


@router.get("/opportunities")
async def list_opportunities(
    caller: Caller = Depends(get_caller),
    workflow: ApplicationWorkflow = Depends(get_workflow),
):
    require_role(caller, "candidate")
    applications = await workflow.list_pending_opportunities(uuid.UUID(caller.entity_id))
    return [_application_dict(a) for a in applications]


@router.get("/company-audit")
async def company_audit_log(
    limit: int = 100,
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db),
):
    require_role(caller, "company")
    entries = await audit_svc.list_company_audit_log(db, caller.entity_id, limit=min(limit, 500))
    return [_audit_dict(e) for e in entries]


@router.get("/{application_id}")
async def get_application(
    application_id: uuid.UUID,
    workflow: ApplicationWorkflow = Depends(get_workflow),
    caller: Caller = Depends(get_caller),
):
    application = await _readable_application(workflow, application_id, caller)
    data = _application_dict(application)
    if caller.role == "company" and not application.accepted_by_company:
        # Candidate notes stay hidden until the company accepts
        data["notes"] = None
    return data


@router.get("/{application_id}/audit")
async def get_audit_log(
    application_id: uuid.UUID,
    caller: Caller = Depends(get_caller),
    workflow: ApplicationWorkflow = Depends(get_workflow),
):
    require_role(caller, "company", "recruiter", "admin")
    await _readable_application(workflow, application_id, caller)
    entries = await workflow.get_audit_log(application_id)
    return [_audit_dict(e) for e in entries]


# ── Submission and proposals ──────────────────────────────────────────────

@router.post("", status_code=201)
async def submit_application(
    data: ApplicationSubmit,
    caller: Caller = Depends(get_caller),
    workflow: ApplicationWorkflow = Depends(get_workflow),
):
    require_role(caller, "candidate", "admin")
    if caller.role == "candidate" and str(data.candidate_id) != caller.entity_id:
        raise HTTPException(status_code=403, detail="Candidates can only apply for themselves")
    application = await workflow.submit_application(
        data.candidate_id,
        data.job_id,
        notes=data.notes,
        candidate_user_id=caller.user_id if caller.role == "candidate" else None,
    )
    return _application_dict(application)


@router.post("/propose", status_code=201)
async def propose_job(
    data: JobProposal,
    caller: Caller = Depends(get_caller),
    workflow: ApplicationWorkflow = Depends(get_workflow),
):
    require_role(caller, "recruiter")
    application = await workflow.propose_job(
        caller.entity_id, data.candidate_id, data.job_id, pitch=data.pitch
    )
    return _application_dict(application)


@router.post("/{application_id}/approve")
async def approve_proposal(
    application_id: uuid.UUID,
    caller: Caller = Depends(get_caller),
    workflow: ApplicationWorkflow = Depends(get_workflow),
):
    require_role(caller, "candidate")
    application = await workflow.candidate_approve(application_id, uuid.UUID(caller.entity_id))
    return _application_dict(application)


@router.post("/{application_id}/decline")
async def decline_proposal(
    application_id: uuid.UUID,
    data: ProposalDecline,
    caller: Caller = Depends(get_caller),
    workflow: ApplicationWorkflow = Depends(get_workflow),
):
    require_role(caller, "candidate")
    application = await workflow.candidate_decline(
        application_id, uuid.UUID(caller.entity_id), reason=data.reason, notes=data.notes
    )
    return _application_dict(application)


# ── Draft and AI review ───────────────────────────────────────────────────

@router.post("/{application_id}/complete-draft")
async def complete_draft(
    application_id: uuid.UUID,
    caller: Caller = Depends(get_caller),
    workflow: ApplicationWorkflow = Depends(get_workflow),
):
    require_role(caller, "candidate", "admin")
    if caller.role == "candidate":
        application = await workflow.get_application(application_id)
        if str(application.candidate_id) != caller.entity_id:
            raise HTTPException(status_code=403, detail="Not your application")
    application = await workflow.complete_draft(application_id, caller.user_id)
    return _application_dict(application)


@router.post("/{application_id}/ai-review")
async def ai_review_completed(
    application_id: uuid.UUID,
    data: AIReviewResult,
    caller: Caller = Depends(get_caller),
    workflow: ApplicationWorkflow = Depends(get_workflow),
):
    require_role(caller, "system", "admin")
    application = await workflow.handle_ai_review_completed(application_id, data.fit_score)
    return _application_dict(application)


# ── Recruiter and company actions ─────────────────────────────────────────

@router.post("/{application_id}/submit")
async def recruiter_submit(
    application_id: uuid.UUID,
    data: RecruiterSubmit,
    caller: Caller = Depends(get_caller),
    workflow: ApplicationWorkflow = Depends(get_workflow),
):
    require_role(caller, "recruiter")
    application = await workflow.recruiter_submit(
        application_id, caller.entity_id, recruiter_notes=data.recruiter_notes
    )
    return _application_dict(application)


@router.post("/{application_id}/stage")
async def change_stage(
    application_id: uuid.UUID,
    data: StageChange,
    caller: Caller = Depends(get_caller),
    workflow: ApplicationWorkflow = Depends(get_workflow),
):
    require_role(caller, "company", "recruiter", "admin")
    application = await _company_application(workflow, application_id, caller)
    if caller.role == "recruiter" and application.recruiter_id != caller.entity_id:
        raise HTTPException(status_code=403, detail="Recruiter does not own this application")
    application = await workflow.change_stage(
        application_id, data.stage, notes=data.notes, actor=caller.actor
    )
    return _application_dict(application)


@router.post("/{application_id}/accept")
async def accept_application(
    application_id: uuid.UUID,
    caller: Caller = Depends(get_caller),
    workflow: ApplicationWorkflow = Depends(get_workflow),
):
    require_role(caller, "company", "admin")
    await _company_application(workflow, application_id, caller)
    application = await workflow.accept_application(application_id, actor=caller.actor)
    return _application_dict(application)


@router.post("/{application_id}/withdraw")
async def withdraw_application(
    application_id: uuid.UUID,
    data: Withdrawal,
    caller: Caller = Depends(get_caller),
    workflow: ApplicationWorkflow = Depends(get_workflow),
):
    require_role(caller, "candidate")
    application = await workflow.withdraw(
        application_id, uuid.UUID(caller.entity_id), reason=data.reason
    )
    return _application_dict(application)


@router.post("/{application_id}/prescreen")
async def request_prescreen(
    application_id: uuid.UUID,
    data: PrescreenRequest,
    caller: Caller = Depends(get_caller),
    workflow: ApplicationWorkflow = Depends(get_workflow),
):
    require_role(caller, "company")
    application = await workflow.request_prescreen(
        application_id,
        caller.entity_id,
        caller.user_id,
        recruiter_id=data.recruiter_id,
        message=data.message,
    )
    return _application_dict(application)


@router.post("/{application_id}/notes")
async def add_note(
    application_id: uuid.UUID,
    data: NoteCreate,
    caller: Caller = Depends(get_caller),
    workflow: ApplicationWorkflow = Depends(get_workflow),
):
    require_role(caller, "company", "recruiter", "admin")
    await _readable_application(workflow, application_id, caller)
    application = await workflow.add_note(application_id, data.note, actor=caller.actor)
    return _application_dict(application)
