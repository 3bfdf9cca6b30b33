"""Candidate sourcing and outreach API."""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query

from ..models.candidate import CandidateOutreach, CandidateSourcer
from ..schemas.candidate import OutreachCreate, OutreachEngagement, SourceRequest
from ..services.ownership_svc import CandidateOwnershipService, is_protected
from .deps import Caller, get_caller, get_ownership, require_role

router = APIRouter(tags=["candidates"])


def _sourcer_dict(s: CandidateSourcer | None) -> dict | None:
    if s is None:
        return None
    return {
        "id": str(s.id),
        "candidate_id": str(s.candidate_id),
        "sourcer_id": s.sourcer_id,
        "sourcer_type": s.sourcer_type,
        "sourced_at": s.sourced_at.isoformat(),
        "protection_window_days": s.protection_window_days,
        "protection_expires_at": s.protection_expires_at.isoformat(),
        "is_protected": is_protected(s),
        "notes": s.notes,
    }


def _outreach_dict(o: CandidateOutreach) -> dict:
    return {
        "id": str(o.id),
        "candidate_id": str(o.candidate_id),
        "recruiter_id": o.recruiter_id,
        "job_id": str(o.job_id) if o.job_id else None,
        "sent_at": o.sent_at.isoformat(),
        "email_subject": o.email_subject,
        "opened_at": o.opened_at.isoformat() if o.opened_at else None,
        "clicked_at": o.clicked_at.isoformat() if o.clicked_at else None,
        "replied_at": o.replied_at.isoformat() if o.replied_at else None,
        "unsubscribed_at": o.unsubscribed_at.isoformat() if o.unsubscribed_at else None,
        "bounced": o.bounced,
    }


@router.get("/sourcers")
async def list_sourcers(
    status: str = Query(default="active", pattern="^(active|expired|all)$"),
    caller: Caller = Depends(get_caller),
    ownership: CandidateOwnershipService = Depends(get_ownership),
):
    require_role(caller, "admin")
    return [_sourcer_dict(s) for s in await ownership.list_sourcers(status)]


@router.post("/candidates/{candidate_id}/source", status_code=201)
async def source_candidate(
    candidate_id: uuid.UUID,
    data: SourceRequest,
    caller: Caller = Depends(get_caller),
    ownership: CandidateOwnershipService = Depends(get_ownership),
):
    require_role(caller, "recruiter", "admin")
    if caller.role == "admin":
        sourcer_id, sourcer_type = "platform", "platform"
    else:
        sourcer_id, sourcer_type = caller.entity_id, data.sourcer_type
    sourcer = await ownership.source_candidate(
        candidate_id,
        sourcer_id,
        sourcer_type=sourcer_type,
        protection_window_days=data.protection_window_days,
        notes=data.notes,
    )
    return _sourcer_dict(sourcer)


@router.get("/candidates/{candidate_id}/sourcer")
async def get_sourcer(
    candidate_id: uuid.UUID,
    caller: Caller = Depends(get_caller),
    ownership: CandidateOwnershipService = Depends(get_ownership),
):
    return {"sourcer": _sourcer_dict(await ownership.get_candidate_sourcer(candidate_id))}


@router.get("/candidates/{candidate_id}/can-work-with")
async def can_work_with(
    candidate_id: uuid.UUID,
    caller: Caller = Depends(get_caller),
    ownership: CandidateOwnershipService = Depends(get_ownership),
):
    require_role(caller, "recruiter")
    allowed = await ownership.can_work_with(candidate_id, caller.entity_id)
    return {"candidate_id": str(candidate_id), "can_work_with": allowed}


@router.post("/candidates/{candidate_id}/outreach", status_code=201)
async def record_outreach(
    candidate_id: uuid.UUID,
    data: OutreachCreate,
    caller: Caller = Depends(get_caller),
    ownership: CandidateOwnershipService = Depends(get_ownership),
):
    require_role(caller, "recruiter")
    outreach = await ownership.record_outreach(
        candidate_id,
        caller.entity_id,
        data.email_subject,
        data.email_body,
        job_id=data.job_id,
    )
    return _outreach_dict(outreach)


@router.get("/candidates/{candidate_id}/outreach")
async def list_candidate_outreach(
    candidate_id: uuid.UUID,
    caller: Caller = Depends(get_caller),
    ownership: CandidateOwnershipService = Depends(get_ownership),
):
    require_role(caller, "recruiter", "admin")
    return [_outreach_dict(o) for o in await ownership.list_candidate_outreach(candidate_id)]


@router.get("/outreach")
async def list_my_outreach(
    caller: Caller = Depends(get_caller),
    ownership: CandidateOwnershipService = Depends(get_ownership),
):
    require_role(caller, "recruiter")
    return [_outreach_dict(o) for o in await ownership.list_recruiter_outreach(caller.entity_id)]


@router.patch("/outreach/{outreach_id}")
async def update_engagement(
    outreach_id: uuid.UUID,
    data: OutreachEngagement,
    caller: Caller = Depends(get_caller),
    ownership: CandidateOwnershipService = Depends(get_ownership),
):
    require_role(caller, "system", "admin")
    outreach = await ownership.update_outreach_engagement(
        outreach_id, **data.model_dump(exclude_unset=True)
    )
    return _outreach_dict(outreach)
