"""Placement lifecycle and fee-split API."""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, HTTPException, Query

from ..models.placement import Placement, PlacementCollaborator
from ..schemas.placement import (
    CollaboratorCreate,
    HireRecord,
    PlacementActivate,
    PlacementComplete,
    PlacementFail,
    ReplacementLink,
    SplitRecommendationRequest,
)
from ..services.collaboration_svc import PlacementCollaborationService
from ..services.placement_svc import PlacementLifecycleService, is_within_guarantee
from .deps import Caller, get_caller, get_collaboration, get_placements, require_role

router = APIRouter(tags=["placements"])


def _iso(value):
    return value.isoformat() if value else None


def _placement_dict(p: Placement) -> dict:
    return {
        "id": str(p.id),
        "application_id": str(p.application_id),
        "job_id": str(p.job_id),
        "candidate_id": str(p.candidate_id),
        "company_id": p.company_id,
        "recruiter_id": p.recruiter_id,
        "state": p.state,
        "salary": p.salary,
        "fee_percentage": p.fee_percentage,
        "fee_amount": p.fee_amount,
        "recruiter_share": p.recruiter_share,
        "platform_share": p.platform_share,
        "hired_at": _iso(p.hired_at),
        "start_date": _iso(p.start_date),
        "end_date": _iso(p.end_date),
        "guarantee_days": p.guarantee_days,
        "guarantee_expires_at": _iso(p.guarantee_expires_at),
        "within_guarantee": is_within_guarantee(p),
        "failed_at": _iso(p.failed_at),
        "failure_reason": p.failure_reason,
        "replacement_placement_id": str(p.replacement_placement_id) if p.replacement_placement_id else None,
        "allocated_split_percentage": p.allocated_split_percentage,
    }


def _collaborator_dict(c: PlacementCollaborator) -> dict:
    return {
        "id": str(c.id),
        "placement_id": str(c.placement_id),
        "recruiter_id": c.recruiter_id,
        "role": c.role,
        "split_percentage": c.split_percentage,
        "split_amount": c.split_amount,
        "notes": c.notes,
    }


async def _placement_for(
    placements: PlacementLifecycleService, placement_id: uuid.UUID, caller: Caller
) -> Placement:
    placement = await placements.get_placement(placement_id)
    if caller.role == "company":
        allowed = placement.company_id == caller.entity_id
    elif caller.role == "recruiter":
        allowed = placement.recruiter_id == caller.entity_id
    elif caller.role == "candidate":
        allowed = str(placement.candidate_id) == caller.entity_id
    else:
        allowed = True
    if not allowed:
        raise HTTPException(status_code=403, detail="Placement belongs to another party")
    return placement


# ── Placements ────────────────────────────────────────────────────────────

@router.post("/placements", status_code=201)
async def record_hire(
    data: HireRecord,
    caller: Caller = Depends(get_caller),
    placements: PlacementLifecycleService = Depends(get_placements),
):
    require_role(caller, "company", "admin")
    application = await placements.workflow.get_application(data.application_id)
    if caller.role == "company" and application.company_id != caller.entity_id:
        raise HTTPException(status_code=403, detail="Application belongs to another company")
    placement = await placements.record_hire(
        data.application_id,
        data.salary,
        fee_percentage=data.fee_percentage,
        actor=caller.actor,
    )
    return _placement_dict(placement)


@router.get("/placements")
async def list_placements(
    state: str = Query(default="active", pattern="^(hired|active|completed|failed)$"),
    caller: Caller = Depends(get_caller),
    placements: PlacementLifecycleService = Depends(get_placements),
):
    require_role(caller, "admin")
    return [_placement_dict(p) for p in await placements.list_by_state(state)]


@router.get("/placements/expiring")
async def list_expiring(
    days: int = Query(default=30, ge=1, le=365),
    caller: Caller = Depends(get_caller),
    placements: PlacementLifecycleService = Depends(get_placements),
):
    require_role(caller, "admin")
    return [_placement_dict(p) for p in await placements.list_expiring_guarantees(days)]


@router.post("/placements/splits/recommend")
async def recommend_splits(
    data: SplitRecommendationRequest,
    caller: Caller = Depends(get_caller),
    collaboration: PlacementCollaborationService = Depends(get_collaboration),
):
    return collaboration.calculate_recommended_splits(
        data.total_recruiter_share,
        [r.model_dump() for r in data.roles],
    )


@router.get("/placements/{placement_id}")
async def get_placement(
    placement_id: uuid.UUID,
    caller: Caller = Depends(get_caller),
    placements: PlacementLifecycleService = Depends(get_placements),
):
    return _placement_dict(await _placement_for(placements, placement_id, caller))


@router.post("/placements/{placement_id}/activate")
async def activate_placement(
    placement_id: uuid.UUID,
    data: PlacementActivate,
    caller: Caller = Depends(get_caller),
    placements: PlacementLifecycleService = Depends(get_placements),
):
    require_role(caller, "company", "admin")
    await _placement_for(placements, placement_id, caller)
    return _placement_dict(await placements.activate(placement_id, data.start_date))


@router.post("/placements/{placement_id}/complete")
async def complete_placement(
    placement_id: uuid.UUID,
    data: PlacementComplete,
    caller: Caller = Depends(get_caller),
    placements: PlacementLifecycleService = Depends(get_placements),
):
    require_role(caller, "company", "admin")
    await _placement_for(placements, placement_id, caller)
    return _placement_dict(await placements.complete(placement_id, data.end_date))


@router.post("/placements/{placement_id}/fail")
async def fail_placement(
    placement_id: uuid.UUID,
    data: PlacementFail,
    caller: Caller = Depends(get_caller),
    placements: PlacementLifecycleService = Depends(get_placements),
):
    require_role(caller, "company", "admin")
    await _placement_for(placements, placement_id, caller)
    return _placement_dict(await placements.fail(placement_id, data.reason))


@router.post("/placements/{placement_id}/replacement-request")
async def request_replacement(
    placement_id: uuid.UUID,
    caller: Caller = Depends(get_caller),
    placements: PlacementLifecycleService = Depends(get_placements),
):
    require_role(caller, "company", "admin")
    await _placement_for(placements, placement_id, caller)
    return _placement_dict(await placements.request_replacement(placement_id))


@router.post("/placements/{placement_id}/replacement")
async def link_replacement(
    placement_id: uuid.UUID,
    data: ReplacementLink,
    caller: Caller = Depends(get_caller),
    placements: PlacementLifecycleService = Depends(get_placements),
):
    require_role(caller, "admin")
    replacement = await placements.link_replacement(placement_id, data.replacement_placement_id)
    return _placement_dict(replacement)


# ── Collaborators ─────────────────────────────────────────────────────────

@router.get("/placements/{placement_id}/collaborators")
async def list_collaborators(
    placement_id: uuid.UUID,
    caller: Caller = Depends(get_caller),
    collaboration: PlacementCollaborationService = Depends(get_collaboration),
    placements: PlacementLifecycleService = Depends(get_placements),
):
    await _placement_for(placements, placement_id, caller)
    return [_collaborator_dict(c) for c in await collaboration.list_collaborators(placement_id)]


@router.post("/placements/{placement_id}/collaborators", status_code=201)
async def add_collaborator(
    placement_id: uuid.UUID,
    data: CollaboratorCreate,
    caller: Caller = Depends(get_caller),
    collaboration: PlacementCollaborationService = Depends(get_collaboration),
    placements: PlacementLifecycleService = Depends(get_placements),
):
    require_role(caller, "recruiter", "admin")
    await _placement_for(placements, placement_id, caller)
    collaborator = await collaboration.add_collaborator(
        placement_id,
        data.recruiter_id,
        data.role,
        data.split_percentage,
        split_amount=data.split_amount,
        notes=data.notes,
    )
    return _collaborator_dict(collaborator)


@router.get("/collaborations")
async def list_my_collaborations(
    caller: Caller = Depends(get_caller),
    collaboration: PlacementCollaborationService = Depends(get_collaboration),
):
    require_role(caller, "recruiter")
    items = await collaboration.list_recruiter_collaborations(caller.entity_id)
    return [_collaborator_dict(c) for c in items]
