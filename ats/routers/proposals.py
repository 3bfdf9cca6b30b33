"""Unified proposal view API."""

from __future__ import annotations

from dataclasses import asdict

from fastapi import APIRouter, Depends, Query

from ..events import to_jsonable
from ..services.proposal_svc import ProposalFilters, ProposalService
from .deps import Identity, get_identity, get_proposals

router = APIRouter(prefix="/proposals", tags=["proposals"])


@router.get("")
async def list_proposals(
    state: str | None = Query(default=None, pattern="^(actionable|waiting|completed)$"),
    type: str | None = None,
    urgent_only: bool = False,
    sort_by: str = Query(default="created_at", pattern="^(created_at|urgency)$"),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=25, ge=1, le=100),
    identity: Identity = Depends(get_identity),
    proposals: ProposalService = Depends(get_proposals),
):
    filters = ProposalFilters(
        state=state,
        type=type,
        urgent_only=urgent_only,
        sort_by=sort_by,
        page=page,
        limit=limit,
    )
    result = await proposals.list_for_user(identity.user_id, identity.role, filters)
    return {
        "data": to_jsonable([asdict(p) for p in result.data]),
        "pagination": {
            "total": result.total,
            "page": result.page,
            "limit": result.limit,
            "total_pages": result.total_pages,
        },
        "summary": asdict(result.summary),
    }


@router.get("/actionable")
async def list_actionable(
    identity: Identity = Depends(get_identity),
    proposals: ProposalService = Depends(get_proposals),
):
    items = await proposals.get_actionable(identity.user_id, identity.role)
    return to_jsonable([asdict(p) for p in items])


@router.get("/waiting")
async def list_waiting(
    identity: Identity = Depends(get_identity),
    proposals: ProposalService = Depends(get_proposals),
):
    items = await proposals.get_waiting(identity.user_id, identity.role)
    return to_jsonable([asdict(p) for p in items])
