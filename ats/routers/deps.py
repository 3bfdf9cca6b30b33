"""Shared FastAPI dependencies: caller identity and engine services.

The gateway in front of this service authenticates the user and forwards
``X-User-Id`` and ``X-User-Role``. Nothing here verifies tokens.
"""

from __future__ import annotations

from dataclasses import dataclass

from fastapi import Depends, Header, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import EnginePolicy
from ..database import get_db
from ..directory import DatabaseRecruiterDirectory, RecruiterDirectory
from ..engine.actor import ROLES, Actor
from ..events import EventPublisher, LoggingEventPublisher
from ..services.application_svc import ApplicationWorkflow
from ..services.collaboration_svc import PlacementCollaborationService
from ..services.ownership_svc import CandidateOwnershipService
from ..services.placement_svc import PlacementLifecycleService
from ..services.proposal_svc import ProposalService


@dataclass(frozen=True)
class Identity:
    user_id: str
    role: str


@dataclass(frozen=True)
class Caller:
    user_id: str
    role: str
    entity_id: str

    @property
    def actor(self) -> Actor:
        return Actor(
            user_id=self.user_id,
            role=self.role,
            company_id=self.entity_id if self.role == "company" else None,
        )


def get_events(request: Request) -> EventPublisher:
    return getattr(request.app.state, "events", None) or LoggingEventPublisher()


def get_policy(request: Request) -> EnginePolicy:
    return getattr(request.app.state, "policy", None) or EnginePolicy.from_settings()


def get_directory(request: Request, db: AsyncSession = Depends(get_db)) -> RecruiterDirectory:
    return getattr(request.app.state, "directory", None) or DatabaseRecruiterDirectory(db)


async def get_identity(
    x_user_id: str | None = Header(default=None),
    x_user_role: str | None = Header(default=None),
) -> Identity:
    if not x_user_id or not x_user_role:
        raise HTTPException(status_code=401, detail="Missing caller identity")
    role = x_user_role.strip().lower()
    if role not in ROLES:
        raise HTTPException(status_code=403, detail=f"Unknown role: {x_user_role}")
    return Identity(user_id=x_user_id, role=role)


async def get_caller(
    identity: Identity = Depends(get_identity),
    directory: RecruiterDirectory = Depends(get_directory),
) -> Caller:
    if identity.role == "system":
        return Caller(identity.user_id, identity.role, identity.user_id)
    resolution = await directory.resolve(identity.user_id, identity.role)
    if not resolution.is_resolved:
        raise HTTPException(
            status_code=403,
            detail=f"{identity.role.capitalize()} account is {resolution.status.replace('_', ' ')}",
        )
    return Caller(identity.user_id, identity.role, resolution.entity_id)


def require_role(caller: Caller, *roles: str) -> None:
    if caller.role not in roles:
        raise HTTPException(status_code=403, detail=f"Role {caller.role} cannot perform this action")


def get_workflow(
    db: AsyncSession = Depends(get_db),
    events: EventPublisher = Depends(get_events),
    policy: EnginePolicy = Depends(get_policy),
    directory: RecruiterDirectory = Depends(get_directory),
) -> ApplicationWorkflow:
    return ApplicationWorkflow(db, events, policy, directory)


def get_ownership(
    db: AsyncSession = Depends(get_db),
    events: EventPublisher = Depends(get_events),
    policy: EnginePolicy = Depends(get_policy),
) -> CandidateOwnershipService:
    return CandidateOwnershipService(db, events, policy)


def get_placements(
    db: AsyncSession = Depends(get_db),
    events: EventPublisher = Depends(get_events),
    policy: EnginePolicy = Depends(get_policy),
    directory: RecruiterDirectory = Depends(get_directory),
) -> PlacementLifecycleService:
    return PlacementLifecycleService(db, events, policy, directory)


def get_collaboration(
    db: AsyncSession = Depends(get_db),
    events: EventPublisher = Depends(get_events),
    policy: EnginePolicy = Depends(get_policy),
) -> PlacementCollaborationService:
    return PlacementCollaborationService(db, events, policy)


def get_proposals(
    db: AsyncSession = Depends(get_db),
    policy: EnginePolicy = Depends(get_policy),
    directory: RecruiterDirectory = Depends(get_directory),
) -> ProposalService:
    return ProposalService(db, policy, directory)
