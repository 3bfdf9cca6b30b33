"""Recruiter directory: maps caller identities to marketplace entities.

The workflow engine only ever asks two questions of the directory: which
entity does this caller act as, and which recruiter (if any) currently
represents this candidate. Inactive or unknown recruiters count as no
representation.
"""

from __future__ import annotations

import logging
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass

import httpx
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from .engine.clock import utcnow
from .models.candidate import Candidate
from .models.recruiter import Recruiter, RecruiterCandidate

logger = logging.getLogger(__name__)

RESOLVED = "resolved"
INACTIVE = "inactive"
NOT_FOUND = "not_found"


@dataclass(frozen=True)
class Resolution:
    status: str
    entity_id: str | None = None

    @classmethod
    def resolved(cls, entity_id: str) -> Resolution:
        return cls(RESOLVED, str(entity_id))

    @classmethod
    def inactive(cls) -> Resolution:
        return cls(INACTIVE)

    @classmethod
    def not_found(cls) -> Resolution:
        return cls(NOT_FOUND)

    @property
    def is_resolved(self) -> bool:
        return self.status == RESOLVED


class RecruiterDirectory(ABC):
    """Interface consumed by the services."""

    @abstractmethod
    async def resolve(self, caller_id: str, role: str) -> Resolution:
        """Map a caller to the entity id it acts as."""

    @abstractmethod
    async def active_recruiter_for(self, candidate_id) -> str | None:
        """Recruiter currently representing the candidate, if any."""


class DatabaseRecruiterDirectory(RecruiterDirectory):
    """Answers from the local recruiter and representation tables."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def resolve(self, caller_id: str, role: str) -> Resolution:
        if role == "recruiter":
            stmt = select(Recruiter).where(Recruiter.user_id == caller_id)
            recruiter = (await self.db.execute(stmt)).scalar_one_or_none()
            if recruiter is None:
                return Resolution.not_found()
            if recruiter.status != "active":
                return Resolution.inactive()
            return Resolution.resolved(recruiter.id)

        if role == "candidate":
            stmt = select(Candidate).where(Candidate.user_id == caller_id)
            candidate = (await self.db.execute(stmt)).scalar_one_or_none()
            if candidate is not None:
                return Resolution.resolved(str(candidate.id))
            try:
                candidate = await self.db.get(Candidate, uuid.UUID(str(caller_id)))
            except ValueError:
                candidate = None
            if candidate is None:
                return Resolution.not_found()
            return Resolution.resolved(str(candidate.id))

        # Companies and admins are addressed by their own id
        return Resolution.resolved(caller_id)

    async def active_recruiter_for(self, candidate_id) -> str | None:
        now = utcnow()
        stmt = (
            select(RecruiterCandidate.recruiter_id)
            .join(Recruiter, Recruiter.id == RecruiterCandidate.recruiter_id)
            .where(
                RecruiterCandidate.candidate_id == candidate_id,
                RecruiterCandidate.status == "active",
                Recruiter.status == "active",
                or_(
                    RecruiterCandidate.relationship_end_date.is_(None),
                    RecruiterCandidate.relationship_end_date > now,
                ),
            )
            .order_by(RecruiterCandidate.created_at.desc())
            .limit(1)
        )
        return (await self.db.execute(stmt)).scalar_one_or_none()


class HttpRecruiterDirectory(RecruiterDirectory):
    """Asks the network service over HTTP.

    Lookup failures are logged and treated as no representation.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 5.0,
        client: httpx.AsyncClient | None = None,
    ):
        self._client = client or httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            timeout=timeout,
        )

    async def resolve(self, caller_id: str, role: str) -> Resolution:
        if role not in ("recruiter", "candidate"):
            return Resolution.resolved(caller_id)
        path = f"/{role}s/by-user/{caller_id}"
        try:
            response = await self._client.get(path)
            if response.status_code == 404:
                return Resolution.not_found()
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning("Directory lookup %s failed: %s", path, e)
            return Resolution.not_found()

        data = response.json().get("data") or {}
        if not data.get("id"):
            return Resolution.not_found()
        if role == "recruiter" and data.get("status", "active") != "active":
            return Resolution.inactive()
        return Resolution.resolved(data["id"])

    async def active_recruiter_for(self, candidate_id) -> str | None:
        path = f"/candidates/{candidate_id}/recruiter"
        try:
            response = await self._client.get(path)
            if response.status_code == 404:
                return None
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning("Directory lookup %s failed: %s", path, e)
            return None

        data = response.json().get("data") or {}
        if data.get("status", "active") != "active":
            return None
        return data.get("recruiter_id")

    async def close(self) -> None:
        await self._client.aclose()

