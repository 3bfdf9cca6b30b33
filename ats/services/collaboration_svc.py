"""Multi-recruiter fee splits on a placement."""

from __future__ import annotations

import logging
import uuid
from decimal import Decimal

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import EnginePolicy
from ..errors import BusinessRuleError, NotFoundError, OverAllocationError
from ..events import EventPublisher, LoggingEventPublisher
from ..models.placement import Placement, PlacementCollaborator

logger = logging.getLogger(__name__)

COLLABORATOR_ROLES = ("sourcer", "submitter", "closer", "support")

SPLIT_CEILING = Decimal(100)


def _pct(value: float) -> Decimal:
    return Decimal(str(value))


def calculate_recommended_splits(
    total_recruiter_share: float,
    roles: list,
    weights: dict[str, float] | None = None,
) -> list[dict]:
    """Advisory split of ``total_recruiter_share`` across ``roles``.

    Each entry in ``roles`` is a role name or a dict with ``role`` and an
    optional ``weight`` overriding the default for that entry. Nothing is
    persisted; add_collaborator re-checks the ceiling on its own.
    """
    weights = weights or EnginePolicy().role_weights
    entries = []
    for item in roles:
        role, weight = (item.get("role"), item.get("weight")) if isinstance(item, dict) else (item, None)
        if weight is None:
            if role not in weights:
                raise BusinessRuleError(f"No weight for role {role!r}", {"role": role})
            weight = weights[role]
        if weight < 0:
            raise BusinessRuleError("Role weights cannot be negative", {"role": role})
        entries.append((role, float(weight)))

    total_weight = sum(w for _, w in entries)
    if not entries:
        return []
    if total_weight <= 0:
        raise BusinessRuleError("Role weights must add up to more than zero")

    return [
        {
            "role": role,
            "split_percentage": round(weight / total_weight * 100, 2),
            "split_amount": round(total_recruiter_share * weight / total_weight, 2),
        }
        for role, weight in entries
    ]


class PlacementCollaborationService:
    def __init__(
        self,
        db: AsyncSession,
        events: EventPublisher | None = None,
        policy: EnginePolicy | None = None,
    ):
        self.db = db
        self.events = events or LoggingEventPublisher()
        self.policy = policy or EnginePolicy.from_settings()

    async def _allocated(self, placement_id: uuid.UUID) -> float:
        stmt = select(func.coalesce(func.sum(PlacementCollaborator.split_percentage), 0.0)).where(
            PlacementCollaborator.placement_id == placement_id
        )
        return float((await self.db.execute(stmt)).scalar_one())

    async def add_collaborator(
        self,
        placement_id: uuid.UUID,
        recruiter_id: str,
        role: str,
        split_percentage: float,
        split_amount: float | None = None,
        notes: str | None = None,
    ) -> PlacementCollaborator:
        if role not in COLLABORATOR_ROLES:
            raise BusinessRuleError(f"Unknown collaborator role {role!r}", {"role": role})
        if split_percentage <= 0 or split_percentage > 100:
            raise BusinessRuleError(
                "Split percentage must be greater than 0 and at most 100",
                {"split_percentage": split_percentage},
            )

        placement = await self.db.get(Placement, placement_id)
        if placement is None:
            raise NotFoundError("Placement", placement_id)

        current = await self._allocated(placement.id)
        if _pct(current) + _pct(split_percentage) > SPLIT_CEILING:
            raise OverAllocationError(
                f"Total split percentage would exceed 100% "
                f"(current: {current:g}%, adding: {split_percentage:g}%)",
                {"current": current, "adding": split_percentage},
            )

        headroom = float(SPLIT_CEILING - _pct(split_percentage))
        # Concurrent adds race here; the guarded increment lets exactly one through
        result = await self.db.execute(
            update(Placement)
            .where(
                Placement.id == placement.id,
                Placement.allocated_split_percentage <= headroom,
            )
            .values(
                allocated_split_percentage=Placement.allocated_split_percentage + split_percentage
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            await self.db.rollback()
            raise OverAllocationError(
                "Total split percentage would exceed 100%",
                {"adding": split_percentage},
            )

        if split_amount is None:
            split_amount = round((placement.recruiter_share or 0.0) * split_percentage / 100, 2)
        collaborator = PlacementCollaborator(
            placement_id=placement.id,
            recruiter_id=recruiter_id,
            role=role,
            split_percentage=split_percentage,
            split_amount=split_amount,
            notes=notes,
        )
        self.db.add(collaborator)
        await self.db.commit()
        await self.db.refresh(collaborator)
        await self.db.refresh(placement)
        logger.info(
            "Collaborator %s added to placement %s as %s (%s%%)",
            recruiter_id,
            placement.id,
            role,
            split_percentage,
        )

        await self.events.publish(
            "collaboration.accepted",
            {
                "placement_id": placement.id,
                "collaborator_id": collaborator.id,
                "recruiter_id": recruiter_id,
                "role": role,
                "split_percentage": split_percentage,
                "split_amount": split_amount,
            },
            self.policy.source_service,
        )
        return collaborator

    def calculate_recommended_splits(
        self,
        total_recruiter_share: float,
        roles: list,
        weights: dict[str, float] | None = None,
    ) -> list[dict]:
        return calculate_recommended_splits(
            total_recruiter_share, roles, {**self.policy.role_weights, **(weights or {})}
        )

    async def list_collaborators(self, placement_id: uuid.UUID) -> list[PlacementCollaborator]:
        stmt = (
            select(PlacementCollaborator)
            .where(PlacementCollaborator.placement_id == placement_id)
            .order_by(PlacementCollaborator.created_at)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def list_recruiter_collaborations(self, recruiter_id: str) -> list[PlacementCollaborator]:
        stmt = (
            select(PlacementCollaborator)
            .where(PlacementCollaborator.recruiter_id == recruiter_id)
            .order_by(PlacementCollaborator.created_at.desc())
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())
