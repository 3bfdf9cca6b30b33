"""Placement and fee-split collaborator models."""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import DateTime, Float, ForeignKey, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, UUIDMixin, TimestampMixin


class Placement(Base, UUIDMixin, TimestampMixin):
    __tablename__ = "placement"

    application_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("application.id", ondelete="CASCADE"), unique=True
    )
    job_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("job.id", ondelete="CASCADE"))
    candidate_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("candidate.id", ondelete="CASCADE"), index=True
    )
    company_id: Mapped[str] = mapped_column(String(100), index=True)
    recruiter_id: Mapped[str] = mapped_column(String(100), index=True)
    state: Mapped[str] = mapped_column(String(20), default="hired", index=True)  # hired/active/completed/failed

    salary: Mapped[float] = mapped_column(Float, default=0.0)
    fee_percentage: Mapped[float] = mapped_column(Float, default=0.0)
    fee_amount: Mapped[float] = mapped_column(Float, default=0.0)
    recruiter_share: Mapped[float] = mapped_column(Float, default=0.0)
    platform_share: Mapped[float] = mapped_column(Float, default=0.0)

    hired_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=None)
    start_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=None)
    end_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=None)
    guarantee_days: Mapped[int] = mapped_column(Integer, default=90)
    guarantee_expires_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), default=None, index=True
    )
    failed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=None)
    failure_reason: Mapped[str | None] = mapped_column(Text, default=None)
    # Earlier failed placement this one replaces
    replacement_placement_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("placement.id", ondelete="SET NULL"), default=None
    )

    # Running total of collaborator split_percentage, bumped by guarded update
    allocated_split_percentage: Mapped[float] = mapped_column(Float, default=0.0)

    def __repr__(self) -> str:
        return f"<Placement {self.id} ({self.state})>"


class PlacementCollaborator(Base, UUIDMixin, TimestampMixin):
    """One recruiter's share of a placement fee."""

    __tablename__ = "placement_collaborator"

    placement_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("placement.id", ondelete="CASCADE"), index=True
    )
    recruiter_id: Mapped[str] = mapped_column(String(100), index=True)
    role: Mapped[str] = mapped_column(String(20))  # sourcer/submitter/closer/support
    split_percentage: Mapped[float] = mapped_column(Float)
    split_amount: Mapped[float | None] = mapped_column(Float, default=None)
    notes: Mapped[str | None] = mapped_column(Text, default=None)

    def __repr__(self) -> str:
        return f"<PlacementCollaborator {self.recruiter_id} {self.role} {self.split_percentage}%>"
