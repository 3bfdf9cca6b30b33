"""Candidate, sourcing and outreach models."""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, UUIDMixin, TimestampMixin


class Candidate(Base, UUIDMixin, TimestampMixin):
    __tablename__ = "candidate"

    full_name: Mapped[str] = mapped_column(String(200))
    email: Mapped[str | None] = mapped_column(String(255), default=None, index=True)
    phone: Mapped[str | None] = mapped_column(String(50), default=None)
    linkedin_url: Mapped[str | None] = mapped_column(String(500), default=None)
    location: Mapped[str | None] = mapped_column(String(200), default=None)
    current_title: Mapped[str | None] = mapped_column(String(200), default=None)
    # Linked self-service account, if the candidate manages themselves
    user_id: Mapped[str | None] = mapped_column(String(100), default=None, index=True)
    # Pointer to the sourcer record currently in force; swapped by compare-and-update
    current_sourcer_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, default=None)

    def __repr__(self) -> str:
        return f"<Candidate {self.full_name!r}>"


class CandidateSourcer(Base, UUIDMixin, TimestampMixin):
    """Exclusivity record for whoever first brought a candidate in."""

    __tablename__ = "candidate_sourcer"

    candidate_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("candidate.id", ondelete="CASCADE"), index=True
    )
    sourcer_id: Mapped[str] = mapped_column(String(100), index=True)
    sourcer_type: Mapped[str] = mapped_column(String(20), default="recruiter")  # recruiter/platform
    sourced_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    protection_window_days: Mapped[int] = mapped_column(Integer, default=365)
    protection_expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), index=True)
    notes: Mapped[str | None] = mapped_column(Text, default=None)

    def __repr__(self) -> str:
        return f"<CandidateSourcer {self.sourcer_id} until {self.protection_expires_at}>"


class CandidateOutreach(Base, UUIDMixin, TimestampMixin):
    """A single recruiter contact attempt with engagement tracking."""

    __tablename__ = "candidate_outreach"

    candidate_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("candidate.id", ondelete="CASCADE"), index=True
    )
    recruiter_id: Mapped[str] = mapped_column(String(100), index=True)
    job_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("job.id", ondelete="SET NULL"), default=None
    )
    sent_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    email_subject: Mapped[str] = mapped_column(String(500))
    email_body: Mapped[str] = mapped_column(Text)
    opened_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=None)
    clicked_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=None)
    replied_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=None)
    unsubscribed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=None)
    bounced: Mapped[bool] = mapped_column(Boolean, default=False)

    def __repr__(self) -> str:
        return f"<CandidateOutreach {self.recruiter_id} -> {self.candidate_id}>"
