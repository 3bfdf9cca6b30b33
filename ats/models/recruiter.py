"""Local mirror of the recruiter directory."""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, UUIDMixin, TimestampMixin


class Recruiter(Base, TimestampMixin):
    __tablename__ = "recruiter"

    # Directory-issued id, not generated here
    id: Mapped[str] = mapped_column(String(100), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(100), unique=True, index=True)
    name: Mapped[str | None] = mapped_column(String(200), default=None)
    email: Mapped[str | None] = mapped_column(String(255), default=None)
    status: Mapped[str] = mapped_column(String(20), default="active")  # pending/active/suspended

    def __repr__(self) -> str:
        return f"<Recruiter {self.id} ({self.status})>"


class RecruiterCandidate(Base, UUIDMixin, TimestampMixin):
    """A recruiter's representation agreement with a candidate."""

    __tablename__ = "recruiter_candidate"

    recruiter_id: Mapped[str] = mapped_column(
        String(100), ForeignKey("recruiter.id", ondelete="CASCADE"), index=True
    )
    candidate_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("candidate.id", ondelete="CASCADE"), index=True
    )
    status: Mapped[str] = mapped_column(String(20), default="active")  # active/ended
    relationship_start_date: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), default=None
    )
    relationship_end_date: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), default=None
    )

    def __repr__(self) -> str:
        return f"<RecruiterCandidate {self.recruiter_id} -> {self.candidate_id} ({self.status})>"
