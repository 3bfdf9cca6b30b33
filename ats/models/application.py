"""Application and audit log models."""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import JSON, Boolean, DateTime, Float, ForeignKey, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, UUIDMixin, TimestampMixin


class Application(Base, UUIDMixin, TimestampMixin):
    """A candidate's pursuit of one job."""

    __tablename__ = "application"

    candidate_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("candidate.id", ondelete="CASCADE"), index=True
    )
    job_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("job.id", ondelete="CASCADE"), index=True
    )
    company_id: Mapped[str | None] = mapped_column(String(100), default=None, index=True)
    recruiter_id: Mapped[str | None] = mapped_column(String(100), default=None, index=True)
    stage: Mapped[str] = mapped_column(String(30), default="draft", index=True)

    accepted_by_company: Mapped[bool] = mapped_column(Boolean, default=False)
    accepted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=None)

    notes: Mapped[str | None] = mapped_column(Text, default=None)
    recruiter_notes: Mapped[str | None] = mapped_column(Text, default=None)

    ai_reviewed: Mapped[bool] = mapped_column(Boolean, default=False)
    ai_fit_score: Mapped[float | None] = mapped_column(Float, default=None)

    # Urgency inputs for the proposal view
    action_due_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=None)
    expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=None)

    decline_reason: Mapped[str | None] = mapped_column(String(100), default=None)
    decline_notes: Mapped[str | None] = mapped_column(Text, default=None)

    def __repr__(self) -> str:
        return f"<Application {self.id} ({self.stage})>"


class ApplicationAuditLog(Base, UUIDMixin, TimestampMixin):
    """Append-only record of a change made to an application."""

    __tablename__ = "application_audit_log"

    application_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("application.id", ondelete="CASCADE"), index=True
    )
    action: Mapped[str] = mapped_column(String(50))
    performed_by_user_id: Mapped[str | None] = mapped_column(String(100), default=None)
    performed_by_role: Mapped[str | None] = mapped_column(String(30), default=None)
    company_id: Mapped[str | None] = mapped_column(String(100), default=None)
    old_value: Mapped[dict | None] = mapped_column(JSON, default=None)
    new_value: Mapped[dict | None] = mapped_column(JSON, default=None)
    metadata_json: Mapped[dict | None] = mapped_column("metadata", JSON, default=None)

    def __repr__(self) -> str:
        return f"<ApplicationAuditLog {self.action} on {self.application_id}>"
