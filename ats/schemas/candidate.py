"""Pydantic models for sourcing and outreach."""

from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel, Field


class SourceRequest(BaseModel):
    sourcer_type: str = "recruiter"  # recruiter/platform
    protection_window_days: int | None = Field(default=None, gt=0)
    notes: str | None = None


class OutreachCreate(BaseModel):
    email_subject: str
    email_body: str
    job_id: uuid.UUID | None = None


class OutreachEngagement(BaseModel):
    opened_at: datetime | None = None
    clicked_at: datetime | None = None
    replied_at: datetime | None = None
    unsubscribed_at: datetime | None = None
    bounced: bool | None = None
