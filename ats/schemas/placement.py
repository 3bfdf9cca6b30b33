"""Pydantic models for placements and collaborators."""

from __future__ import annotations

import uuid
from datetime import date

from pydantic import BaseModel, Field


class HireRecord(BaseModel):
    application_id: uuid.UUID
    salary: float = Field(gt=0)
    fee_percentage: float | None = Field(default=None, ge=0, le=100)


class PlacementActivate(BaseModel):
    start_date: date


class PlacementComplete(BaseModel):
    end_date: date | None = None


class PlacementFail(BaseModel):
    reason: str


class ReplacementLink(BaseModel):
    replacement_placement_id: uuid.UUID


class CollaboratorCreate(BaseModel):
    recruiter_id: str
    role: str  # sourcer/submitter/closer/support
    split_percentage: float
    split_amount: float | None = None
    notes: str | None = None


class RoleWeight(BaseModel):
    role: str
    weight: float | None = None


class SplitRecommendationRequest(BaseModel):
    total_recruiter_share: float = Field(ge=0)
    roles: list[RoleWeight]
