"""Pydantic models for the applications API."""

from __future__ import annotations

import uuid

from pydantic import BaseModel, Field


class ApplicationSubmit(BaseModel):
    candidate_id: uuid.UUID
    job_id: uuid.UUID
    notes: str | None = None


class JobProposal(BaseModel):
    candidate_id: uuid.UUID
    job_id: uuid.UUID
    pitch: str | None = None


class ProposalDecline(BaseModel):
    reason: str | None = None
    notes: str | None = None


class AIReviewResult(BaseModel):
    fit_score: float | None = Field(default=None, ge=0, le=100)


class RecruiterSubmit(BaseModel):
    recruiter_notes: str | None = None


class StageChange(BaseModel):
    stage: str  # interview/offer/hired/rejected
    notes: str | None = None


class Withdrawal(BaseModel):
    reason: str | None = None


class PrescreenRequest(BaseModel):
    recruiter_id: str | None = None
    message: str | None = None


class NoteCreate(BaseModel):
    note: str = Field(min_length=1)
