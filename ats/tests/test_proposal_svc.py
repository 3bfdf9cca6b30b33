"""Tests for the proposal view."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from ats.engine.stages import ApplicationStage
from ats.models import Job, Recruiter
from ats.services.proposal_svc import (
    ACTION_LABELS,
    ProposalFilters,
    ProposalService,
    pending_party,
    proposal_type,
    status_badge,
    urgency,
)

from .conftest import make_application

NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def proposals(db, policy) -> ProposalService:
    return ProposalService(db, policy)


@pytest.mark.parametrize(
    "stage,has_recruiter,expected",
    [
        ("recruiter_proposed", True, "job_opportunity"),
        ("draft", True, "direct_application"),
        ("ai_review", False, "application_screen"),
        ("screen", True, "application_screen"),
        ("submitted", True, "application_review"),
        ("submitted", False, "direct_application"),
        ("interview", False, "interview_invitation"),
        ("offer", True, "job_offer"),
        ("hired", True, "application_review"),
        ("rejected", False, "direct_application"),
    ],
)
def test_proposal_type(stage, has_recruiter, expected):
    assert proposal_type(stage, has_recruiter) == expected


def test_every_action_label_reachable():
    kinds = {proposal_type(s, r) for s in ApplicationStage for r in (True, False)}
    assert set(ACTION_LABELS) <= kinds


def test_pending_party_for_terminal_stages():
    assert pending_party("hired") == "none"
    assert pending_party("withdrawn") == "none"
    assert pending_party("ai_review") == "system"
    assert status_badge("rejected").color == "error"


def test_urgency():
    assert urgency(None, NOW) == (False, False, None)
    assert urgency(NOW + timedelta(hours=6), NOW) == (True, False, 6.0)
    assert urgency(NOW + timedelta(hours=30), NOW) == (False, False, 30.0)
    assert urgency(NOW - timedelta(hours=2), NOW) == (False, True, 0.0)
    # Naive timestamps are read as UTC
    assert urgency(datetime(2024, 5, 1, 18, 0), NOW) == (True, False, 6.0)


@pytest.mark.asyncio
async def test_candidate_sees_opportunity(db, proposals, candidate, job, recruiter):
    await make_application(
        db, candidate, job, "recruiter_proposed",
        recruiter_id="rec_rita",
        notes="Great team",
        action_due_date=NOW + timedelta(hours=10),
    )
    page = await proposals.list_for_user("user_ada", "candidate", now=NOW)
    assert page.total == 1
    [p] = page.data
    assert p.type == "job_opportunity"
    assert p.pending_action_by == "candidate"
    assert p.pending_action_type == "respond_to_opportunity"
    assert p.can_current_user_act
    assert p.subtitle == "From Rita Recruiter"
    assert p.action_label == "Review Opportunity"
    assert p.status_badge.text == "Pending Response"
    assert p.is_urgent and not p.is_overdue
    assert p.hours_remaining == pytest.approx(10.0)
    assert p.proposal_notes == "Great team"
    assert page.summary.actionable_count == 1
    assert page.summary.urgent_count == 1


@pytest.mark.asyncio
async def test_company_and_recruiter_views(db, proposals, candidate, other_candidate, job, recruiter):
    await make_application(db, candidate, job, "submitted")
    await make_application(db, other_candidate, job, "screen", recruiter_id="rec_rita")

    company = await proposals.list_for_user("co_acme", "company", now=NOW)
    assert company.total == 2
    by_stage = {p.stage: p for p in company.data}
    assert by_stage["submitted"].type == "direct_application"
    assert by_stage["submitted"].subtitle == "Applied by Ada Lovelace"
    assert by_stage["submitted"].can_current_user_act
    assert not by_stage["screen"].can_current_user_act
    assert company.summary.actionable_count == 1
    assert company.summary.waiting_count == 1

    rita = await proposals.list_for_user("user_rita", "recruiter", now=NOW)
    [p] = rita.data
    assert p.type == "application_screen"
    assert p.subtitle == "Screen: Grace Hopper"
    assert p.can_current_user_act


@pytest.mark.asyncio
async def test_other_company_cannot_act(db, proposals, candidate, job):
    await make_application(db, candidate, job, "submitted")
    page = await proposals.list_for_user("co_other", "company", now=NOW)
    assert page.total == 0


@pytest.mark.asyncio
async def test_unresolved_callers_get_empty_page(db, proposals, candidate, job):
    db.add(Recruiter(id="rec_gone", user_id="user_gone", name="Gone", status="inactive"))
    await db.commit()
    await make_application(db, candidate, job, "screen", recruiter_id="rec_gone")

    for caller_id, role in (("user_gone", "recruiter"), ("user_nobody", "recruiter"), ("user_nobody", "candidate")):
        page = await proposals.list_for_user(caller_id, role, now=NOW)
        assert page.data == []
        assert page.total == 0
        assert page.total_pages == 0


@pytest.mark.asyncio
async def test_admin_acts_only_for_human_parties(db, proposals, candidate, other_candidate, job):
    await make_application(db, candidate, job, "submitted")
    await make_application(db, other_candidate, job, "ai_review")
    page = await proposals.list_for_user("admin_1", "admin", now=NOW)
    by_stage = {p.stage: p for p in page.data}
    assert by_stage["submitted"].can_current_user_act
    assert not by_stage["ai_review"].can_current_user_act
    assert by_stage["ai_review"].pending_action_by == "system"


@pytest.mark.asyncio
async def test_filters_sorting_and_paging(db, proposals, candidate, other_candidate, job, recruiter):
    second_job = Job(company_id="co_acme", title="Data Engineer", fee_percentage=20.0)
    db.add(second_job)
    await db.commit()

    overdue = await make_application(
        db, candidate, job, "submitted", action_due_date=NOW - timedelta(hours=1)
    )
    soon = await make_application(
        db, other_candidate, job, "interview", action_due_date=NOW + timedelta(hours=3)
    )
    later = await make_application(
        db, candidate, second_job, "submitted", recruiter_id="rec_rita",
        action_due_date=NOW + timedelta(hours=48),
    )
    await make_application(db, other_candidate, second_job, "rejected")

    page = await proposals.list_for_user(
        "co_acme", "company", ProposalFilters(sort_by="urgency"), now=NOW
    )
    assert page.total == 4
    assert [p.id for p in page.data[:3]] == [overdue.id, soon.id, later.id]
    assert page.summary.overdue_count == 1
    assert page.summary.urgent_count == 1
    assert page.summary.actionable_count == 3

    completed = await proposals.list_for_user(
        "co_acme", "company", ProposalFilters(state="completed"), now=NOW
    )
    assert [p.stage for p in completed.data] == ["rejected"]
    # Summary ignores filters
    assert completed.summary.actionable_count == 3

    urgent = await proposals.list_for_user(
        "co_acme", "company", ProposalFilters(urgent_only=True), now=NOW
    )
    assert [p.id for p in urgent.data] == [soon.id]

    reviews = await proposals.list_for_user(
        "co_acme", "company", ProposalFilters(type="application_review"), now=NOW
    )
    assert [p.id for p in reviews.data] == [later.id]
    assert reviews.data[0].subtitle == "From Rita Recruiter"

    paged = await proposals.list_for_user(
        "co_acme", "company", ProposalFilters(sort_by="urgency", page=2, limit=3), now=NOW
    )
    assert paged.total == 4
    assert paged.total_pages == 2
    assert len(paged.data) == 1


@pytest.mark.asyncio
async def test_actionable_and_waiting(db, proposals, candidate, job, recruiter):
    await make_application(db, candidate, job, "screen", recruiter_id="rec_rita")
    await make_application(db, candidate, job, "offer", recruiter_id="rec_rita")

    actionable = await proposals.get_actionable("user_rita", "recruiter")
    waiting = await proposals.get_waiting("user_rita", "recruiter")
    assert [p.stage for p in actionable] == ["screen"]
    assert [p.stage for p in waiting] == ["offer"]
    assert waiting[0].subtitle == "Offer for Backend Engineer"
