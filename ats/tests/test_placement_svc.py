"""Tests for the placement lifecycle."""

from __future__ import annotations

import uuid
from datetime import date, datetime, timezone

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession

from ats.engine.actor import Actor
from ats.engine.clock import as_utc
from ats.errors import (
    BusinessRuleError,
    GuaranteeExpiredError,
    InvalidTransitionError,
    NotFoundError,
)
from ats.models import Placement
from ats.services.placement_svc import PlacementLifecycleService, calculate_fee, is_within_guarantee

from .conftest import make_application

COMPANY = Actor("user_hr", "company", "co_acme")


def _utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


@pytest.fixture
def placements(db, events, policy) -> PlacementLifecycleService:
    return PlacementLifecycleService(db, events, policy)


@pytest_asyncio.fixture
async def offer(db, candidate, job):
    return await make_application(db, candidate, job, "offer", recruiter_id="rec_rita")


@pytest.mark.asyncio
async def test_record_hire_opens_placement(placements, offer, events):
    placement = await placements.record_hire(offer.id, 150_000, actor=COMPANY)
    assert placement.state == "hired"
    assert placement.guarantee_days == 90
    assert placement.fee_percentage == 20.0
    assert placement.fee_amount == 30_000
    assert placement.recruiter_share == 15_000
    assert placement.platform_share == 15_000
    assert placement.guarantee_expires_at is None

    application = await placements.workflow.get_application(offer.id)
    assert application.stage == "hired"
    log = await placements.workflow.get_audit_log(offer.id)
    assert log[-1].old_value["stage"] == "offer"
    assert log[-1].new_value["stage"] == "hired"

    assert events.types() == ["application.stage_changed", "placement.created"]
    assert events.events[1]["payload"]["fee_amount"] == 30_000


@pytest.mark.asyncio
async def test_record_hire_uses_job_guarantee_and_fee_override(db, placements, offer, job):
    job.guarantee_days = 60
    await db.commit()
    placement = await placements.record_hire(offer.id, 100_000, fee_percentage=25)
    assert placement.guarantee_days == 60
    assert placement.fee_amount == 25_000


@pytest.mark.asyncio
async def test_record_hire_keeps_zero_day_guarantee(db, placements, offer, job):
    job.guarantee_days = 0
    await db.commit()
    placement = await placements.record_hire(offer.id, 100_000)
    assert placement.guarantee_days == 0

    placement = await placements.activate(placement.id, date(2024, 1, 1))
    assert as_utc(placement.guarantee_expires_at) == _utc(2024, 1, 1)
    assert not is_within_guarantee(placement, now=_utc(2024, 1, 2))


@pytest.mark.asyncio
async def test_record_hire_requires_recruiter_and_salary(db, placements, candidate, job, offer):
    with pytest.raises(BusinessRuleError):
        await placements.record_hire(offer.id, 0)

    direct = await make_application(db, candidate, job, "offer")
    with pytest.raises(BusinessRuleError):
        await placements.record_hire(direct.id, 100_000)


@pytest.mark.asyncio
async def test_record_hire_from_terminal_stage_fails(db, placements, candidate, job):
    rejected = await make_application(db, candidate, job, "rejected", recruiter_id="rec_rita")
    with pytest.raises(InvalidTransitionError):
        await placements.record_hire(rejected.id, 100_000)


@pytest.mark.asyncio
async def test_guarantee_window_and_replacement(placements, offer, events):
    placement = await placements.record_hire(offer.id, 120_000)

    placement = await placements.activate(placement.id, date(2024, 1, 1))
    assert placement.state == "active"
    assert as_utc(placement.start_date) == _utc(2024, 1, 1)
    assert as_utc(placement.guarantee_expires_at) == _utc(2024, 3, 31)

    placement = await placements.fail(placement.id, "candidate quit", now=_utc(2024, 2, 1))
    assert placement.state == "failed"
    assert placement.failure_reason == "candidate quit"
    assert placements.is_within_guarantee(placement, _utc(2024, 2, 1))
    [failed] = events.of_type("placement.failed")
    assert failed["payload"]["within_guarantee"] is True

    await placements.request_replacement(placement.id, now=_utc(2024, 2, 15))
    assert len(events.of_type("placement.replacement_requested")) == 1

    with pytest.raises(GuaranteeExpiredError):
        await placements.request_replacement(placement.id, now=_utc(2024, 4, 1))


@pytest.mark.asyncio
async def test_no_guarantee_before_activation(placements, offer):
    placement = await placements.record_hire(offer.id, 90_000)
    assert not placements.is_within_guarantee(placement)
    placement = await placements.fail(placement.id, "offer reneged")
    with pytest.raises(GuaranteeExpiredError):
        await placements.request_replacement(placement.id)


@pytest.mark.asyncio
async def test_complete_publishes_collaborators(placements, offer, events):
    placement = await placements.record_hire(offer.id, 100_000)
    await placements.activate(placement.id, date(2024, 1, 1))
    placement = await placements.complete(placement.id, date(2024, 6, 30))
    assert placement.state == "completed"
    assert as_utc(placement.end_date) == _utc(2024, 6, 30)
    [event] = events.of_type("placement.completed")
    assert event["payload"]["collaborators"] == []
    states = [(e["payload"]["old_state"], e["payload"]["new_state"]) for e in events.of_type("placement.state_changed")]
    assert states == [("hired", "active"), ("active", "completed")]


@pytest.mark.asyncio
async def test_invalid_placement_transitions(placements, offer):
    placement = await placements.record_hire(offer.id, 100_000)
    with pytest.raises(InvalidTransitionError):
        await placements.complete(placement.id)

    await placements.activate(placement.id, date(2024, 1, 1))
    with pytest.raises(InvalidTransitionError):
        await placements.activate(placement.id, date(2024, 2, 1))

    await placements.complete(placement.id)
    with pytest.raises(InvalidTransitionError):
        await placements.fail(placement.id, "too late")
    assert (await placements.get_placement(placement.id)).state == "completed"


@pytest.mark.asyncio
async def test_replacement_requires_failed(placements, offer):
    placement = await placements.record_hire(offer.id, 100_000)
    with pytest.raises(InvalidTransitionError):
        await placements.request_replacement(placement.id)


@pytest.mark.asyncio
async def test_link_replacement(db, placements, offer, candidate, other_candidate, job):
    failed = await placements.record_hire(offer.id, 100_000)
    await placements.fail(failed.id, "let go")

    second_offer = await make_application(db, other_candidate, job, "offer", recruiter_id="rec_rita")
    replacement = await placements.record_hire(second_offer.id, 110_000)

    with pytest.raises(InvalidTransitionError):
        await placements.link_replacement(replacement.id, failed.id)
    with pytest.raises(BusinessRuleError):
        await placements.link_replacement(failed.id, failed.id)

    linked = await placements.link_replacement(failed.id, replacement.id)
    assert linked.replacement_placement_id == failed.id

    with pytest.raises(NotFoundError):
        await placements.link_replacement(failed.id, uuid.uuid4())


@pytest.mark.asyncio
async def test_expiring_guarantees_only_open_states(db: AsyncSession, placements, candidate, other_candidate, job):
    now = _utc(2024, 3, 1)
    first = await placements.record_hire(
        (await make_application(db, candidate, job, "offer", recruiter_id="rec_rita")).id, 100_000
    )
    second = await placements.record_hire(
        (await make_application(db, other_candidate, job, "offer", recruiter_id="rec_rita")).id, 100_000
    )
    await placements.activate(first.id, date(2024, 1, 1))
    await placements.activate(second.id, date(2024, 1, 1))
    await placements.fail(second.id, "quit", now=_utc(2024, 2, 1))

    expiring = await placements.list_expiring_guarantees(45, now=now)
    assert [p.id for p in expiring] == [first.id]
    assert await placements.list_expiring_guarantees(10, now=now) == []

    assert [p.id for p in await placements.list_by_state("failed")] == [second.id]
    assert [p.id for p in await placements.list_by_state("active")] == [first.id]


def test_calculate_fee():
    assert calculate_fee(123_456, 18.5, 0.5) == {
        "fee_amount": 22839.36,
        "recruiter_share": 11419.68,
        "platform_share": 11419.68,
    }
    fees = calculate_fee(100_000, 20, 0.6)
    assert fees["recruiter_share"] + fees["platform_share"] == fees["fee_amount"]


def test_within_guarantee_is_computed_per_call():
    placement = Placement(guarantee_expires_at=_utc(2024, 3, 31))
    assert is_within_guarantee(placement, _utc(2024, 3, 30))
    assert not is_within_guarantee(placement, _utc(2024, 3, 31))
