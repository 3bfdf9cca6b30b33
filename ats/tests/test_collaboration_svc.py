"""Tests for multi-recruiter fee splits."""

from __future__ import annotations

import uuid

import pytest
import pytest_asyncio
from sqlalchemy import update

from ats.config import EnginePolicy
from ats.errors import BusinessRuleError, NotFoundError, OverAllocationError
from ats.models import Placement
from ats.services.collaboration_svc import (
    PlacementCollaborationService,
    calculate_recommended_splits,
)

from .conftest import make_application


@pytest.fixture
def collaboration(db, events, policy) -> PlacementCollaborationService:
    return PlacementCollaborationService(db, events, policy)


@pytest_asyncio.fixture
async def placement(db, candidate, job) -> Placement:
    application = await make_application(db, candidate, job, "hired", recruiter_id="rec_rita")
    placement = Placement(
        application_id=application.id,
        job_id=job.id,
        candidate_id=candidate.id,
        company_id=job.company_id,
        recruiter_id="rec_rita",
        state="active",
        salary=100_000,
        fee_percentage=20.0,
        fee_amount=20_000,
        recruiter_share=10_000,
        platform_share=10_000,
        guarantee_days=90,
    )
    db.add(placement)
    await db.commit()
    await db.refresh(placement)
    return placement


@pytest.mark.asyncio
async def test_split_ceiling(collaboration, placement, events):
    await collaboration.add_collaborator(placement.id, "rec_a", "sourcer", 50)
    await collaboration.add_collaborator(placement.id, "rec_b", "closer", 40)
    last = await collaboration.add_collaborator(placement.id, "rec_c", "support", 10)
    assert last.split_amount == 1_000

    with pytest.raises(OverAllocationError):
        await collaboration.add_collaborator(placement.id, "rec_d", "support", 1)

    collaborators = await collaboration.list_collaborators(placement.id)
    assert sum(c.split_percentage for c in collaborators) == 100
    assert len(collaborators) == 3
    assert placement.allocated_split_percentage == 100
    assert len(events.of_type("collaboration.accepted")) == 3


@pytest.mark.asyncio
async def test_fractional_splits_fill_exactly_to_100(collaboration, placement):
    for recruiter_id, pct in (("rec_a", 33.33), ("rec_b", 33.33), ("rec_c", 33.34)):
        await collaboration.add_collaborator(placement.id, recruiter_id, "support", pct)
    with pytest.raises(OverAllocationError):
        await collaboration.add_collaborator(placement.id, "rec_d", "support", 0.01)


@pytest.mark.asyncio
async def test_split_total_never_exceeds_100(collaboration, placement):
    await collaboration.add_collaborator(placement.id, "rec_a", "closer", 60)
    with pytest.raises(OverAllocationError):
        await collaboration.add_collaborator(placement.id, "rec_b", "support", 40.004)

    collaborators = await collaboration.list_collaborators(placement.id)
    assert [c.split_percentage for c in collaborators] == [60]


@pytest.mark.asyncio
async def test_concurrent_allocation_leaves_no_collaborator(collaboration, placement, db, events):
    # Another writer claims most of the split between the total check and the increment
    await db.execute(
        update(Placement)
        .where(Placement.id == placement.id)
        .values(allocated_split_percentage=95)
        .execution_options(synchronize_session=False)
    )
    await db.commit()

    with pytest.raises(OverAllocationError):
        await collaboration.add_collaborator(placement.id, "rec_a", "closer", 10)

    assert await collaboration.list_collaborators(placement.id) == []
    assert events.of_type("collaboration.accepted") == []
    await db.refresh(placement)
    assert placement.allocated_split_percentage == 95



@pytest.mark.asyncio
async def test_explicit_split_amount_kept(collaboration, placement):
    collaborator = await collaboration.add_collaborator(
        placement.id, "rec_a", "closer", 25, split_amount=4_000, notes="Negotiated"
    )
    assert collaborator.split_amount == 4_000
    assert collaborator.notes == "Negotiated"


@pytest.mark.asyncio
@pytest.mark.parametrize("pct", [0, -5, 100.5])
async def test_split_percentage_bounds(collaboration, placement, pct):
    with pytest.raises(BusinessRuleError):
        await collaboration.add_collaborator(placement.id, "rec_a", "closer", pct)


@pytest.mark.asyncio
async def test_unknown_role_and_placement(collaboration, placement):
    with pytest.raises(BusinessRuleError):
        await collaboration.add_collaborator(placement.id, "rec_a", "cheerleader", 10)
    with pytest.raises(NotFoundError):
        await collaboration.add_collaborator(uuid.uuid4(), "rec_a", "closer", 10)


@pytest.mark.asyncio
async def test_recruiter_collaborations(collaboration, placement):
    await collaboration.add_collaborator(placement.id, "rec_a", "sourcer", 30)
    await collaboration.add_collaborator(placement.id, "rec_b", "closer", 30)
    [mine] = await collaboration.list_recruiter_collaborations("rec_a")
    assert mine.role == "sourcer"


def test_recommended_splits_default_weights():
    splits = calculate_recommended_splits(10_000, ["sourcer", "submitter", "closer", "support"])
    assert [s["split_percentage"] for s in splits] == [40, 30, 20, 10]
    assert [s["split_amount"] for s in splits] == [4_000, 3_000, 2_000, 1_000]


def test_recommended_splits_normalise_subset():
    splits = calculate_recommended_splits(9_000, ["sourcer", "closer"])
    assert [s["split_percentage"] for s in splits] == [66.67, 33.33]
    assert [s["split_amount"] for s in splits] == [6_000, 3_000]


def test_recommended_splits_overrides():
    splits = calculate_recommended_splits(
        1_000, [{"role": "sourcer", "weight": 1}, {"role": "closer", "weight": 3}]
    )
    assert [s["split_percentage"] for s in splits] == [25, 75]


def test_recommended_splits_errors():
    with pytest.raises(BusinessRuleError):
        calculate_recommended_splits(1_000, ["cheerleader"])
    with pytest.raises(BusinessRuleError):
        calculate_recommended_splits(1_000, [{"role": "closer", "weight": 0}])
    with pytest.raises(BusinessRuleError):
        calculate_recommended_splits(1_000, [{"role": "closer", "weight": -1}])
    assert calculate_recommended_splits(1_000, []) == []


@pytest.mark.asyncio
async def test_policy_weights_apply(db):
    policy = EnginePolicy(role_weights={"sourcer": 50, "submitter": 30, "closer": 10, "support": 10})
    service = PlacementCollaborationService(db, policy=policy)
    splits = service.calculate_recommended_splits(1_000, ["sourcer", "closer"])
    assert [s["split_amount"] for s in splits] == [833.33, 166.67]
