"""API tests for the ATS routers."""

from __future__ import annotations

import uuid

import pytest

from .conftest import make_application


def _as(user_id: str, role: str) -> dict:
    return {"X-User-Id": user_id, "X-User-Role": role}


ADA = _as("user_ada", "candidate")
GRACE = _as("user_grace", "candidate")
RITA = _as("user_rita", "recruiter")
ACME = _as("co_acme", "company")
ADMIN = _as("admin_1", "admin")
SYSTEM = _as("scorer", "system")


@pytest.mark.asyncio
async def test_health(client):
    resp = await client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "healthy"
    resp = await client.get("/ready")
    assert resp.json()["status"] == "ready"


@pytest.mark.asyncio
async def test_identity_headers_required(client):
    resp = await client.get("/applications")
    assert resp.status_code == 401
    resp = await client.get("/applications", headers=_as("someone", "hacker"))
    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_inactive_recruiter_rejected(client, db, recruiter):
    recruiter.status = "inactive"
    await db.commit()
    resp = await client.get("/applications/pending", headers=RITA)
    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_submit_and_duplicate(client, candidate, job, events):
    body = {"candidate_id": str(candidate.id), "job_id": str(job.id), "notes": "Keen"}
    resp = await client.post("/applications", json=body, headers=ADA)
    assert resp.status_code == 201
    data = resp.json()
    assert data["stage"] == "submitted"
    assert data["company_id"] == "co_acme"
    assert events.types() == ["application.created"]

    resp = await client.post("/applications", json=body, headers=ADA)
    assert resp.status_code == 409
    error = resp.json()["error"]
    assert error["code"] == "DUPLICATE_APPLICATION"
    assert error["details"]["application_id"] == data["id"]


@pytest.mark.asyncio
async def test_candidate_cannot_apply_for_someone_else(client, candidate, other_candidate, job):
    body = {"candidate_id": str(other_candidate.id), "job_id": str(job.id)}
    resp = await client.post("/applications", json=body, headers=ADA)
    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_not_found_body(client, candidate):
    resp = await client.get(f"/applications/{uuid.uuid4()}", headers=ADA)
    assert resp.status_code == 404
    assert resp.json()["error"]["code"] == "NOT_FOUND"


@pytest.mark.asyncio
async def test_application_reads_are_scoped(client, db, candidate, other_candidate, job, recruiter):
    app = await make_application(db, candidate, job, "submitted", notes="Keen")
    url = f"/applications/{app.id}"

    resp = await client.get(url, headers=ADA)
    assert resp.status_code == 200
    assert resp.json()["notes"] == "Keen"

    assert (await client.get(url, headers=GRACE)).status_code == 403
    assert (await client.get(url, headers=RITA)).status_code == 403
    assert (await client.get(f"{url}/audit", headers=RITA)).status_code == 403
    assert (await client.get(url, headers=_as("co_other", "company"))).status_code == 403

    # Candidate notes unlock once the company accepts
    resp = await client.get(url, headers=ACME)
    assert resp.status_code == 200
    assert resp.json()["notes"] is None
    await client.post(f"{url}/accept", headers=ACME)
    resp = await client.get(url, headers=ACME)
    assert resp.json()["notes"] == "Keen"


@pytest.mark.asyncio
async def test_company_pipeline(client, db, candidate, job):
    app = await make_application(db, candidate, job, "submitted")
    url = f"/applications/{app.id}"

    resp = await client.post(f"{url}/accept", headers=ACME)
    assert resp.json()["accepted_by_company"] is True

    resp = await client.post(f"{url}/stage", json={"stage": "offer"}, headers=ACME)
    assert resp.status_code == 200
    assert resp.json()["stage"] == "offer"

    resp = await client.post(f"{url}/stage", json={"stage": "interview"}, headers=ACME)
    assert resp.status_code == 409
    error = resp.json()["error"]
    assert error["code"] == "INVALID_TRANSITION"
    assert error["details"] == {"current": "offer", "requested": "interview"}

    resp = await client.post(f"{url}/stage", json={"stage": "withdrawn"}, headers=ACME)
    assert resp.status_code == 409
    assert resp.json()["error"]["code"] == "INVALID_TRANSITION"

    resp = await client.post(f"{url}/stage", json={"stage": "rejected"}, headers=_as("co_other", "company"))
    assert resp.status_code == 403

    resp = await client.get(f"{url}/audit", headers=ACME)
    assert [e["action"] for e in resp.json()] == ["accepted", "stage_changed"]

    resp = await client.get("/applications/company-audit", headers=ACME)
    assert len(resp.json()) == 2


@pytest.mark.asyncio
async def test_proposal_round_trip(client, candidate, job, represented, events):
    resp = await client.post(
        "/applications/propose",
        json={"candidate_id": str(candidate.id), "job_id": str(job.id), "pitch": "Great team"},
        headers=RITA,
    )
    assert resp.status_code == 201
    app_id = resp.json()["id"]

    resp = await client.get("/applications/opportunities", headers=ADA)
    assert [a["id"] for a in resp.json()] == [app_id]

    resp = await client.get("/proposals", headers=ADA)
    body = resp.json()
    assert body["pagination"]["total"] == 1
    assert body["summary"]["actionable_count"] == 1
    [proposal] = body["data"]
    assert proposal["type"] == "job_opportunity"
    assert proposal["subtitle"] == "From Rita Recruiter"
    assert proposal["status_badge"]["text"] == "Pending Response"

    resp = await client.get("/proposals/waiting", headers=RITA)
    assert [p["id"] for p in resp.json()] == [app_id]

    resp = await client.post(f"/applications/{app_id}/decline", json={"reason": "not interested"}, headers=ADA)
    assert resp.json()["stage"] == "rejected"
    resp = await client.post(f"/applications/{app_id}/approve", headers=ADA)
    assert resp.status_code == 409
    assert "application.candidate_declined" in events.types()


@pytest.mark.asyncio
async def test_draft_and_ai_review(client, db, candidate, job, recruiter):
    app = await make_application(db, candidate, job, "draft", recruiter_id="rec_rita")
    resp = await client.post(f"/applications/{app.id}/complete-draft", headers=ADA)
    assert resp.json()["stage"] == "ai_review"

    resp = await client.post(f"/applications/{app.id}/ai-review", json={"fit_score": 91}, headers=ADA)
    assert resp.status_code == 403
    resp = await client.post(f"/applications/{app.id}/ai-review", json={"fit_score": 91}, headers=SYSTEM)
    assert resp.json()["stage"] == "screen"

    resp = await client.get("/applications/pending", headers=RITA)
    assert [a["id"] for a in resp.json()] == [str(app.id)]
    resp = await client.post(f"/applications/{app.id}/submit", json={"recruiter_notes": "Solid"}, headers=RITA)
    assert resp.json()["stage"] == "submitted"


@pytest.mark.asyncio
async def test_sourcing_conflict(client, db, candidate, recruiter):
    resp = await client.post(f"/candidates/{candidate.id}/source", json={}, headers=ADMIN)
    assert resp.status_code == 201
    assert resp.json()["sourcer_id"] == "platform"

    resp = await client.post(f"/candidates/{candidate.id}/source", json={}, headers=RITA)
    assert resp.status_code == 409
    assert resp.json()["error"]["code"] == "CANDIDATE_PROTECTED"

    resp = await client.get(f"/candidates/{candidate.id}/can-work-with", headers=RITA)
    assert resp.json()["can_work_with"] is False


@pytest.mark.asyncio
async def test_outreach(client, candidate, recruiter, events):
    resp = await client.post(
        f"/candidates/{candidate.id}/outreach",
        json={"email_subject": "Hello", "email_body": "A role"},
        headers=RITA,
    )
    assert resp.status_code == 201
    outreach_id = resp.json()["id"]

    resp = await client.get(f"/candidates/{candidate.id}/sourcer", headers=RITA)
    assert resp.json()["sourcer"]["sourcer_id"] == "rec_rita"

    resp = await client.patch(f"/outreach/{outreach_id}", json={"bounced": True}, headers=SYSTEM)
    assert resp.json()["bounced"] is True
    assert events.types() == ["candidate.sourced", "candidate.outreach_sent"]


@pytest.mark.asyncio
async def test_placement_and_splits(client, db, candidate, job, recruiter, events):
    app = await make_application(db, candidate, job, "offer", recruiter_id="rec_rita")
    resp = await client.post(
        "/placements", json={"application_id": str(app.id), "salary": 100000}, headers=ACME
    )
    assert resp.status_code == 201
    placement = resp.json()
    assert placement["fee_amount"] == 20000
    assert placement["recruiter_share"] == 10000
    pid = placement["id"]

    resp = await client.post(f"/placements/{pid}/activate", json={"start_date": "2024-01-01"}, headers=ACME)
    assert resp.json()["state"] == "active"
    assert resp.json()["guarantee_expires_at"].startswith("2024-03-31")

    url = f"/placements/{pid}/collaborators"
    resp = await client.post(url, json={"recruiter_id": "rec_a", "role": "sourcer", "split_percentage": 90}, headers=RITA)
    assert resp.status_code == 201
    assert resp.json()["split_amount"] == 9000
    resp = await client.post(url, json={"recruiter_id": "rec_b", "role": "closer", "split_percentage": 10}, headers=RITA)
    assert resp.status_code == 201
    resp = await client.post(url, json={"recruiter_id": "rec_c", "role": "support", "split_percentage": 1}, headers=RITA)
    assert resp.status_code == 422
    assert resp.json()["error"]["code"] == "SPLIT_OVER_ALLOCATED"

    resp = await client.get(url, headers=ADMIN)
    assert [c["split_percentage"] for c in resp.json()] == [90, 10]

    resp = await client.post(f"/placements/{pid}/complete", json={}, headers=ACME)
    assert resp.json()["state"] == "completed"
    resp = await client.post(f"/placements/{pid}/fail", json={"reason": "late"}, headers=ACME)
    assert resp.status_code == 409

    assert "placement.completed" in events.types()


@pytest.mark.asyncio
async def test_placements_belong_to_their_company(client, db, candidate, other_candidate, job, recruiter):
    evil = _as("co_evil", "company")
    app = await make_application(db, candidate, job, "offer", recruiter_id="rec_rita")
    body = {"application_id": str(app.id), "salary": 100000}

    resp = await client.post("/placements", json=body, headers=evil)
    assert resp.status_code == 403
    resp = await client.post("/placements", json=body, headers=ACME)
    assert resp.status_code == 201
    url = f"/placements/{resp.json()['id']}"

    assert (await client.post(f"{url}/fail", json={"reason": "sabotage"}, headers=evil)).status_code == 403
    assert (await client.post(f"{url}/activate", json={"start_date": "2024-01-01"}, headers=evil)).status_code == 403
    assert (await client.post(f"{url}/complete", json={}, headers=evil)).status_code == 403
    assert (await client.post(f"{url}/replacement-request", headers=evil)).status_code == 403
    assert (await client.get(url, headers=evil)).status_code == 403
    assert (await client.get(url, headers=GRACE)).status_code == 403
    assert (await client.get(f"{url}/collaborators", headers=evil)).status_code == 403

    resp = await client.get(url, headers=ADA)
    assert resp.status_code == 200
    assert resp.json()["state"] == "hired"


@pytest.mark.asyncio
async def test_recommend_splits_endpoint(client):
    resp = await client.post(
        "/placements/splits/recommend",
        json={"total_recruiter_share": 1000, "roles": [{"role": "sourcer"}, {"role": "closer", "weight": 60}]},
        headers=ADMIN,
    )
    assert resp.status_code == 200
    assert [s["split_percentage"] for s in resp.json()] == [40, 60]
