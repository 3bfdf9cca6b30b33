"""Async test fixtures for ATS tests using SQLite."""

from __future__ import annotations

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from ats.config import EnginePolicy
from ats.database import get_db
from ats.engine.clock import utcnow
from ats.engine.stages import ApplicationStage
from ats.events import MemoryEventPublisher
from ats.models import Application, Base, Candidate, Job, Recruiter, RecruiterCandidate
from ats.routers.deps import get_events
from ats.services.application_svc import ApplicationWorkflow


@pytest.fixture(scope="session")
def anyio_backend():
    return "asyncio"


@pytest_asyncio.fixture
async def engine():
    eng = create_async_engine("sqlite+aiosqlite:///:memory:", echo=False)
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest_asyncio.fixture
async def db(engine):
    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session


@pytest.fixture
def events() -> MemoryEventPublisher:
    return MemoryEventPublisher()


@pytest.fixture
def policy() -> EnginePolicy:
    return EnginePolicy()


@pytest.fixture
def workflow(db, events, policy) -> ApplicationWorkflow:
    return ApplicationWorkflow(db, events, policy)


@pytest_asyncio.fixture
async def job(db) -> Job:
    job = Job(company_id="co_acme", title="Backend Engineer", fee_percentage=20.0)
    db.add(job)
    await db.commit()
    await db.refresh(job)
    return job


@pytest_asyncio.fixture
async def candidate(db) -> Candidate:
    candidate = Candidate(full_name="Ada Lovelace", email="ada@example.com", user_id="user_ada")
    db.add(candidate)
    await db.commit()
    await db.refresh(candidate)
    return candidate


@pytest_asyncio.fixture
async def other_candidate(db) -> Candidate:
    candidate = Candidate(full_name="Grace Hopper", email="grace@example.com", user_id="user_grace")
    db.add(candidate)
    await db.commit()
    await db.refresh(candidate)
    return candidate


@pytest_asyncio.fixture
async def recruiter(db) -> Recruiter:
    recruiter = Recruiter(id="rec_rita", user_id="user_rita", name="Rita Recruiter", status="active")
    db.add(recruiter)
    await db.commit()
    return recruiter


@pytest_asyncio.fixture
async def represented(db, recruiter, candidate) -> RecruiterCandidate:
    """Rita actively represents Ada."""
    link = RecruiterCandidate(
        recruiter_id=recruiter.id,
        candidate_id=candidate.id,
        status="active",
        relationship_start_date=utcnow(),
    )
    db.add(link)
    await db.commit()
    return link


async def make_application(
    db: AsyncSession,
    candidate: Candidate,
    job: Job,
    stage: ApplicationStage | str,
    recruiter_id: str | None = None,
    **fields,
) -> Application:
    """Insert an application directly at ``stage``, bypassing the workflow."""
    application = Application(
        candidate_id=candidate.id,
        job_id=job.id,
        company_id=job.company_id,
        recruiter_id=recruiter_id,
        stage=ApplicationStage(stage).value,
        **fields,
    )
    db.add(application)
    await db.commit()
    await db.refresh(application)
    return application


@pytest_asyncio.fixture
async def client(engine, events):
    """HTTPX async test client against the ATS app."""
    from ats.app import app

    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_events] = lambda: events

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c

    app.dependency_overrides.clear()
