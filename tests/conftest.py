"""Root conftest: test infrastructure for all backend tests.

Provides:
- In-memory pipeline (job store, dispatcher, stub generators, cache)
- Principals for the caller and a second user
- API clients with dependency overrides (auth, pipeline, RLS session)
- Rate limiter reset between tests

Nothing here touches the database or the Anthropic API.
"""

from __future__ import annotations

import uuid
from datetime import timedelta
from unittest.mock import AsyncMock

import pytest
from httpx import ASGITransport, AsyncClient

from app.api.deps.auth import Principal
from app.config.settings import settings
from app.core.rate_limit import rate_limiter
from app.services.generation import GenerationWorker
from app.services.pipeline import Pipeline
from app.services.recommendations import CoachRecommendationService, RecommendationCache

from tests.helpers.fakes import (
    SAMPLE_RECOMMENDATION,
    FakeClock,
    InMemoryCacheRepository,
    InMemoryJobStore,
    RecordingDispatcher,
    StubGenerator,
)

TEST_CRON_SECRET = "test-cron-secret"


# ─────────────────────────────────────────────────────────────────────────────
# Principals
# ─────────────────────────────────────────────────────────────────────────────


@pytest.fixture
def principal() -> Principal:
    return Principal(id=uuid.uuid4(), email="athlete@example.com")


@pytest.fixture
def second_principal() -> Principal:
    return Principal(id=uuid.uuid4(), email="other@example.com")


# ─────────────────────────────────────────────────────────────────────────────
# In-memory pipeline
# ─────────────────────────────────────────────────────────────────────────────


@pytest.fixture
def job_store() -> InMemoryJobStore:
    return InMemoryJobStore()


@pytest.fixture
def dispatcher() -> RecordingDispatcher:
    return RecordingDispatcher()


@pytest.fixture
def program_generator() -> StubGenerator:
    return StubGenerator()


@pytest.fixture
def coach_generator() -> StubGenerator:
    return StubGenerator(result=SAMPLE_RECOMMENDATION)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def cache_repository() -> InMemoryCacheRepository:
    return InMemoryCacheRepository()


@pytest.fixture
def pipeline(
    job_store, dispatcher, program_generator, coach_generator, cache_repository, clock
) -> Pipeline:
    worker = GenerationWorker(job_store, program_generator, timeout_seconds=5)
    cache = RecommendationCache(
        cache_repository,
        ttl=timedelta(minutes=30),
        compute_timeout_seconds=5,
        clock=clock,
    )
    coach = CoachRecommendationService(cache, coach_generator, clock=clock)
    return Pipeline(job_store, worker, dispatcher, coach)


# ─────────────────────────────────────────────────────────────────────────────
# API clients
# ─────────────────────────────────────────────────────────────────────────────


@pytest.fixture
def rls_db() -> AsyncMock:
    """Stand-in for the RLS-scoped session used by listing endpoints."""
    return AsyncMock()


def _install_overrides(app, pipeline: Pipeline, rls_db: AsyncMock, user: Principal | None):
    from app.api.deps.auth import get_current_user, get_db_with_rls
    from app.services.pipeline import get_pipeline

    app.dependency_overrides[get_pipeline] = lambda: pipeline

    async def override_db_rls():
        yield rls_db

    app.dependency_overrides[get_db_with_rls] = override_db_rls

    if user is not None:
        app.dependency_overrides[get_current_user] = lambda: user


@pytest.fixture
async def api_client(pipeline, rls_db, principal):
    """HTTP client authenticated as `principal`, backed by the in-memory pipeline.

    Overrides: get_current_user, get_pipeline, get_db_with_rls
    """
    from app.main import app

    _install_overrides(app, pipeline, rls_db, principal)

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture
async def unauth_client(pipeline, rls_db):
    """HTTP client with no credentials; real JWT validation stays in place."""
    from app.main import app

    _install_overrides(app, pipeline, rls_db, None)

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture
def cron_secret(monkeypatch) -> str:
    monkeypatch.setattr(settings, "cron_secret", TEST_CRON_SECRET)
    return TEST_CRON_SECRET


@pytest.fixture(autouse=True)
def reset_rate_limiter():
    rate_limiter.reset()
    yield
    rate_limiter.reset()
