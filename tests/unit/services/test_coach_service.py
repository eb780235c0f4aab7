"""Unit tests for CoachRecommendationService."""

import uuid
from datetime import UTC, datetime

import pytest

from app.core.exceptions import GenerationError, RequestValidationError
from app.services.recommendations import (
    COACH_KEY_FIELDS,
    CoachRecommendationService,
    RecommendationCache,
    calendar_period,
    owner_from_key,
)

from tests.helpers.fakes import (
    SAMPLE_RECOMMENDATION,
    FakeClock,
    InMemoryCacheRepository,
    StubGenerator,
)

CONTEXT = {"fitness_goal": "strength", "workout_sessions": 4, "workout_days_this_week": 3}


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2026, 3, 30, 9, 0, tzinfo=UTC))


@pytest.fixture
def repository() -> InMemoryCacheRepository:
    return InMemoryCacheRepository()


@pytest.fixture
def generator() -> StubGenerator:
    return StubGenerator(result=SAMPLE_RECOMMENDATION)


@pytest.fixture
def service(repository, generator, clock) -> CoachRecommendationService:
    cache = RecommendationCache(repository, ttl=None, compute_timeout_seconds=1, clock=clock)
    return CoachRecommendationService(cache, generator, clock=clock)


class TestBuildContext:
    def test_adds_period_and_defaults(self, service):
        data = service.build_context({"fitness_goal": "strength"})

        assert data["period"] == "2026-03"
        assert data["workout_sessions"] == 0
        assert data["avg_workout_minutes"] is None
        assert set(data) == set(COACH_KEY_FIELDS)

    def test_invalid_context(self, service):
        with pytest.raises(RequestValidationError) as exc_info:
            service.build_context({"workout_days_this_week": 9, "mood": "great"})

        assert {e.field for e in exc_info.value.errors} == {"workout_days_this_week", "mood"}

    def test_calendar_period(self):
        assert calendar_period(datetime(2026, 1, 5, tzinfo=UTC)) == "2026-01"


class TestGetRecommendation:
    @pytest.mark.asyncio
    async def test_second_call_is_cached(self, service, generator):
        owner = uuid.uuid4()

        first = await service.get_recommendation(owner, CONTEXT)
        second = await service.get_recommendation(owner, dict(reversed(list(CONTEXT.items()))))

        assert first.cached is False
        assert second.cached is True
        assert second.recommendation == SAMPLE_RECOMMENDATION
        assert first.cache_key == second.cache_key
        assert len(generator.calls) == 1

    @pytest.mark.asyncio
    async def test_generator_sees_period(self, service, generator):
        await service.get_recommendation(uuid.uuid4(), CONTEXT)

        assert generator.calls[0]["period"] == "2026-03"

    @pytest.mark.asyncio
    async def test_key_rolls_over_with_month(self, service, generator, clock):
        owner = uuid.uuid4()

        march = await service.get_recommendation(owner, CONTEXT)
        clock.advance(days=3)
        april = await service.get_recommendation(owner, CONTEXT)

        assert march.cache_key != april.cache_key
        assert april.cached is False
        assert len(generator.calls) == 2

    @pytest.mark.asyncio
    async def test_week_over_week_change_is_part_of_key(self, service, generator):
        owner = uuid.uuid4()

        steady = await service.get_recommendation(owner, {**CONTEXT, "workout_sessions_change": 0})
        dropping = await service.get_recommendation(
            owner, {**CONTEXT, "workout_sessions_change": -3}
        )

        assert steady.cache_key != dropping.cache_key
        assert dropping.cached is False
        assert generator.calls[1]["workout_sessions_change"] == -3

    @pytest.mark.asyncio
    async def test_keys_are_per_owner(self, service, generator):
        alice, bob = uuid.uuid4(), uuid.uuid4()

        a = await service.get_recommendation(alice, CONTEXT)
        b = await service.get_recommendation(bob, CONTEXT)

        assert a.cache_key != b.cache_key
        assert owner_from_key(a.cache_key) == str(alice)
        assert b.cached is False
        assert len(generator.calls) == 2

    @pytest.mark.asyncio
    async def test_omitted_and_null_fields_share_entry(self, service, generator):
        owner = uuid.uuid4()

        await service.get_recommendation(owner, {"fitness_goal": "strength"})
        again = await service.get_recommendation(
            owner, {"fitness_goal": "strength", "experience_level": None}
        )

        assert again.cached is True
        assert len(generator.calls) == 1

    @pytest.mark.asyncio
    async def test_invalid_context_never_generates(self, service, generator, repository):
        with pytest.raises(RequestValidationError):
            await service.get_recommendation(uuid.uuid4(), {"workout_sessions": -1})

        assert generator.calls == []
        assert repository.upserts == 0

    @pytest.mark.asyncio
    async def test_generator_failure_is_not_cached(self, repository, clock):
        failing = StubGenerator(error=GenerationError("Provider error", code="provider_error"))
        cache = RecommendationCache(repository, compute_timeout_seconds=1, clock=clock)
        service = CoachRecommendationService(cache, failing, clock=clock)

        with pytest.raises(GenerationError):
            await service.get_recommendation(uuid.uuid4(), CONTEXT)

        assert repository.entries == {}

    @pytest.mark.asyncio
    async def test_invalidate_forces_regeneration(self, service, generator):
        owner = uuid.uuid4()
        await service.get_recommendation(owner, CONTEXT)

        assert await service.invalidate(owner) == 1
        result = await service.get_recommendation(owner, CONTEXT)

        assert result.cached is False
        assert len(generator.calls) == 2
