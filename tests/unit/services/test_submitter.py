"""Unit tests for JobSubmitter validation and submission."""

import uuid

import pytest

from app.core.exceptions import RequestValidationError
from app.models.generation_job import JobStatus
from app.services.generation.submitter import JobSubmitter

from tests.helpers.fakes import InMemoryJobStore, RecordingDispatcher


@pytest.fixture
def store() -> InMemoryJobStore:
    return InMemoryJobStore()


@pytest.fixture
def dispatcher() -> RecordingDispatcher:
    return RecordingDispatcher()


@pytest.fixture
def submitter(store, dispatcher) -> JobSubmitter:
    return JobSubmitter(store, dispatcher)


def _fields(exc: RequestValidationError) -> set[str]:
    return {e.field for e in exc.errors}


class TestValidate:
    def test_minimal_request_fills_defaults(self, submitter):
        snapshot = submitter.validate({"goal": "strength", "days": 4})

        assert snapshot["goal"] == "strength"
        assert snapshot["days"] == 4
        assert snapshot["weight_unit"] == "kg"
        assert snapshot["equipment"] == []
        assert snapshot["is_free_trial"] is False

    def test_missing_required_field(self, submitter):
        with pytest.raises(RequestValidationError) as exc_info:
            submitter.validate({"days": 4})

        assert _fields(exc_info.value) == {"goal"}
        assert exc_info.value.errors[0].code == "missing"

    def test_unknown_enum_value(self, submitter):
        with pytest.raises(RequestValidationError) as exc_info:
            submitter.validate({"goal": "juggling", "days": 4})
        assert "goal" in _fields(exc_info.value)

    @pytest.mark.parametrize("days", [1, 8, 0, -3])
    def test_days_out_of_range(self, submitter, days):
        with pytest.raises(RequestValidationError) as exc_info:
            submitter.validate({"goal": "strength", "days": days})
        assert _fields(exc_info.value) == {"days"}

    def test_nested_field_path(self, submitter):
        with pytest.raises(RequestValidationError) as exc_info:
            submitter.validate({"goal": "strength", "days": 3, "equipment": ["full_gym", "sled"]})
        assert _fields(exc_info.value) == {"equipment.1"}

    def test_non_positive_one_rep_max(self, submitter):
        with pytest.raises(RequestValidationError) as exc_info:
            submitter.validate({"goal": "strength", "days": 3, "squat_1rm": 0})
        assert _fields(exc_info.value) == {"squat_1rm"}

    def test_unknown_field_rejected(self, submitter):
        with pytest.raises(RequestValidationError) as exc_info:
            submitter.validate({"goal": "strength", "days": 3, "favourite_colour": "red"})
        assert _fields(exc_info.value) == {"favourite_colour"}

    def test_reports_every_problem(self, submitter):
        with pytest.raises(RequestValidationError) as exc_info:
            submitter.validate({"days": 12, "weight_unit": "stone"})
        assert _fields(exc_info.value) == {"goal", "days", "weight_unit"}

    def test_non_object_payload(self, submitter):
        with pytest.raises(RequestValidationError) as exc_info:
            submitter.validate(["goal", "strength"])  # type: ignore[arg-type]
        assert _fields(exc_info.value) == {"request"}


class TestSubmit:
    @pytest.mark.asyncio
    async def test_creates_pending_job_and_dispatches(self, submitter, store, dispatcher):
        owner = uuid.uuid4()

        job_id = await submitter.submit(owner, {"goal": "strength", "days": 4})

        job = store.jobs[job_id]
        assert job.status == JobStatus.PENDING.value
        assert job.user_id == owner
        assert dispatcher.dispatched == [job_id]

    @pytest.mark.asyncio
    async def test_snapshot_equals_validated_request(self, submitter, store):
        request = {"goal": "hypertrophy", "days": 5, "equipment": ["dumbbells"]}

        job_id = await submitter.submit(uuid.uuid4(), request)

        assert store.jobs[job_id].input_snapshot == submitter.validate(request)

    @pytest.mark.asyncio
    async def test_snapshot_unaffected_by_later_mutation(self, submitter, store):
        request = {"goal": "strength", "days": 4, "equipment": ["full_gym"]}

        job_id = await submitter.submit(uuid.uuid4(), request)
        request["equipment"].append("kettlebells")
        request["days"] = 6

        snapshot = store.jobs[job_id].input_snapshot
        assert snapshot["equipment"] == ["full_gym"]
        assert snapshot["days"] == 4

    @pytest.mark.asyncio
    async def test_invalid_request_creates_nothing(self, submitter, store, dispatcher):
        with pytest.raises(RequestValidationError):
            await submitter.submit(uuid.uuid4(), {"days": 4})

        assert store.jobs == {}
        assert dispatcher.dispatched == []

    @pytest.mark.asyncio
    async def test_dispatch_failure_leaves_job_pending(self, store):
        submitter = JobSubmitter(store, RecordingDispatcher(fail=True))

        job_id = await submitter.submit(uuid.uuid4(), {"goal": "power", "days": 3})

        assert store.jobs[job_id].status == JobStatus.PENDING.value
