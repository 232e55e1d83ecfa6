"""Tests for the report job state machine."""

from datetime import timedelta

import pytest

from api.exceptions import InvalidTransitionError, ProviderError
from tests.fixtures import FIXED_NOW, PERIOD, URL
from worker.jobs import Job, JobStage, JobStatus


def _job() -> Job:
    return Job(id="job-1", url=URL, period_start=PERIOD, status=JobStatus.PENDING, created_at=FIXED_NOW)


class TestJobTransitions:
    """Tests for Job.transition."""

    def test_happy_path(self) -> None:
        job = _job()
        started = FIXED_NOW + timedelta(seconds=1)
        finished = FIXED_NOW + timedelta(seconds=30)

        job.transition(JobStatus.PROCESSING, started)
        assert job.started_at == started
        assert job.is_active

        job.transition(JobStatus.COMPLETED, finished)
        assert job.completed_at == finished
        assert job.progress == 100
        assert job.stage == JobStage.DONE
        assert job.is_terminal

    def test_failure_keeps_progress(self) -> None:
        job = _job()
        job.transition(JobStatus.PROCESSING, FIXED_NOW)
        job.advance(JobStage.TREND)

        job.transition(JobStatus.FAILED, FIXED_NOW)

        assert job.progress == 50
        assert job.is_terminal

    def test_fail_records_message(self) -> None:
        job = _job()
        job.transition(JobStatus.PROCESSING, FIXED_NOW)

        job.fail(ProviderError("measurement-api", "HTTP 500"), FIXED_NOW)

        assert job.status == JobStatus.FAILED
        assert job.error == "measurement-api: HTTP 500"

    def test_fail_uses_exception_type_without_message(self) -> None:
        job = _job()
        job.transition(JobStatus.PROCESSING, FIXED_NOW)

        job.fail(ConnectionError(), FIXED_NOW)

        assert job.error == "ConnectionError"

    def test_fail_rejected_when_not_processing(self) -> None:
        job = _job()

        with pytest.raises(InvalidTransitionError):
            job.fail(ConnectionError("down"), FIXED_NOW)
        assert job.error is None

    @pytest.mark.parametrize("terminal", [JobStatus.COMPLETED, JobStatus.FAILED, JobStatus.CANCELLED])
    def test_terminal_states_are_final(self, terminal: JobStatus) -> None:
        job = _job()
        job.transition(JobStatus.PROCESSING, FIXED_NOW)
        job.transition(terminal, FIXED_NOW)

        with pytest.raises(InvalidTransitionError):
            job.transition(JobStatus.PROCESSING, FIXED_NOW)

    def test_cannot_skip_processing(self) -> None:
        with pytest.raises(InvalidTransitionError) as exc_info:
            _job().transition(JobStatus.COMPLETED, FIXED_NOW)
        assert exc_info.value.status_code == 409

    def test_pending_can_be_cancelled(self) -> None:
        job = _job()
        job.transition(JobStatus.CANCELLED, FIXED_NOW)
        assert job.status == JobStatus.CANCELLED
        assert job.started_at is None


class TestJobProgress:
    """Tests for stage progress."""

    def test_progress_never_decreases(self) -> None:
        job = _job()
        job.advance(JobStage.FORECAST)
        job.advance(JobStage.SCORING)

        assert job.stage == JobStage.SCORING
        assert job.progress == 85

    def test_round_trip(self) -> None:
        job = _job()
        job.transition(JobStatus.PROCESSING, FIXED_NOW)
        job.advance(JobStage.RECOMMENDATIONS)
        job.estimated_completion = FIXED_NOW + timedelta(minutes=5)

        assert Job.from_dict(job.to_dict()) == job
