"""
Unit tests for pipeline messages and payload types.
"""

import pytest

from jobflow.constants import JobStatus, Outcome
from jobflow.errors import ExecutionFailure, InvalidMessage
from jobflow.types.events import Demand, JobBatch, NewWork, Revoke, Shutdown
from jobflow.types.job import ClaimedJob, TaskCall


class TestDemand:
    def test_positive_count(self):
        assert Demand(3).count == 3

    @pytest.mark.parametrize("count", [0, -1, 1.5, True, "3"])
    def test_invalid_count(self, count):
        with pytest.raises(InvalidMessage):
            Demand(count)

    def test_invalid_message_is_value_error(self):
        with pytest.raises(ValueError):
            Demand(0)


class TestRevoke:
    def test_positive_count(self):
        assert Revoke(2).count == 2

    @pytest.mark.parametrize("count", [0, -3, 2.0, False])
    def test_invalid_count(self, count):
        with pytest.raises(InvalidMessage, match="Revoke"):
            Revoke(count)


class TestJobBatch:
    def test_length(self):
        batch = JobBatch((ClaimedJob(1, b""), ClaimedJob(2, b"")))
        assert len(batch) == 2

    def test_empty_batch_rejected(self):
        with pytest.raises(InvalidMessage):
            JobBatch(())

    def test_non_job_rejected(self):
        with pytest.raises(InvalidMessage):
            JobBatch((1,))


def test_signals_are_immutable_values():
    assert NewWork() == NewWork()
    assert Shutdown() == Shutdown()


class TestTaskCall:
    def test_decode_encoded(self):
        call = TaskCall(task="echo", args=[1], kwargs={"x": "y"})

        assert TaskCall.decode(call.encode()) == call

    def test_decode_defaults(self):
        call = TaskCall.decode(b'{"task": "echo"}')

        assert call.args == []
        assert call.kwargs == {}

    @pytest.mark.parametrize("payload", [b"garbage", b'{"args": []}', b'{"task": ""}'])
    def test_decode_invalid(self, payload):
        with pytest.raises(ExecutionFailure):
            TaskCall.decode(payload)


def test_outcome_maps_to_terminal_status():
    for outcome in Outcome:
        assert outcome.status.is_terminal

    assert not JobStatus.WAITING.is_terminal
    assert not JobStatus.RUNNING.is_terminal
