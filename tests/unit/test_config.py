"""
Unit tests for settings.
"""

import pytest
from pydantic import ValidationError

from jobflow.config import Settings
from jobflow.constants import CONSUMERS_PER_CPU, DispatchMode


def test_defaults(monkeypatch):
    monkeypatch.setattr("jobflow.config.os.cpu_count", lambda: 2)

    settings = Settings(_env_file=None)

    assert settings.dispatch_mode is DispatchMode.PARTITIONED
    assert settings.job_timeout_ms == 1000
    assert settings.job_timeout_seconds == 1.0
    assert settings.consumer_max_demand == 10
    assert settings.reconcile_max_age_seconds == 300.0
    assert settings.effective_pool_size == CONSUMERS_PER_CPU * 2


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("DISPATCH_MODE", "broadcast")
    monkeypatch.setenv("JOB_TIMEOUT_MS", "250")
    monkeypatch.setenv("CONSUMER_POOL_SIZE", "3")

    settings = Settings(_env_file=None)

    assert settings.dispatch_mode is DispatchMode.BROADCAST
    assert settings.job_timeout_seconds == 0.25
    assert settings.effective_pool_size == 3


@pytest.mark.parametrize(
    "field",
    ["job_timeout_ms", "consumer_max_demand", "consumer_pool_size"],
)
def test_rejects_non_positive(field):
    with pytest.raises(ValidationError):
        Settings(_env_file=None, **{field: 0})


def test_reconcile_max_age_must_exceed_batch_budget():
    """A job still inside its batch's budget must not look stranded."""
    with pytest.raises(ValidationError, match="reconcile_max_age_seconds"):
        Settings(
            _env_file=None,
            job_timeout_ms=2000,
            consumer_max_demand=1,
            reconcile_max_age_seconds=0.2,
        )

    with pytest.raises(ValidationError):
        Settings(
            _env_file=None,
            job_timeout_ms=1000,
            consumer_max_demand=10,
            reconcile_max_age_seconds=10.0,
        )

    settings = Settings(
        _env_file=None,
        job_timeout_ms=1000,
        consumer_max_demand=10,
        reconcile_max_age_seconds=10.5,
    )
    assert settings.reconcile_max_age_seconds == 10.5
