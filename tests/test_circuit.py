import pytest

from sql_unify.bedrock.circuit import CircuitBreaker


@pytest.fixture
def clock(monkeypatch):
    now = {"t": 100.0}
    monkeypatch.setattr("sql_unify.bedrock.circuit.time.monotonic", lambda: now["t"])
    return now


def test_opens_after_threshold_and_closes_on_trial_success(clock):
    cb = CircuitBreaker(failure_threshold=2, reset_seconds=10)

    cb.record_failure()
    assert cb.allow()
    cb.record_failure()
    assert not cb.allow()

    clock["t"] += 10
    assert cb.allow()
    cb.record_success()
    assert not cb.is_open
    assert cb.allow() and cb.allow()


def test_half_open_lets_a_single_trial_through(clock):
    cb = CircuitBreaker(failure_threshold=1, reset_seconds=10)
    cb.record_failure()
    clock["t"] += 10

    assert cb.allow()
    assert not cb.allow()


def test_failed_trial_starts_a_new_cooldown(clock):
    cb = CircuitBreaker(failure_threshold=1, reset_seconds=10)
    cb.record_failure()
    clock["t"] += 10
    assert cb.allow()

    cb.record_failure()

    assert not cb.allow()
    clock["t"] += 10
    assert cb.allow()
