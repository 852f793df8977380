from __future__ import annotations

import pytest

from tests.zapguard.support.fakes import FakeClock, RecordingHooks
from zapguard import (
    BreakerHooks,
    BreakerState,
    CircuitBreaker,
    CircuitBreakerConfig,
    CircuitOpenError,
    CircuitState,
)


def _open(breaker: CircuitBreaker) -> None:
    for _ in range(breaker.config.failure_threshold):
        breaker.record_failure()
    assert breaker.is_open()


def _half_open(breaker: CircuitBreaker, clock: FakeClock) -> None:
    _open(breaker)
    clock.advance(breaker.config.reset_timeout_ms)
    assert breaker.can_execute() is True
    assert breaker.is_half_open()


def test_starts_closed_with_zero_counters(config: CircuitBreakerConfig) -> None:
    breaker = CircuitBreaker(config)

    assert breaker.get_state() == BreakerState(
        status=CircuitState.CLOSED,
        failure_count=0,
        success_count=0,
        opened_at=None,
    )
    assert breaker.is_closed() is True
    assert breaker.is_open() is False
    assert breaker.is_half_open() is False


def test_closed_permits_calls(config: CircuitBreakerConfig) -> None:
    breaker = CircuitBreaker(config)

    assert breaker.can_execute() is True
    assert breaker.is_closed()


@pytest.mark.parametrize("threshold", [1, 2, 5])
def test_opens_exactly_at_failure_threshold(threshold: int, clock: FakeClock) -> None:
    breaker = CircuitBreaker(
        CircuitBreakerConfig(
            failure_threshold=threshold,
            success_threshold=1,
            reset_timeout_ms=1000,
        )
    )

    for expected_count in range(1, threshold):
        breaker.record_failure()
        assert breaker.is_closed()
        assert breaker.get_state().failure_count == expected_count

    breaker.record_failure()

    assert breaker.get_state() == BreakerState(
        status=CircuitState.OPEN,
        failure_count=0,
        success_count=0,
        opened_at=clock.now_ms(),
    )


def test_success_while_closed_is_a_no_op(config: CircuitBreakerConfig) -> None:
    breaker = CircuitBreaker(config)
    breaker.record_failure()

    breaker.record_success()

    assert breaker.get_state().failure_count == 1
    assert breaker.get_state().success_count == 0


def test_open_rejects_until_reset_timeout(
    config: CircuitBreakerConfig,
    clock: FakeClock,
) -> None:
    breaker = CircuitBreaker(config, name="svc")
    _open(breaker)

    with pytest.raises(CircuitOpenError) as excinfo:
        breaker.can_execute()
    assert excinfo.value.breaker_name == "svc"
    assert excinfo.value.retry_after_ms == 1000

    clock.advance(999)
    with pytest.raises(CircuitOpenError) as excinfo:
        breaker.can_execute()
    assert excinfo.value.retry_after_ms == 1
    assert breaker.is_open()


def test_open_admits_probe_at_reset_deadline(
    config: CircuitBreakerConfig,
    clock: FakeClock,
) -> None:
    breaker = CircuitBreaker(config)
    _open(breaker)
    clock.advance(1000)

    assert breaker.can_execute() is True
    assert breaker.get_state() == BreakerState(status=CircuitState.HALF_OPEN)


def test_open_without_opened_at_is_probe_eligible(
    config: CircuitBreakerConfig,
) -> None:
    breaker = CircuitBreaker(config)
    breaker.restore(BreakerState(status=CircuitState.OPEN))

    assert breaker.can_execute() is True
    assert breaker.is_half_open()


def test_failure_while_open_is_a_no_op(
    config: CircuitBreakerConfig,
    clock: FakeClock,
) -> None:
    breaker = CircuitBreaker(config)
    _open(breaker)
    opened = breaker.get_state()

    clock.advance(500)
    breaker.record_failure()

    assert breaker.get_state() == opened


def test_success_while_open_is_discarded(
    config: CircuitBreakerConfig,
    clock: FakeClock,
) -> None:
    breaker = CircuitBreaker(config)
    _open(breaker)
    opened = breaker.get_state()

    breaker.record_success()

    assert breaker.get_state() == opened


def test_full_recovery_cycle(config: CircuitBreakerConfig, clock: FakeClock) -> None:
    breaker = CircuitBreaker(config)

    breaker.record_failure()
    breaker.record_failure()
    assert breaker.is_open()

    with pytest.raises(CircuitOpenError):
        breaker.can_execute()

    clock.advance(1000)
    assert breaker.can_execute() is True
    state = breaker.get_state()
    assert state.status == CircuitState.HALF_OPEN
    assert state.failure_count == 0
    assert state.success_count == 0

    breaker.record_success()
    assert breaker.is_half_open()
    assert breaker.get_state().success_count == 1

    breaker.record_success()
    assert breaker.get_state() == BreakerState(status=CircuitState.CLOSED)


def test_half_open_permits_further_calls(
    config: CircuitBreakerConfig,
    clock: FakeClock,
) -> None:
    breaker = CircuitBreaker(config)
    _half_open(breaker, clock)

    assert breaker.can_execute() is True
    assert breaker.is_half_open()


def test_single_failure_in_half_open_reopens(
    config: CircuitBreakerConfig,
    clock: FakeClock,
) -> None:
    breaker = CircuitBreaker(config)
    _half_open(breaker, clock)
    breaker.record_success()
    clock.advance(250)

    breaker.record_failure()

    assert breaker.get_state() == BreakerState(
        status=CircuitState.OPEN,
        opened_at=clock.now_ms(),
    )
    with pytest.raises(CircuitOpenError):
        breaker.can_execute()


def test_half_open_failure_threshold_can_match_closed_threshold(
    clock: FakeClock,
) -> None:
    breaker = CircuitBreaker(
        CircuitBreakerConfig(
            failure_threshold=2,
            success_threshold=3,
            reset_timeout_ms=0,
            half_open_failure_threshold=2,
        )
    )
    _half_open(breaker, clock)

    breaker.record_failure()
    assert breaker.is_half_open()
    assert breaker.get_state().failure_count == 1

    breaker.record_failure()
    assert breaker.is_open()


def test_half_open_failure_breaks_the_success_run(clock: FakeClock) -> None:
    breaker = CircuitBreaker(
        CircuitBreakerConfig(
            failure_threshold=3,
            success_threshold=2,
            reset_timeout_ms=0,
            half_open_failure_threshold=3,
        )
    )
    _half_open(breaker, clock)

    breaker.record_success()
    breaker.record_failure()
    assert breaker.get_state() == BreakerState(
        status=CircuitState.HALF_OPEN,
        failure_count=1,
        success_count=0,
    )

    breaker.record_success()
    assert breaker.is_half_open()
    assert breaker.get_state().success_count == 1

    breaker.record_success()
    assert breaker.is_closed()


def test_get_state_is_an_isolated_snapshot(config: CircuitBreakerConfig) -> None:
    breaker = CircuitBreaker(config)
    snapshot = breaker.get_state()

    with pytest.raises(AttributeError):
        snapshot.failure_count = 10  # type: ignore[misc]

    breaker.record_failure()

    assert snapshot.failure_count == 0
    assert breaker.get_state().failure_count == 1
    assert breaker.get_state() is not breaker.get_state()


def test_state_is_replaced_not_mutated(config: CircuitBreakerConfig) -> None:
    recording = RecordingHooks()
    breaker = CircuitBreaker(
        config,
        hooks=BreakerHooks(on_state_change=recording.on_state_change),
    )

    breaker.record_failure()

    previous, current, _ = recording.state_changes[0]
    assert previous is not current
    assert previous.failure_count == 0
    assert current.failure_count == 1


def test_restore_adopts_state_and_skips_identical(
    config: CircuitBreakerConfig,
    recording_hooks: RecordingHooks,
) -> None:
    breaker = CircuitBreaker(
        config,
        hooks=BreakerHooks(on_state_change=recording_hooks.on_state_change),
    )

    breaker.restore(BreakerState())
    assert recording_hooks.state_changes == []

    restored = BreakerState(status=CircuitState.OPEN, opened_at=42)
    breaker.restore(restored)

    assert breaker.get_state() == restored
    assert len(recording_hooks.state_changes) == 1


@pytest.mark.parametrize(
    ("overrides", "message"),
    [
        ({"failure_threshold": 0}, "failure_threshold"),
        ({"success_threshold": 0}, "success_threshold"),
        ({"reset_timeout_ms": -1}, "reset_timeout_ms"),
        ({"half_open_failure_threshold": 0}, "half_open_failure_threshold"),
    ],
)
def test_config_rejects_out_of_range_values(
    overrides: dict[str, int],
    message: str,
) -> None:
    values = {
        "failure_threshold": 1,
        "success_threshold": 1,
        "reset_timeout_ms": 0,
    }
    values.update(overrides)

    with pytest.raises(ValueError, match=message):
        CircuitBreakerConfig(**values)


def test_zero_reset_timeout_probes_immediately(clock: FakeClock) -> None:
    breaker = CircuitBreaker(
        CircuitBreakerConfig(
            failure_threshold=1,
            success_threshold=1,
            reset_timeout_ms=0,
        )
    )
    breaker.record_failure()

    assert breaker.can_execute() is True
    breaker.record_success()
    assert breaker.is_closed()
