from __future__ import annotations

import pytest

import zapguard.breaker as breaker_mod
from tests.zapguard.support.fakes import FakeClock, FakeLogger, RecordingHooks
from zapguard import CircuitBreakerConfig


@pytest.fixture
def fake_logger() -> FakeLogger:
    """Provide a fresh structured logger test double per test."""
    return FakeLogger()


@pytest.fixture
def clock(monkeypatch: pytest.MonkeyPatch) -> FakeClock:
    """Freeze breaker time and let the test advance it."""
    fake_clock = FakeClock()
    monkeypatch.setattr(breaker_mod, "_epoch_ms", fake_clock.now_ms)
    return fake_clock


@pytest.fixture
def recording_hooks() -> RecordingHooks:
    """Provide hook callbacks that record every invocation."""
    return RecordingHooks()


@pytest.fixture
def config() -> CircuitBreakerConfig:
    """Two failures to open, two successes to close, one second timeout."""
    return CircuitBreakerConfig(
        failure_threshold=2,
        success_threshold=2,
        reset_timeout_ms=1000,
    )
