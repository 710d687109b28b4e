# tests/unit/test_retry.py

from __future__ import annotations
import logging
import sys
from pathlib import Path
import pytest

# Make "src" importable
sys.path.insert(0, str(Path(__file__).resolve().parents[2] / "src"))

import babyai.resilience.retry as rt
from babyai.resilience.retry import (
    DEFAULT_RETRY_OPTIONS,
    RetryOptions,
    any_of,
    calculate_backoff_delay,
    create_retry_wrapper,
    is_persistence_retryable_error,
    is_retryable_error,
    is_retryable_error_message,
    retry,
    with_retry,
)


# -------- helpers --------

class DbError(Exception):
    def __init__(self, message: str, code: str):
        super().__init__(message)
        self.code = code


class Flaky:
    """Fails with the given errors in order, then returns 'ok'."""

    def __init__(self, *errors: Exception):
        self.errors = list(errors)
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        if self.errors:
            raise self.errors.pop(0)
        return "ok"


@pytest.fixture
def sleeps(monkeypatch):
    recorded = []

    async def fake_sleep(seconds):
        recorded.append(seconds)

    monkeypatch.setattr(rt.asyncio, "sleep", fake_sleep)
    return recorded


# -------- backoff --------

def test_backoff_without_jitter_doubles_and_caps():
    delays = [calculate_backoff_delay(i, 100, 5000, False) for i in range(8)]
    assert delays == [100, 200, 400, 800, 1600, 3200, 5000, 5000]


def test_backoff_is_monotonic_and_bounded():
    prev = 0
    for i in range(12):
        d = calculate_backoff_delay(i, 100, 5000, False)
        assert prev <= d <= 5000
        prev = d


@pytest.mark.parametrize("attempt", [0, 1, 2, 5, 10])
def test_jitter_stays_within_fifty_percent(attempt):
    base = calculate_backoff_delay(attempt, 100, 5000, False)
    for _ in range(50):
        d = calculate_backoff_delay(attempt, 100, 5000, True)
        assert base <= d <= int(base * 1.5)


def test_jitter_uses_random_source(monkeypatch):
    monkeypatch.setattr(rt.random, "random", lambda: 0.999)
    assert calculate_backoff_delay(0, 100, 5000, True) == 149
    monkeypatch.setattr(rt.random, "random", lambda: 0.0)
    assert calculate_backoff_delay(0, 100, 5000, True) == 100


def test_defaults():
    assert DEFAULT_RETRY_OPTIONS.max_retries == 3
    assert DEFAULT_RETRY_OPTIONS.base_delay_ms == 100
    assert DEFAULT_RETRY_OPTIONS.max_delay_ms == 5000
    assert DEFAULT_RETRY_OPTIONS.jitter is True
    assert DEFAULT_RETRY_OPTIONS.operation_name == "database operation"


# -------- classifiers --------

def test_persistence_codes():
    for code in ("P1001", "P1002", "P1008", "P1017", "P2024", "P2034"):
        assert is_persistence_retryable_error(DbError("x", code))
    assert not is_persistence_retryable_error(DbError("unique constraint", "P2002"))
    assert not is_persistence_retryable_error(ValueError("no code"))


def test_message_patterns_are_case_insensitive():
    assert is_retryable_error_message(RuntimeError("Connection refused"))
    assert is_retryable_error_message(RuntimeError("ECONNRESET by peer"))
    assert is_retryable_error_message(RuntimeError("socket hang up"))
    assert is_retryable_error_message(RuntimeError("Too Many Connections"))
    assert not is_retryable_error_message(ValueError("Unique constraint failed"))


def test_default_classifier_is_or_of_both():
    assert is_retryable_error(DbError("weird", "P2034"))
    assert is_retryable_error(RuntimeError("deadlock detected"))
    assert not is_retryable_error(DbError("unique constraint", "P2002"))


def test_any_of_composes():
    never = lambda e: False
    always = lambda e: True
    assert any_of(never, always)(ValueError())
    assert not any_of(never, never)(ValueError())


# -------- with_retry --------

@pytest.mark.asyncio
async def test_success_first_try_does_not_sleep(sleeps):
    op = Flaky()
    assert await with_retry(op) == "ok"
    assert op.calls == 1
    assert sleeps == []


@pytest.mark.asyncio
async def test_transient_persistence_error_then_success(sleeps):
    op = Flaky(DbError("Transaction failed due to a write conflict", "P2034"))
    result = await with_retry(op, jitter=False)
    assert result == "ok"
    assert op.calls == 2
    assert sleeps == [0.1]


@pytest.mark.asyncio
async def test_non_retryable_error_raises_immediately(sleeps):
    err = DbError("Unique constraint failed", "P2002")
    op = Flaky(err)
    with pytest.raises(DbError) as exc:
        await with_retry(op)
    assert exc.value is err
    assert op.calls == 1
    assert sleeps == []


@pytest.mark.asyncio
async def test_exhaustion_reraises_last_error_unwrapped(sleeps):
    errors = [RuntimeError(f"connection timeout #{i}") for i in range(10)]
    op = Flaky(*errors)
    with pytest.raises(RuntimeError) as exc:
        await with_retry(op, jitter=False)
    assert op.calls == 4
    assert exc.value is errors[3]
    assert sleeps == [0.1, 0.2, 0.4]


@pytest.mark.asyncio
async def test_attempts_never_exceed_max_retries_plus_one(sleeps):
    for n in (0, 1, 2, 5):
        op = Flaky(*[RuntimeError("timeout") for _ in range(20)])
        with pytest.raises(RuntimeError):
            await with_retry(op, max_retries=n, jitter=False)
        assert op.calls == n + 1


@pytest.mark.asyncio
async def test_zero_retries_does_not_consult_classifier(sleeps):
    seen = []

    def classifier(e):
        seen.append(e)
        return True

    op = Flaky(RuntimeError("timeout"))
    with pytest.raises(RuntimeError):
        await with_retry(op, max_retries=0, is_retryable=classifier)
    assert seen == []
    assert sleeps == []


@pytest.mark.asyncio
async def test_custom_classifier_replaces_default(sleeps):
    op = Flaky(ValueError("anything"), ValueError("anything"))
    assert await with_retry(op, is_retryable=lambda e: isinstance(e, ValueError), jitter=False) == "ok"
    assert op.calls == 3


@pytest.mark.asyncio
async def test_logs_only_through_supplied_logger(sleeps, caplog):
    log = logging.getLogger("test.retry")
    caplog.set_level(logging.DEBUG)

    op = Flaky(RuntimeError("timeout"), RuntimeError("timeout"))
    await with_retry(op, logger=log, operation_name="load babies", jitter=False)
    warnings = [r for r in caplog.records if r.name == "test.retry" and r.levelno == logging.WARNING]
    assert len(warnings) == 2
    assert warnings[0].operation == "load babies"
    assert warnings[0].attempt == 1
    assert warnings[0].max_attempts == 4
    assert warnings[0].delay_ms == 100

    caplog.clear()
    op = Flaky(RuntimeError("timeout"))
    await with_retry(op, jitter=False)
    assert [r for r in caplog.records if r.name.startswith(("test.retry", "babyai"))] == []


@pytest.mark.asyncio
async def test_exhaustion_logs_error(sleeps, caplog):
    log = logging.getLogger("test.retry.exhaust")
    caplog.set_level(logging.DEBUG)
    op = Flaky(*[RuntimeError("timeout") for _ in range(5)])
    with pytest.raises(RuntimeError):
        await with_retry(op, max_retries=1, logger=log)
    errors = [r for r in caplog.records if r.name == "test.retry.exhaust" and r.levelno == logging.ERROR]
    assert len(errors) == 1
    assert "failed after 2 attempts" in errors[0].getMessage()


@pytest.mark.asyncio
async def test_unknown_option_is_rejected(sleeps):
    with pytest.raises(TypeError):
        await with_retry(Flaky(), retries=5)


# -------- profiles and decorator --------

@pytest.mark.asyncio
async def test_wrapper_binds_defaults_and_allows_overrides(sleeps):
    db_retry = create_retry_wrapper(max_retries=1, jitter=False)
    op = Flaky(RuntimeError("timeout"), RuntimeError("timeout"))
    with pytest.raises(RuntimeError):
        await db_retry(op)
    assert op.calls == 2

    op = Flaky(RuntimeError("timeout"), RuntimeError("timeout"))
    assert await db_retry(op, max_retries=2) == "ok"
    assert db_retry.options.max_retries == 1


@pytest.mark.asyncio
async def test_decorator_retries_and_names_operation(sleeps, caplog):
    log = logging.getLogger("test.retry.deco")
    caplog.set_level(logging.WARNING)
    calls = []

    @retry(logger=log, jitter=False)
    async def fetch_feedings(baby_id):
        calls.append(baby_id)
        if len(calls) < 2:
            raise RuntimeError("connection reset")
        return [baby_id]

    assert await fetch_feedings("b1") == ["b1"]
    assert calls == ["b1", "b1"]
    assert fetch_feedings.__name__ == "fetch_feedings"
    assert "fetch_feedings" in caplog.records[0].operation


def test_options_are_immutable():
    with pytest.raises(Exception):
        DEFAULT_RETRY_OPTIONS.max_retries = 10  # type: ignore[misc]
    assert RetryOptions().merged(max_retries=7).max_retries == 7
