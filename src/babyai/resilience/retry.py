"""
Retry with exponential backoff and jitter for any awaitable operation
(AI backend calls and persistence calls alike).

    result = await with_retry(lambda: repo.save(item), operation_name="save item")

The last error is re-raised unchanged when retries run out, so callers can
still match on the original exception type.
"""
from __future__ import annotations
import asyncio
import functools
import logging
import math
import random
from dataclasses import dataclass, replace
from typing import Any, Awaitable, Callable, Optional, TypeVar

T = TypeVar("T")

Classifier = Callable[[BaseException], bool]

# Persistence-layer codes for transient failures. These must track the error
# taxonomy the persistence collaborator emits.
RETRYABLE_PERSISTENCE_ERROR_CODES = frozenset({
    "P1001",  # can't reach database server
    "P1002",  # database server timed out
    "P1008",  # operation timed out
    "P1017",  # server closed the connection
    "P2024",  # timed out fetching a connection from the pool
    "P2034",  # write conflict or deadlock
})

RETRYABLE_ERROR_MESSAGES = (
    "connection",
    "timeout",
    "deadlock",
    "econnrefused",
    "econnreset",
    "etimedout",
    "enotfound",
    "socket hang up",
    "connection terminated unexpectedly",
    "connection lost",
    "too many connections",
)


def is_persistence_retryable_error(error: BaseException) -> bool:
    code = getattr(error, "code", None)
    return isinstance(code, str) and code in RETRYABLE_PERSISTENCE_ERROR_CODES


def is_retryable_error_message(error: BaseException) -> bool:
    message = getattr(error, "message", None)
    if not isinstance(message, str):
        message = str(error)
    lower = message.lower()
    return any(pattern in lower for pattern in RETRYABLE_ERROR_MESSAGES)


def any_of(*classifiers: Classifier) -> Classifier:
    """Compose classifiers with OR."""
    def check(error: BaseException) -> bool:
        return any(c(error) for c in classifiers)
    return check


is_retryable_error: Classifier = any_of(is_persistence_retryable_error, is_retryable_error_message)


@dataclass(frozen=True)
class RetryOptions:
    max_retries: int = 3
    base_delay_ms: int = 100
    max_delay_ms: int = 5000
    jitter: bool = True
    is_retryable: Optional[Classifier] = None  # None -> is_retryable_error
    operation_name: str = "database operation"
    logger: Optional[logging.Logger] = None

    def merged(self, **overrides: Any) -> "RetryOptions":
        """Copy with *overrides* applied; unknown option names raise TypeError."""
        return replace(self, **overrides) if overrides else self


DEFAULT_RETRY_OPTIONS = RetryOptions()


def calculate_backoff_delay(attempt: int, base_delay_ms: int, max_delay_ms: int, jitter: bool) -> int:
    """
    Delay in milliseconds before retrying after 0-indexed *attempt*:
    min(base * 2**attempt, max), plus up to 50% random jitter when enabled.
    """
    delay = min(base_delay_ms * (2 ** attempt), max_delay_ms)
    if jitter:
        delay += random.random() * delay * 0.5
    return int(math.floor(delay))


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    options: Optional[RetryOptions] = None,
    **overrides: Any,
) -> T:
    """
    Run *operation* until it succeeds, fails with a non-retryable error, or has
    been tried max_retries + 1 times. Attempts are strictly sequential.
    """
    opts = (options or DEFAULT_RETRY_OPTIONS).merged(**overrides)
    check = opts.is_retryable or is_retryable_error
    log = opts.logger
    total = opts.max_retries + 1

    attempt = 0
    while True:
        try:
            return await operation()
        except Exception as e:
            if attempt >= opts.max_retries:
                if log:
                    log.error(
                        "%s failed after %d attempts: %s", opts.operation_name, total, e,
                        extra={"operation": opts.operation_name, "attempt": attempt + 1,
                               "max_attempts": total, "error": str(e)},
                    )
                raise
            if not check(e):
                if log:
                    log.debug(
                        "%s failed with non-retryable error: %s", opts.operation_name, e,
                        extra={"operation": opts.operation_name, "attempt": attempt + 1,
                               "max_attempts": total, "error": str(e)},
                    )
                raise

            delay = calculate_backoff_delay(attempt, opts.base_delay_ms, opts.max_delay_ms, opts.jitter)
            if log:
                log.warning(
                    "%s failed (attempt %d/%d), retrying in %dms: %s",
                    opts.operation_name, attempt + 1, total, delay, e,
                    extra={"operation": opts.operation_name, "attempt": attempt + 1,
                           "max_attempts": total, "delay_ms": delay, "error": str(e)},
                )
        await asyncio.sleep(delay / 1000)
        attempt += 1


def create_retry_wrapper(defaults: Optional[RetryOptions] = None, **default_overrides: Any):
    """
    Retry profile: pre-bind options for repeated use.

        db_retry = create_retry_wrapper(max_retries=5, logger=log)
        users = await db_retry(lambda: repo.find_users(), operation_name="find users")
    """
    base = (defaults or DEFAULT_RETRY_OPTIONS).merged(**default_overrides)

    async def run(operation: Callable[[], Awaitable[T]], **overrides: Any) -> T:
        return await with_retry(operation, base, **overrides)

    run.options = base  # type: ignore[attr-defined]
    return run


def retry(options: Optional[RetryOptions] = None, **overrides: Any):
    """
    Decorator form for coroutine functions. operation_name defaults to the
    function's qualified name.
    """
    def deco(fn: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        opts = (options or DEFAULT_RETRY_OPTIONS).merged(**overrides)
        if "operation_name" not in overrides and (options is None or options.operation_name == DEFAULT_RETRY_OPTIONS.operation_name):
            opts = opts.merged(operation_name=fn.__qualname__)

        @functools.wraps(fn)
        async def wrapper(*args: Any, **kwargs: Any) -> T:
            return await with_retry(lambda: fn(*args, **kwargs), opts)
        return wrapper
    return deco
