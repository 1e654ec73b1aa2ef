"""Retry Executor - bounded retries for upstream dispatch.

Wraps an async upstream call and retries it on transient failures:
1. Errors are classified once (see error_classification.ErrorKind)
2. Network, rate-limit and 5xx failures are retried with exponential backoff
3. Auth, bad-request and unrecognized failures fail fast on the first attempt
4. After the last attempt the ORIGINAL exception is re-raised, untouched

Backoff uses asyncio.sleep, so only the retrying task is suspended.
The wrapped operation must be idempotent; nothing here deduplicates side
effects of a partially completed upstream call.
"""

import asyncio
import logging
from dataclasses import dataclass
from functools import wraps
from typing import Any, Awaitable, Callable, Optional, TypeVar

from agent_router.core.error_classification import classify_error

T = TypeVar("T")
F = TypeVar("F", bound=Callable[..., Any])


@dataclass(frozen=True)
class RetryPolicy:
    """Attempt budget and backoff curve.

    Delays before retries are ``base_delay * multiplier ** (n - 1)`` for the
    n-th retry: 1s then 2s with the defaults.
    """

    max_attempts: int = 3
    base_delay: float = 1.0  # seconds
    multiplier: float = 2.0

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.base_delay < 0:
            raise ValueError("base_delay must not be negative")
        if self.multiplier < 1:
            raise ValueError("multiplier must be >= 1")

    def delay_for(self, attempt: int) -> float:
        """Delay in seconds before the retry that follows failed ``attempt`` (1-based)."""
        return self.base_delay * (self.multiplier ** (attempt - 1))

    @property
    def total_backoff(self) -> float:
        """Sum of all delays when every attempt fails with a retryable error."""
        return sum(self.delay_for(n) for n in range(1, self.max_attempts))


class RetryExecutor:
    """Runs upstream calls under a RetryPolicy."""

    def __init__(
        self,
        policy: Optional[RetryPolicy] = None,
        logger: Optional[logging.Logger] = None,
        sleep: Optional[Callable[[float], Awaitable[Any]]] = None,
    ):
        self.policy = policy or RetryPolicy()
        self._log = logger or logging.getLogger(__name__)
        self._sleep = sleep or asyncio.sleep

    async def execute(
        self,
        fn: Callable[[], Awaitable[T]],
        context: str = "operation",
    ) -> T:
        """Await ``fn()`` with retries; return its result or re-raise its error."""
        max_attempts = self.policy.max_attempts

        for attempt in range(1, max_attempts + 1):
            try:
                result = await fn()
            except Exception as exc:
                classification = classify_error(exc)

                if not classification.retryable:
                    self._log.error(
                        f"[{context}] Non-retryable error "
                        f"({classification.kind.value}): {classification.identifier}"
                    )
                    raise

                if attempt == max_attempts:
                    self._log.error(
                        f"[{context}] Request failed after {max_attempts} attempts. "
                        f"Error: {classification.identifier}"
                    )
                    raise

                delay = self.policy.delay_for(attempt)
                self._log.info(
                    f"[{context}] Retry attempt {attempt} after {delay * 1000:.0f}ms delay. "
                    f"Error: {classification.identifier}"
                )
                await self._sleep(delay)
                continue

            if attempt > 1:
                self._log.info(f"[{context}] Request succeeded on attempt {attempt}")
            return result

        # Unreachable: the loop either returns or raises
        raise RuntimeError(f"[{context}] retry loop exited without a result")


async def with_retry(
    fn: Callable[[], Awaitable[T]],
    context: str = "operation",
    policy: Optional[RetryPolicy] = None,
) -> T:
    """One-shot helper around ``RetryExecutor.execute``."""
    return await RetryExecutor(policy).execute(fn, context)


def retrying(
    context: Optional[str] = None,
    policy: Optional[RetryPolicy] = None,
) -> Callable[[F], F]:
    """Decorator form.

    Usage:
        @retrying("LLM request", RetryPolicy(max_attempts=3))
        async def call_provider(body: dict) -> dict:
            ...
    """
    def decorator(func: F) -> F:
        label = context or func.__name__

        @wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            executor = RetryExecutor(policy)
            return await executor.execute(lambda: func(*args, **kwargs), label)

        return wrapper  # type: ignore
    return decorator
