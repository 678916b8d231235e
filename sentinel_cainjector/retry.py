"""Bounded retry-on-conflict for store mutations."""

import logging
from dataclasses import dataclass
from typing import Callable, TypeVar

from tenacity import (
    RetryCallState,
    Retrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    stop_after_delay,
    wait_exponential,
)

from .config import Settings
from .context import ReconcileContext
from .exceptions import CanceledError, ConflictError

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """Backoff curve and bounds for conflict retries."""

    max_attempts: int = 6
    initial_delay: float = 0.01
    factor: float = 5.0
    max_delay: float = 1.0
    max_elapsed: float = 5.0

    @classmethod
    def from_settings(cls, settings: Settings) -> "RetryPolicy":
        return cls(
            max_attempts=settings.retry_max_attempts,
            initial_delay=settings.retry_initial_delay_seconds,
            factor=settings.retry_backoff_factor,
            max_delay=settings.retry_max_delay_seconds,
            max_elapsed=settings.retry_max_elapsed_seconds,
        )


def _stop_when_canceled(ctx: ReconcileContext) -> Callable[[RetryCallState], bool]:
    def stop(retry_state: RetryCallState) -> bool:
        return ctx.canceled

    return stop


def retry_on_conflict(
    policy: RetryPolicy,
    ctx: ReconcileContext,
    fn: Callable[..., T],
    *args,
    **kwargs,
) -> T:
    """
    Call ``fn`` and retry it while it raises ``ConflictError``.

    Any other exception propagates on the first occurrence. Backoff sleeps go
    through ``ctx`` so cancellation interrupts them, and their latency counts
    against the pass deadline.

    Args:
        policy: Retry bounds and backoff curve
        ctx: Pass context
        fn: Store mutation to call

    Returns:
        Whatever ``fn`` returns on its first non-conflicting call

    Raises:
        ConflictError: If every attempt conflicted
        CanceledError: If the context was cancelled before retries finished
    """
    retrying = Retrying(
        stop=(
            stop_after_attempt(policy.max_attempts)
            | stop_after_delay(policy.max_elapsed)
            | _stop_when_canceled(ctx)
        ),
        wait=wait_exponential(
            multiplier=policy.initial_delay,
            exp_base=policy.factor,
            max=policy.max_delay,
        ),
        retry=retry_if_exception_type(ConflictError),
        sleep=ctx.sleep,
        before_sleep=before_sleep_log(logger, logging.DEBUG),
        reraise=True,
    )
    try:
        return retrying(fn, *args, **kwargs)
    except ConflictError:
        if ctx.canceled:
            raise CanceledError("conflict retries interrupted by cancellation")
        raise
