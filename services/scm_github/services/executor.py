"""Resilient executor for GitHub calls.

Every outbound GitHub operation goes through ``Executor.run``, which
injects the caller's token, applies the circuit breaker, retries transient
failures with exponential backoff and keeps running statistics.

404s are terminal: a missing repository or file does not appear by
retrying, so NotFoundError is raised after a single attempt.
"""

import asyncio
import random
import threading
import time
from dataclasses import dataclass
from typing import Any, Protocol

from scm_github.config import FuseboxConfig, RetryConfig
from scm_github.errors import CircuitOpenError, NotFoundError, RemoteError, RemoteTimeoutError
from scm_github.logging_config import get_logger
from scm_github.models import ExecutorStats
from scm_github.services.circuit_breaker import CircuitBreaker, CircuitState, Permit

logger = get_logger(__name__)

RETRYABLE_CLIENT_STATUSES = frozenset({408, 429})


class RemoteInvoker(Protocol):
    """Performs one named GitHub operation with the given token.

    Implementations raise RemoteError (NotFoundError for 404s) on failure.
    """

    async def invoke(
        self, scope_type: str, action: str, token: str, params: dict[str, Any]
    ) -> Any: ...


@dataclass
class _Attempt:
    action: str
    started: float
    permit: Permit
    settled: bool = False


def is_retryable(error: RemoteError) -> bool:
    """Transport failures, timeouts, throttling and 5xx are worth another try."""
    if isinstance(error, NotFoundError):
        return False
    status = error.status_code
    return status is None or status >= 500 or status in RETRYABLE_CLIENT_STATUSES


def compute_backoff(policy: RetryConfig, attempt: int) -> float:
    """Delay in seconds before retry number ``attempt`` (1-indexed)."""
    delay = policy.min_timeout * (policy.factor ** max(attempt - 1, 0))
    if policy.randomize:
        delay *= 1 + random.random()
    return min(delay, policy.max_timeout)


class Executor:
    """Breaker-guarded, retrying dispatcher shared by all adapter operations."""

    def __init__(
        self,
        invoker: RemoteInvoker,
        fusebox: FuseboxConfig | None = None,
        name: str = "github",
    ) -> None:
        fusebox = fusebox or FuseboxConfig()
        self.name = name
        self._invoker = invoker
        self._retry = fusebox.retry
        self._timeout = fusebox.breaker.timeout_duration
        self.breaker = CircuitBreaker(
            window_duration=fusebox.breaker.window_duration,
            num_buckets=fusebox.breaker.num_buckets,
            error_threshold=fusebox.breaker.error_threshold,
            volume_threshold=fusebox.breaker.volume_threshold,
            reset_timeout=fusebox.breaker.reset_timeout,
        )

        self._lock = threading.Lock()
        self._total = 0
        self._success = 0
        self._failure = 0
        self._timeouts = 0
        self._completed = 0
        self._latency_total = 0.0

    async def run(
        self,
        action: str,
        token: str,
        params: dict[str, Any] | None = None,
        scope_type: str = "repos",
    ) -> Any:
        """Run a GitHub operation, retrying transient failures.

        Raises CircuitOpenError without retrying while the breaker is open,
        NotFoundError and other client errors after one attempt, and the
        last RemoteError once the retry budget is spent.
        """
        params = params or {}
        attempt = 0
        while True:
            attempt += 1
            try:
                return await self._attempt(scope_type, action, token, params)
            except RemoteError as e:
                if not is_retryable(e):
                    raise
                if attempt > self._retry.retries:
                    logger.error(
                        "GitHub request failed",
                        scope=scope_type,
                        action=action,
                        attempts=attempt,
                        error=str(e),
                    )
                    raise
                delay = compute_backoff(self._retry, attempt)
                logger.warning(
                    "Retrying GitHub request",
                    scope=scope_type,
                    action=action,
                    attempt=attempt,
                    delay=delay,
                    error=str(e),
                )
                await asyncio.sleep(delay)

    async def _attempt(
        self, scope_type: str, action: str, token: str, params: dict[str, Any]
    ) -> Any:
        permit = self.breaker.allow_request()
        if permit is None:
            raise CircuitOpenError(self.name)

        with self._lock:
            self._total += 1

        attempt = _Attempt(action=action, started=time.monotonic(), permit=permit)
        task = asyncio.ensure_future(
            self._invoker.invoke(scope_type, action, token, dict(params))
        )
        # Recorded from the task itself so abandoned calls still count
        task.add_done_callback(lambda t: self._on_done(attempt, t))

        try:
            return await asyncio.wait_for(asyncio.shield(task), timeout=self._timeout)
        except TimeoutError:
            self._settle(attempt, ok=False, timed_out=True)
            task.cancel()
            raise RemoteTimeoutError(action, self._timeout) from None

    def _on_done(self, attempt: _Attempt, task: asyncio.Future) -> None:
        if task.cancelled():
            self._settle(attempt, ok=False)
            return
        self._settle(attempt, ok=task.exception() is None)

    def _settle(self, attempt: _Attempt, ok: bool, timed_out: bool = False) -> None:
        elapsed = time.monotonic() - attempt.started
        with self._lock:
            if attempt.settled:
                return
            attempt.settled = True
            self._completed += 1
            self._latency_total += elapsed
            if ok:
                self._success += 1
            elif timed_out:
                self._timeouts += 1
            else:
                self._failure += 1

        if ok:
            self.breaker.record_success(attempt.permit)
        else:
            self.breaker.record_failure(timed_out=timed_out, permit=attempt.permit)

    @property
    def total_requests(self) -> int:
        with self._lock:
            return self._total

    def stats(self) -> ExecutorStats:
        """Snapshot of the counters. Does not change breaker state."""
        state = self.breaker.state
        with self._lock:
            average = (self._latency_total / self._completed * 1000) if self._completed else 0.0
            return ExecutorStats(
                requests_total=self._total,
                requests_success=self._success,
                requests_failure=self._failure,
                requests_timeouts=self._timeouts,
                breaker_state=state.value,
                breaker_is_closed=state == CircuitState.CLOSED,
                average_latency_ms=round(average, 3),
            )
