"""Circuit breaker guarding calls to GitHub.

States:
- CLOSED: calls pass through, outcomes are counted in a rolling window
- OPEN: calls are rejected until the cool-down elapses
- HALF_OPEN: one trial call decides between CLOSED and OPEN again

The window is split into buckets so old outcomes age out in steps instead
of one at a time. The breaker opens once the window holds more than
``volume_threshold`` calls and the error percentage exceeds
``error_threshold``.
"""

import threading
import time
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any


class CircuitState(Enum):
    """Circuit breaker state."""

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


@dataclass
class _Bucket:
    started: float
    successes: int = 0
    failures: int = 0
    timeouts: int = 0


@dataclass(frozen=True)
class Permit:
    """Admission for one guarded call. ``trial_id`` is set for the half-open trial."""

    trial_id: int | None = None


class CircuitBreaker:
    """Rolling-window circuit breaker.

    Thread-safe: every transition happens under one lock, and the lock is
    never held while a guarded call is in flight.
    """

    def __init__(
        self,
        window_duration: float = 10.0,
        num_buckets: int = 10,
        error_threshold: float = 50.0,
        volume_threshold: int = 5,
        reset_timeout: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.window_duration = window_duration
        self.num_buckets = num_buckets
        self.error_threshold = error_threshold
        self.volume_threshold = volume_threshold
        self.reset_timeout = reset_timeout if reset_timeout is not None else window_duration
        self._clock = clock

        self._lock = threading.Lock()
        self._buckets: deque[_Bucket] = deque()
        self._state = CircuitState.CLOSED
        self._opened_at = 0.0
        self._trial_in_flight = False
        self._times_opened = 0
        self._trial_seq = 0

    @property
    def state(self) -> CircuitState:
        """Current state, reporting HALF_OPEN once the cool-down has elapsed."""
        with self._lock:
            if (
                self._state == CircuitState.OPEN
                and self._clock() - self._opened_at >= self.reset_timeout
            ):
                return CircuitState.HALF_OPEN
            return self._state

    @property
    def is_closed(self) -> bool:
        return self.state == CircuitState.CLOSED

    def allow_request(self) -> Permit | None:
        """Admit a call, or return None while the breaker rejects calls.

        In half-open state the single admitted call gets a trial permit;
        only that permit's outcome moves the breaker out of HALF_OPEN.
        """
        with self._lock:
            if self._state == CircuitState.CLOSED:
                return Permit()

            if self._state == CircuitState.OPEN:
                if self._clock() - self._opened_at < self.reset_timeout:
                    return None
                self._state = CircuitState.HALF_OPEN
                self._trial_in_flight = False

            if self._trial_in_flight:
                return None
            self._trial_in_flight = True
            self._trial_seq += 1
            return Permit(trial_id=self._trial_seq)

    def record_success(self, permit: Permit | None = None) -> None:
        with self._lock:
            self._current_bucket().successes += 1
            if self._is_current_trial(permit):
                self._state = CircuitState.CLOSED
                self._trial_in_flight = False
                self._buckets.clear()

    def record_failure(self, timed_out: bool = False, permit: Permit | None = None) -> None:
        with self._lock:
            bucket = self._current_bucket()
            if timed_out:
                bucket.timeouts += 1
            else:
                bucket.failures += 1

            if self._is_current_trial(permit):
                self._trip()
            elif self._state == CircuitState.CLOSED and self._over_threshold():
                self._trip()

    def reset(self) -> None:
        """Return to CLOSED with an empty window."""
        with self._lock:
            self._buckets.clear()
            self._state = CircuitState.CLOSED
            self._trial_in_flight = False

    def metrics(self) -> dict[str, Any]:
        """Counts over the current rolling window."""
        with self._lock:
            self._prune(self._clock())
            return self._metrics()

    def _is_current_trial(self, permit: Permit | None) -> bool:
        return (
            self._state == CircuitState.HALF_OPEN
            and permit is not None
            and permit.trial_id == self._trial_seq
        )

    def _trip(self) -> None:
        self._state = CircuitState.OPEN
        self._opened_at = self._clock()
        self._trial_in_flight = False
        self._times_opened += 1

    def _over_threshold(self) -> bool:
        metrics = self._metrics()
        return (
            metrics["total"] > self.volume_threshold
            and metrics["error_percentage"] > self.error_threshold
        )

    def _metrics(self) -> dict[str, Any]:
        successes = sum(b.successes for b in self._buckets)
        errors = sum(b.failures + b.timeouts for b in self._buckets)
        total = successes + errors
        return {
            "total": total,
            "errors": errors,
            "error_percentage": (errors / total * 100) if total else 0.0,
            "times_opened": self._times_opened,
        }

    def _current_bucket(self) -> _Bucket:
        now = self._clock()
        self._prune(now)
        bucket_length = self.window_duration / self.num_buckets
        if not self._buckets or now - self._buckets[-1].started >= bucket_length:
            self._buckets.append(_Bucket(started=now))
        return self._buckets[-1]

    def _prune(self, now: float) -> None:
        while self._buckets and now - self._buckets[0].started >= self.window_duration:
            self._buckets.popleft()

    def __repr__(self) -> str:
        return f"CircuitBreaker(state={self._state.value}, opened={self._times_opened})"
