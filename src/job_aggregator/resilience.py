"""
Rate limiting and circuit breaking for a single job provider.

Each ResilientProvider owns one ResilienceState. Admission (window rollover,
circuit check, token consumption) runs without awaiting, so concurrent
searches on the same event loop never interleave inside it.
"""

import asyncio
import logging
import time
from collections.abc import Callable
from datetime import UTC, datetime

from job_aggregator.errors import CircuitOpenError, ProviderTimeoutError, RateLimitExceededError
from job_aggregator.models import Job, JobQuery, ProviderHealth, SearchResult
from job_aggregator.providers.base import JobProvider

logger = logging.getLogger(__name__)

DEFAULT_QPS_CAP = 10
DEFAULT_CIRCUIT_FAILURES = 5
DEFAULT_WINDOW_SECONDS = 60.0
IDLE_AFTER_SECONDS = 30.0


class ResilienceState:
    """Token count, window start and failure count for one wrapped provider."""

    def __init__(self, qps_cap: int, now: float) -> None:
        self.tokens = qps_cap
        self.window_start = now
        self.failures = 0
        self.request_count = 0
        self.last_request_at: datetime | None = None

    def reset(self, qps_cap: int, now: float) -> None:
        self.tokens = qps_cap
        self.window_start = now
        self.failures = 0


class ResilientProvider(JobProvider):
    """
    Wraps a provider with a token-bucket rate limiter and a failure-count
    circuit breaker that share one time window.

    - Once the window has elapsed, tokens refill to qps_cap and the failure
      count resets.
    - With no tokens left, search_jobs raises RateLimitExceededError at once.
    - With circuit_failures failures in the window, search_jobs raises
      CircuitOpenError without calling the inner provider. Only a window
      rollover closes the circuit again.
    - A failing inner call increments the failure count and re-raises.

    get_job is passed straight through without either policy.
    """

    def __init__(
        self,
        inner: JobProvider,
        qps_cap: int = DEFAULT_QPS_CAP,
        circuit_failures: int = DEFAULT_CIRCUIT_FAILURES,
        window_seconds: float = DEFAULT_WINDOW_SECONDS,
        timeout_seconds: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if qps_cap <= 0:
            raise ValueError(f"qps_cap must be a positive integer, got {qps_cap}")
        if circuit_failures <= 0:
            raise ValueError(f"circuit_failures must be a positive integer, got {circuit_failures}")
        if window_seconds <= 0:
            raise ValueError(f"window_seconds must be positive, got {window_seconds}")

        self.inner = inner
        self.name = inner.name
        self.qps_cap = qps_cap
        self.circuit_failures = circuit_failures
        self.window_seconds = window_seconds
        self.timeout_seconds = timeout_seconds
        self._clock = clock
        self._state = ResilienceState(qps_cap, clock())

    def _window_elapsed(self, now: float) -> bool:
        return now - self._state.window_start > self.window_seconds

    def _admit(self) -> None:
        """Apply window rollover, then the circuit and token checks. Consumes one token."""
        now = self._clock()
        if self._window_elapsed(now):
            self._state.reset(self.qps_cap, now)

        if self._state.failures >= self.circuit_failures:
            raise CircuitOpenError(
                f"Circuit open for provider '{self.name}' "
                f"({self._state.failures} failures in the current window)",
                self.name,
            )
        if self._state.tokens <= 0:
            raise RateLimitExceededError(
                f"Rate limit exceeded for provider '{self.name}' "
                f"({self.qps_cap} calls per {self.window_seconds:g}s)",
                self.name,
            )

        self._state.tokens -= 1
        self._state.request_count += 1
        self._state.last_request_at = datetime.now(tz=UTC)

    async def search_jobs(self, query: JobQuery) -> SearchResult:
        self._admit()
        try:
            if self.timeout_seconds:
                try:
                    return await asyncio.wait_for(
                        self.inner.search_jobs(query), timeout=self.timeout_seconds
                    )
                except TimeoutError as e:
                    raise ProviderTimeoutError(
                        f"Provider '{self.name}' timed out after {self.timeout_seconds:g}s",
                        self.name,
                    ) from e
            return await self.inner.search_jobs(query)
        except Exception as e:
            self._state.failures += 1
            if self._state.failures == self.circuit_failures:
                logger.warning(
                    f"Circuit opened for provider '{self.name}' after {self._state.failures} failures"
                )
            logger.debug(f"Provider '{self.name}' call failed: {e}")
            raise

    async def get_job(self, job_id: str) -> Job | None:
        return await self.inner.get_job(job_id)

    def get_health(self) -> ProviderHealth:
        """Report the current state without mutating it."""
        now = self._clock()
        if self._window_elapsed(now):
            failures, tokens = 0, self.qps_cap
        else:
            failures, tokens = self._state.failures, self._state.tokens

        circuit_open = failures >= self.circuit_failures
        last = self._state.last_request_at
        idle = last is None or (datetime.now(tz=UTC) - last).total_seconds() > IDLE_AFTER_SECONDS
        if circuit_open:
            state = "unhealthy"
        elif failures > 0 or idle:
            state = "degraded"
        else:
            state = "healthy"

        return ProviderHealth(
            provider=self.name,
            state=state,
            circuit="open" if circuit_open else "closed",
            failures=failures,
            tokens_remaining=tokens,
            request_count=self._state.request_count,
            last_request_at=last,
        )

    def reset(self) -> None:
        """Close the circuit and refill the bucket immediately."""
        self._state.reset(self.qps_cap, self._clock())
