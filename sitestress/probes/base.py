"""Probe interface and the shared visit/retry flow.

A probe performs one simulated visit and returns a ``ProbeResult``. Transport
failures are retried according to the ``RetryPolicy`` in the options; any HTTP
response, whatever its status, ends the retry loop. Only the final attempt is
reflected in the outcome.
"""

import random
import time
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from dataclasses import dataclass, field, replace

import structlog
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_fixed,
)

from sitestress.domain.models import Outcome, ProbeDiagnostics, ProbeResult, ProbeVariant

logger = structlog.get_logger()

USER_AGENT_TEMPLATE = "StressTestBot/1.0 User-{user_id}"


@dataclass(frozen=True)
class RetryPolicy:
    max_retries: int = 0
    backoff_seconds: float = 1.0

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1


@dataclass(frozen=True)
class ProbeOptions:
    timeout_ms: int = 30_000
    retry: RetryPolicy = field(default_factory=RetryPolicy)
    user_agent: str = "StressTestBot/1.0"
    variant: ProbeVariant = ProbeVariant.CHROMIUM
    think_time_min_ms: int = 200
    think_time_max_ms: int = 1_000

    def for_user(self, user_id: int, variant: ProbeVariant) -> "ProbeOptions":
        return replace(
            self,
            user_agent=USER_AGENT_TEMPLATE.format(user_id=user_id),
            variant=variant,
        )


class NavigationFailure(Exception):
    """A visit attempt that produced no HTTP response."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ProbeSession(ABC):
    """One simulated user's browsing session against a single URL."""

    def __init__(self) -> None:
        self.diagnostics = ProbeDiagnostics(attempts=0)

    @abstractmethod
    async def navigate(self, url: str, timeout_ms: int) -> int | None:
        """Load *url* and return the response status code.

        Raises ``NavigationFailure`` when the attempt failed. ``None`` means the
        navigation completed without a response object.
        """
        ...

    @abstractmethod
    async def interact(self, think_time_ms: int) -> None:
        """Simulate the user reading the page after a successful load."""
        ...

    async def capture_failure(self) -> None:
        """Record extra diagnostics after a failed visit."""


class Probe(ABC):
    @abstractmethod
    async def visit(self, user_id: int, url: str, options: ProbeOptions) -> ProbeResult:
        ...

    async def aclose(self) -> None:
        """Release resources held across visits."""

    async def __aenter__(self) -> "Probe":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()


class BaseProbe(Probe):
    """Visit flow shared by the concrete backends: retry, time, interact."""

    def __init__(self, rng: random.Random | None = None) -> None:
        self._rng = rng or random.Random()

    @abstractmethod
    def session(self, user_id: int, options: ProbeOptions) -> AsyncIterator[ProbeSession]:
        """Async context manager yielding a fresh session for one visit."""
        ...

    def _think_time_ms(self, options: ProbeOptions) -> int:
        return self._rng.randint(options.think_time_min_ms, options.think_time_max_ms)

    async def visit(self, user_id: int, url: str, options: ProbeOptions) -> ProbeResult:
        async with self.session(user_id, options) as session:
            start = time.monotonic()
            try:
                status = await self._navigate_with_retry(session, user_id, url, options)
            except NavigationFailure as exc:
                latency_ms = (time.monotonic() - start) * 1000
                logger.info(
                    "probe_failed",
                    user_id=user_id,
                    url=url,
                    error=exc.message,
                    attempts=session.diagnostics.attempts,
                )
                await session.capture_failure()
                return ProbeResult(
                    outcome=Outcome.from_error(url, exc.message, latency_ms),
                    diagnostics=session.diagnostics,
                )

            latency_ms = (time.monotonic() - start) * 1000
            if status is None:
                outcome = Outcome.from_error(url, None, latency_ms)
            else:
                outcome = Outcome.from_response(url, status, latency_ms)
            if outcome.success:
                logger.debug("probe_succeeded", user_id=user_id, url=url, latency_ms=outcome.latency_ms)
                await session.interact(self._think_time_ms(options))
            else:
                logger.info("probe_bad_status", user_id=user_id, url=url, status_code=status)
                await session.capture_failure()
            return ProbeResult(outcome=outcome, diagnostics=session.diagnostics)

    async def _navigate_with_retry(
        self,
        session: ProbeSession,
        user_id: int,
        url: str,
        options: ProbeOptions,
    ) -> int | None:
        def _log_retry(state: RetryCallState) -> None:
            exc = state.outcome.exception() if state.outcome else None
            logger.info(
                "probe_retry",
                user_id=user_id,
                url=url,
                attempt=state.attempt_number,
                max_retries=options.retry.max_retries,
                error=str(exc),
            )

        retrying = AsyncRetrying(
            stop=stop_after_attempt(options.retry.max_attempts),
            wait=wait_fixed(options.retry.backoff_seconds),
            retry=retry_if_exception_type(NavigationFailure),
            before_sleep=_log_retry,
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                session.diagnostics.attempts += 1
                return await session.navigate(url, options.timeout_ms)
        raise NavigationFailure(f"no attempt made for {url}")
