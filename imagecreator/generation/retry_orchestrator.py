# Author: imagecreator maintainers
# Date: 2026-10-19T00:00:00Z
# PURPOSE: Bounded retry loop around the single-attempt TransportClient. Applies exponential backoff with jitter,
#          stops immediately on fatal errors, enforces an optional overall deadline and decodes the successful body.
# SRP and DRY check: Pass. Retry policy lives only here; the transport stays a single-attempt primitive.
"""
Retry orchestration for image generation requests.

State machine::

    IDLE -> ATTEMPTING -> SUCCEEDED
                       -> FATAL_FAILED        (fatal TransportError, no further attempts)
                       -> EXHAUSTED           (retryable error on the last attempt)
                       -> DEADLINE_EXCEEDED   (overall deadline elapsed)

Backoff for the attempt that just failed (0-based ``attempt``)::

    delay = base_delay * multiplier ** attempt * (1 +/- jitter)

capped at ``max_delay`` and never shorter than a server supplied Retry-After.
"""
import asyncio
import logging
import math
import random
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable, List, Optional, Tuple, Union

from pydantic import SecretStr

from imagecreator.generation import payload_codec
from imagecreator.generation.errors import (
    DeadlineExceeded,
    DecodeError,
    RetriesExhausted,
    TransportError,
)
from imagecreator.generation.models import GenerationResponse
from imagecreator.generation.transport_client import TransportClient

logger = logging.getLogger(__name__)

SleepFunc = Callable[[float], Awaitable[None]]
ClockFunc = Callable[[], float]


class OrchestratorState(Enum):
    IDLE = "idle"
    ATTEMPTING = "attempting"
    SUCCEEDED = "succeeded"
    EXHAUSTED = "exhausted"
    FATAL_FAILED = "fatal_failed"
    DEADLINE_EXCEEDED = "deadline_exceeded"


@dataclass(frozen=True)
class RetryPolicy:
    """
    Backoff parameters for one orchestrated call.

    Attributes:
        max_attempts: Total attempts including the first one.
        base_delay: Seconds to wait after the first failed attempt (before jitter).
        multiplier: Growth factor applied per attempt.
        jitter: Fraction of the expected delay drawn uniformly in both directions.
        max_delay: Upper bound on any single sleep.
        deadline: Optional overall budget in seconds spanning attempts and sleeps.
    """
    max_attempts: int = 4
    base_delay: float = 0.5
    multiplier: float = 2.0
    jitter: float = 0.2
    max_delay: float = 30.0
    deadline: Optional[float] = None

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {self.max_attempts}")
        if not math.isfinite(self.base_delay) or self.base_delay < 0:
            raise ValueError(f"base_delay must be >= 0, got {self.base_delay}")
        if self.multiplier < 1:
            raise ValueError(f"multiplier must be >= 1, got {self.multiplier}")
        if not 0 <= self.jitter < 1:
            raise ValueError(f"jitter must be in [0, 1), got {self.jitter}")
        if self.deadline is not None and (not math.isfinite(self.deadline) or self.deadline <= 0):
            raise ValueError(f"deadline must be positive, got {self.deadline}")

    def expected_delay(self, attempt: int) -> float:
        """Delay before jitter after the 0-based ``attempt`` failed."""
        return min(self.base_delay * (self.multiplier ** attempt), self.max_delay)

    def delay_bounds(self, attempt: int) -> Tuple[float, float]:
        expected = self.expected_delay(attempt)
        return (
            max(0.0, expected * (1 - self.jitter)),
            min(expected * (1 + self.jitter), self.max_delay),
        )


@dataclass
class RetryState:
    """Mutable bookkeeping for one orchestrated call; never shared across calls."""
    attempt: int = 0
    last_error: Optional[str] = None
    next_delay: float = 0.0
    delays: List[float] = field(default_factory=list)


class RetryOrchestrator:
    """Runs TransportClient.send under a RetryPolicy and decodes the successful response."""

    def __init__(
        self,
        transport: TransportClient,
        policy: Optional[RetryPolicy] = None,
        sleep: SleepFunc = asyncio.sleep,
        rng: Optional[random.Random] = None,
        clock: ClockFunc = time.monotonic,
    ):
        self.transport = transport
        self.policy = policy or RetryPolicy()
        self._sleep = sleep
        self._rng = rng or random.Random()
        self._clock = clock
        self.state = OrchestratorState.IDLE
        self.retry_state = RetryState()

    def _jittered(self, attempt: int, retry_after: Optional[float]) -> float:
        expected = self.policy.expected_delay(attempt)
        delay = expected * (1 + self._rng.uniform(-self.policy.jitter, self.policy.jitter))
        if retry_after is not None:
            delay = max(delay, retry_after)
        return max(0.0, min(delay, self.policy.max_delay))

    def _remaining(self, started: float) -> Optional[float]:
        if self.policy.deadline is None:
            return None
        return self.policy.deadline - (self._clock() - started)

    def _deadline_exceeded(self, last_error: Optional[TransportError]) -> DeadlineExceeded:
        self.state = OrchestratorState.DEADLINE_EXCEEDED
        logger.error(
            f"Deadline of {self.policy.deadline:g}s exceeded after {self.retry_state.attempt} attempt(s)"
        )
        return DeadlineExceeded(self.policy.deadline, self.retry_state.attempt, last_error)

    async def execute(
        self,
        encoded_request: bytes,
        credential: Union[str, SecretStr],
        endpoint: str,
    ) -> GenerationResponse:
        """Send ``encoded_request`` until it succeeds, fails fatally, runs out of attempts or time.

        Raises:
            TransportError: Fatal transport failure (first occurrence, never retried).
            RetriesExhausted: Every attempt failed with a retryable error.
            DeadlineExceeded: The policy deadline elapsed.
            DecodeError: The successful body did not contain a usable image.
        """
        if self.state is not OrchestratorState.IDLE:
            raise RuntimeError("RetryOrchestrator instances are single-use; create a new one per request")

        self.state = OrchestratorState.ATTEMPTING
        started = self._clock()
        last_error: Optional[TransportError] = None

        while True:
            attempt = self.retry_state.attempt
            remaining = self._remaining(started)
            if remaining is not None and remaining <= 0:
                raise self._deadline_exceeded(last_error)

            self.retry_state.attempt = attempt + 1
            try:
                if remaining is None:
                    raw = await self.transport.send(encoded_request, credential, endpoint)
                else:
                    raw = await asyncio.wait_for(
                        self.transport.send(encoded_request, credential, endpoint),
                        timeout=remaining,
                    )
            except asyncio.TimeoutError:
                raise self._deadline_exceeded(last_error) from None
            except TransportError as exc:
                last_error = exc
                self.retry_state.last_error = exc.kind
                if not exc.is_retryable:
                    self.state = OrchestratorState.FATAL_FAILED
                    logger.error(f"Attempt {attempt + 1} failed fatally: {exc.message}")
                    raise

                if attempt + 1 >= self.policy.max_attempts:
                    self.state = OrchestratorState.EXHAUSTED
                    logger.error(f"Giving up after {attempt + 1} attempt(s): {exc.message}")
                    raise RetriesExhausted(attempt + 1, exc) from exc

                delay = self._jittered(attempt, exc.retry_after)
                self.retry_state.next_delay = delay
                remaining = self._remaining(started)
                if remaining is not None and delay >= remaining:
                    raise self._deadline_exceeded(last_error) from exc

                logger.warning(
                    f"Attempt {attempt + 1}/{self.policy.max_attempts} failed ({exc.message}); "
                    f"retrying in {delay:.2f}s"
                )
                self.retry_state.delays.append(delay)
                await self._sleep(delay)
                continue

            try:
                response = payload_codec.decode(raw.body)
            except DecodeError:
                self.state = OrchestratorState.FATAL_FAILED
                raise
            self.state = OrchestratorState.SUCCEEDED
            self.retry_state.next_delay = 0.0
            logger.info(
                f"Image generation succeeded on attempt {attempt + 1} "
                f"({len(response.candidates)} image candidate(s))"
            )
            return response

    @property
    def attempts(self) -> int:
        return self.retry_state.attempt
