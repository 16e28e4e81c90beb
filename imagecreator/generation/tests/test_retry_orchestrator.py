# Author: imagecreator maintainers
# Date: 2026-10-19T00:00:00Z
# PURPOSE: Exercise the retry orchestrator state machine with a scripted transport, a recording sleep and a
#          seeded RNG: success after retries, fatal short-circuit, exhaustion, Retry-After, deadline and decode errors.
# SRP and DRY check: Pass - orchestration only; real HTTP is covered by test_transport_client.py.
import asyncio
import base64
import json
import random
from typing import List

import pytest

from imagecreator.generation.errors import (
    DeadlineExceeded,
    DecodeError,
    RetriesExhausted,
    TransportCategory,
    TransportError,
)
from imagecreator.generation.retry_orchestrator import OrchestratorState, RetryOrchestrator, RetryPolicy
from imagecreator.generation.transport_client import RawResponse

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"orchestrated"
SUCCESS_BODY = json.dumps({
    "candidates": [{"content": {"parts": [{"inlineData": {"mimeType": "image/png", "data": base64.b64encode(PNG_BYTES).decode()}}]}}]
}).encode()


def retryable(status: int = 500, retry_after=None) -> TransportError:
    return TransportError(TransportCategory.RETRYABLE, f"HTTP {status}", status_code=status, retry_after=retry_after)


def fatal(status: int = 401) -> TransportError:
    return TransportError(TransportCategory.FATAL, f"HTTP {status}", status_code=status)


def ok(body: bytes = SUCCESS_BODY) -> RawResponse:
    return RawResponse(status_code=200, body=body)


class ScriptedTransport:
    """Returns or raises the scripted outcomes in order."""

    def __init__(self, outcomes):
        self.outcomes = list(outcomes)
        self.calls = 0

    async def send(self, encoded_request, credential, endpoint):
        self.calls += 1
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


class RecordingSleep:
    def __init__(self, clock=None):
        self.delays: List[float] = []
        self.clock = clock

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)
        if self.clock is not None:
            self.clock.now += delay


class FakeClock:
    def __init__(self):
        self.now = 100.0

    def __call__(self) -> float:
        return self.now


def _run(orchestrator: RetryOrchestrator):
    return asyncio.run(orchestrator.execute(b"{}", "key", "https://example.invalid/generate"))


def _orchestrator(outcomes, policy=None, clock=None, seed=7):
    transport = ScriptedTransport(outcomes)
    sleep = RecordingSleep(clock)
    kwargs = {}
    if clock is not None:
        kwargs["clock"] = clock
    orchestrator = RetryOrchestrator(
        transport,
        policy=policy or RetryPolicy(max_attempts=4, base_delay=0.5),
        sleep=sleep,
        rng=random.Random(seed),
        **kwargs,
    )
    return orchestrator, transport, sleep


class TestRetryPolicy:
    def test_expected_delay_grows_exponentially(self):
        policy = RetryPolicy(base_delay=0.5, multiplier=2.0, max_delay=30.0)
        assert [policy.expected_delay(a) for a in range(4)] == [0.5, 1.0, 2.0, 4.0]

    def test_expected_delay_is_capped(self):
        policy = RetryPolicy(base_delay=10.0, multiplier=3.0, max_delay=30.0)
        assert policy.expected_delay(5) == 30.0

    def test_delay_bounds(self):
        low, high = RetryPolicy(base_delay=1.0, jitter=0.2).delay_bounds(1)
        assert low == pytest.approx(1.6)
        assert high == pytest.approx(2.4)

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"max_attempts": 0},
            {"base_delay": -1},
            {"multiplier": 0.5},
            {"jitter": 1.0},
            {"deadline": 0},
        ],
    )
    def test_invalid_policy_rejected(self, kwargs):
        with pytest.raises(ValueError):
            RetryPolicy(**kwargs)


class TestRetryOrchestrator:
    def test_success_on_first_attempt(self):
        orchestrator, transport, sleep = _orchestrator([ok()])
        response = _run(orchestrator)
        assert response.first.data == PNG_BYTES
        assert orchestrator.attempts == 1
        assert orchestrator.state is OrchestratorState.SUCCEEDED
        assert sleep.delays == []

    def test_two_server_errors_then_success(self):
        orchestrator, transport, sleep = _orchestrator([retryable(500), retryable(500), ok()])
        response = _run(orchestrator)

        assert response.first.mime_type == "image/png"
        assert transport.calls == 3
        assert orchestrator.attempts == 3
        assert len(sleep.delays) == 2
        policy = orchestrator.policy
        for attempt, delay in enumerate(sleep.delays):
            low, high = policy.delay_bounds(attempt)
            assert low <= delay <= high
        assert orchestrator.retry_state.delays == sleep.delays

    def test_fatal_error_stops_immediately(self):
        orchestrator, transport, sleep = _orchestrator([fatal(401), ok()])
        with pytest.raises(TransportError) as excinfo:
            _run(orchestrator)

        assert excinfo.value.status_code == 401
        assert transport.calls == 1
        assert sleep.delays == []
        assert orchestrator.state is OrchestratorState.FATAL_FAILED

    def test_retries_exhausted(self):
        policy = RetryPolicy(max_attempts=3, base_delay=0.1)
        orchestrator, transport, sleep = _orchestrator([retryable(429)] * 3, policy=policy)
        with pytest.raises(RetriesExhausted) as excinfo:
            _run(orchestrator)

        assert excinfo.value.attempts == 3
        assert excinfo.value.last_error.status_code == 429
        assert excinfo.value.__cause__ is excinfo.value.last_error
        assert transport.calls == 3
        assert len(sleep.delays) == 2
        assert orchestrator.state is OrchestratorState.EXHAUSTED

    def test_single_attempt_policy_never_sleeps(self):
        orchestrator, transport, sleep = _orchestrator([retryable(503)], policy=RetryPolicy(max_attempts=1))
        with pytest.raises(RetriesExhausted):
            _run(orchestrator)
        assert sleep.delays == []

    def test_retry_after_extends_delay(self):
        orchestrator, transport, sleep = _orchestrator([retryable(429, retry_after=5.0), ok()])
        _run(orchestrator)
        assert sleep.delays == [5.0]

    def test_retry_after_is_capped_by_max_delay(self):
        policy = RetryPolicy(max_attempts=2, base_delay=0.1, max_delay=2.0)
        orchestrator, transport, sleep = _orchestrator([retryable(429, retry_after=60.0), ok()], policy=policy)
        _run(orchestrator)
        assert sleep.delays == [2.0]

    def test_same_seed_gives_same_delays(self):
        first, _, first_sleep = _orchestrator([retryable(), retryable(), ok()], seed=42)
        second, _, second_sleep = _orchestrator([retryable(), retryable(), ok()], seed=42)
        _run(first)
        _run(second)
        assert first_sleep.delays == second_sleep.delays

    def test_decode_error_is_not_retried(self):
        refusal = json.dumps({"candidates": [{"content": {"parts": [{"text": "no"}]}}]}).encode()
        orchestrator, transport, sleep = _orchestrator([ok(refusal), ok()])
        with pytest.raises(DecodeError):
            _run(orchestrator)
        assert transport.calls == 1
        assert orchestrator.state is OrchestratorState.FATAL_FAILED

    def test_deadline_stops_before_sleep_would_overrun(self):
        clock = FakeClock()
        policy = RetryPolicy(max_attempts=10, base_delay=1.0, jitter=0.0, deadline=2.5)
        orchestrator, transport, sleep = _orchestrator([retryable()] * 10, policy=policy, clock=clock)

        with pytest.raises(DeadlineExceeded) as excinfo:
            _run(orchestrator)

        # Sleeps of 1.0 then 2.0 would reach 3.0 > 2.5, so only the first one happens.
        assert sleep.delays == [1.0]
        assert excinfo.value.attempts == 2
        assert excinfo.value.last_error is not None
        assert orchestrator.state is OrchestratorState.DEADLINE_EXCEEDED

    def test_deadline_interrupts_slow_attempt(self):
        class SlowTransport:
            async def send(self, encoded_request, credential, endpoint):
                await asyncio.sleep(5)

        orchestrator = RetryOrchestrator(SlowTransport(), policy=RetryPolicy(deadline=0.05))
        with pytest.raises(DeadlineExceeded) as excinfo:
            _run(orchestrator)
        assert excinfo.value.attempts == 1
        assert excinfo.value.last_error is None

    def test_orchestrator_is_single_use(self):
        orchestrator, transport, sleep = _orchestrator([ok(), ok()])
        _run(orchestrator)
        with pytest.raises(RuntimeError):
            _run(orchestrator)
