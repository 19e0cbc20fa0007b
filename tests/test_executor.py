"""Tests for RetryExecutor"""

from __future__ import annotations

import asyncio

import pytest

from retryflow.application.executor import FAILURE_LOG_LEVELS, RetryExecutor, backoff_delay
from retryflow.domain.classifier import ErrorCategory, Verdict
from retryflow.domain.config.retry import RetryConfig
from retryflow.domain.models.attempt import AttemptOutcome
from retryflow.domain.models.failure import OperationError, TotalTimeoutError


class FakeTime:
    """Clock + sleep pair where sleeping advances the clock"""

    def __init__(self):
        self.now = 0.0
        self.sleeps = []

    def clock(self) -> float:
        return self.now

    async def sleep(self, delay: float) -> None:
        self.sleeps.append(delay)
        self.now += delay


def _executor(fake: FakeTime, rng=lambda: 0.0, **config) -> RetryExecutor:
    return RetryExecutor(
        RetryConfig(**config), sleep=fake.sleep, clock=fake.clock, rng=rng
    )


def _failing(*errors, value="ok"):
    """Operation raising the given errors in order, then returning value"""
    remaining = list(errors)
    calls = {"n": 0}

    async def operation():
        calls["n"] += 1
        if remaining:
            raise remaining.pop(0)
        return value

    return operation, calls


class TestSuccess:
    """Tests for operations that succeed"""

    def test_first_attempt_success(self):
        """Test immediate success records exactly one attempt"""
        fake = FakeTime()
        operation, calls = _failing()

        result = asyncio.run(_executor(fake).execute(operation, "fetch"))

        assert result.succeeded is True
        assert result.value == "ok"
        assert result.error is None
        assert result.final_attempt_number == 1
        assert len(result.attempts) == 1
        assert result.attempts[0].outcome is AttemptOutcome.SUCCESS
        assert result.attempts[0].next_delay is None
        assert result.label == "fetch"
        assert calls["n"] == 1
        assert fake.sleeps == []

    def test_server_errors_then_success(self):
        """Test two 500s then success waits exactly 1s and 2s without jitter"""
        fake = FakeTime()
        operation, calls = _failing(
            OperationError("boom", status=500), OperationError("boom", status=500)
        )
        executor = _executor(
            fake, max_attempts=3, base_delay=1.0, backoff_multiplier=2, jitter_factor=0,
            max_delay=30.0,
        )

        result = asyncio.run(executor.execute(operation))

        assert result.succeeded is True
        assert result.final_attempt_number == 3
        assert len(result.attempts) == 3
        assert [a.attempt_number for a in result.attempts] == [1, 2, 3]
        assert fake.sleeps == [1.0, 2.0]
        assert result.delays == (1.0, 2.0)
        assert result.attempts[0].verdict.category is ErrorCategory.SERVER
        assert result.attempts[2].outcome is AttemptOutcome.SUCCESS
        assert calls["n"] == 3


class TestFailure:
    """Tests for operations that keep failing"""

    def test_non_retryable_stops_after_one_attempt(self):
        """Test 401 terminates immediately regardless of max_attempts"""
        fake = FakeTime()
        error = OperationError("nope", status=401)
        operation, calls = _failing(*[error] * 10)

        result = asyncio.run(_executor(fake, max_attempts=10).execute(operation))

        assert result.succeeded is False
        assert result.error is error
        assert result.final_attempt_number == 1
        assert len(result.attempts) == 1
        assert result.verdict.category is ErrorCategory.AUTHENTICATION
        assert result.attempts[0].next_delay is None
        assert calls["n"] == 1
        assert fake.sleeps == []

    def test_retryable_exhausts_max_attempts(self):
        """Test a retryable failure runs exactly max_attempts times"""
        fake = FakeTime()
        operation, calls = _failing(*[OperationError("bad gateway", status=502)] * 10)

        result = asyncio.run(_executor(fake, max_attempts=4).execute(operation))

        assert result.succeeded is False
        assert result.final_attempt_number == 4
        assert len(result.attempts) == 4
        assert calls["n"] == 4
        assert len(fake.sleeps) == 3
        # Final attempt never carries a next delay
        assert result.attempts[-1].next_delay is None
        assert all(a.next_delay is not None for a in result.attempts[:-1])

    def test_plain_exception_is_caught(self):
        """Test arbitrary exceptions never escape execute"""
        fake = FakeTime()

        async def operation():
            raise KeyError("missing")

        result = asyncio.run(_executor(fake, max_attempts=2).execute(operation))

        assert result.succeeded is False
        assert isinstance(result.error, KeyError)
        assert result.verdict.category is ErrorCategory.UNKNOWN
        assert result.final_attempt_number == 2

    def test_cancellation_propagates(self):
        """Test asyncio cancellation is not treated as an operation failure"""
        fake = FakeTime()

        async def operation():
            raise asyncio.CancelledError()

        with pytest.raises(asyncio.CancelledError):
            asyncio.run(_executor(fake).execute(operation))

    def test_error_with_raising_attributes_is_recorded(self):
        """Test failures whose str and status raise still produce a result"""

        class Unreadable(Exception):
            def __str__(self):
                raise RuntimeError("cannot render")

            @property
            def status(self):
                raise RuntimeError("status lookup failed")

        fake = FakeTime()
        error = Unreadable()
        operation, calls = _failing(error, error)

        result = asyncio.run(
            _executor(fake, max_attempts=2, jitter_factor=0).execute(operation, "job")
        )

        assert result.succeeded is False
        assert result.error is error
        assert calls["n"] == 2
        assert result.attempts[0].verdict.category is ErrorCategory.UNKNOWN
        assert result.attempts[0].to_dict()["error"] == "Unreadable"


class TestDelays:
    """Tests for backoff delay computation"""

    def test_jitter_stays_within_bounds(self):
        """Test delays fall in [base*mult^(k-1), base*mult^(k-1)*(1+jitter)]"""
        fake = FakeTime()
        operation, _ = _failing(*[OperationError("unavailable", status=503)] * 5)
        executor = RetryExecutor(
            RetryConfig(
                max_attempts=5, base_delay=0.5, backoff_multiplier=3, jitter_factor=0.25,
                max_delay=100.0, total_timeout=1000.0,
            ),
            sleep=fake.sleep,
            clock=fake.clock,
        )

        asyncio.run(executor.execute(operation))

        assert len(fake.sleeps) == 4
        for k, delay in enumerate(fake.sleeps, start=1):
            low = 0.5 * 3 ** (k - 1)
            assert low <= delay <= low * 1.25

    def test_delay_capped_at_max_delay(self):
        """Test exponential growth is capped"""
        executor = RetryExecutor(
            RetryConfig(base_delay=10.0, max_delay=15.0, jitter_factor=0), rng=lambda: 0.0
        )
        verdict = Verdict(ErrorCategory.SERVER, True)
        assert executor.compute_delay(1, verdict) == 10.0
        assert executor.compute_delay(2, verdict) == 15.0
        assert executor.compute_delay(5, verdict) == 15.0

    def test_jitter_sample_used_once_per_decision(self):
        """Test the recorded delay is the delay actually slept"""
        fake = FakeTime()
        samples = iter([0.9, 0.1, 0.5, 0.7])
        operation, _ = _failing(*[OperationError("boom", status=500)] * 3)
        executor = _executor(
            fake, rng=lambda: next(samples), max_attempts=4, base_delay=1.0,
            backoff_multiplier=2, jitter_factor=0.5,
        )

        result = asyncio.run(executor.execute(operation))

        assert result.delays == tuple(fake.sleeps)
        assert fake.sleeps == [pytest.approx(1.45), pytest.approx(2.1), pytest.approx(5.0)]

    def test_rate_limit_uses_retry_after(self):
        """Test 429 honors retry_after instead of backoff math"""
        fake = FakeTime()
        operation, _ = _failing(OperationError("slow down", status=429, retry_after=7.5))
        executor = _executor(fake, base_delay=1.0, max_delay=30.0)

        result = asyncio.run(executor.execute(operation))

        assert result.succeeded is True
        assert result.attempts[0].verdict.category is ErrorCategory.RATE_LIMIT
        assert fake.sleeps == [7.5]

    def test_rate_limit_retry_after_capped(self):
        """Test retry_after (and its 60s default) is capped at max_delay"""
        fake = FakeTime()
        operation, _ = _failing(OperationError("too many requests", status=429))
        executor = _executor(fake, base_delay=1.0, max_delay=20.0)

        asyncio.run(executor.execute(operation))

        assert fake.sleeps == [20.0]

    def test_nan_retry_after_stays_capped(self):
        """Test a NaN hint never reaches sleep or the attempt record"""
        fake = FakeTime()
        operation, _ = _failing(OperationError("slow", status=429, retry_after=float("nan")))
        executor = _executor(fake, base_delay=1.0, max_delay=20.0)

        result = asyncio.run(executor.execute(operation))

        assert result.succeeded is True
        assert fake.sleeps == [20.0]
        assert result.attempts[0].next_delay == 20.0

    def test_backoff_delay_matches_compute_delay(self):
        """Test the executor delegates to the shared backoff formula"""
        config = RetryConfig(
            base_delay=0.5, backoff_multiplier=3, jitter_factor=0.2, max_delay=10.0
        )
        executor = RetryExecutor(config, rng=lambda: 0.5)
        verdict = Verdict(ErrorCategory.SERVER, True)
        for attempt_number in (1, 2, 3, 4):
            assert executor.compute_delay(attempt_number, verdict) == backoff_delay(
                config, attempt_number, verdict, 0.5
            )
        assert backoff_delay(config, 2, verdict, 0.5) == pytest.approx(1.65)
        assert backoff_delay(config, 9, verdict, 0.0) == 10.0


class TestTotalTimeout:
    """Tests for the wall-clock budget"""

    def test_expired_budget_prevents_next_attempt(self):
        """Test no attempt starts once the total timeout has elapsed"""
        fake = FakeTime()
        operation, calls = _failing(*[OperationError("boom", status=500)] * 10)
        executor = _executor(
            fake, max_attempts=5, base_delay=1.0, backoff_multiplier=2, jitter_factor=0,
            total_timeout=2.5,
        )

        result = asyncio.run(executor.execute(operation))

        # Attempts 1 and 2 run (elapsed 0s, 1s); attempt 3 would start at 3s
        assert calls["n"] == 2
        assert result.succeeded is False
        assert isinstance(result.error, TotalTimeoutError)
        assert result.final_attempt_number == 3
        assert len(result.attempts) == 3
        assert result.attempts[-1].error is result.error
        assert result.attempts[-1].next_delay is None

    def test_slow_operation_is_not_interrupted(self):
        """Test the budget is only checked between attempts"""
        fake = FakeTime()

        async def operation():
            fake.now += 100.0
            return "done"

        result = asyncio.run(_executor(fake, total_timeout=1.0).execute(operation))

        assert result.succeeded is True
        assert result.total_duration == 100.0


class TestObservability:
    """Tests for attempt callbacks and per-execution isolation"""

    def test_on_attempt_sees_every_attempt(self):
        """Test on_attempt is called once per recorded attempt"""
        fake = FakeTime()
        seen = []
        operation, _ = _failing(OperationError("boom", status=500))
        executor = RetryExecutor(
            RetryConfig(jitter_factor=0),
            sleep=fake.sleep,
            clock=fake.clock,
            on_attempt=lambda label, attempt: seen.append((label, attempt.attempt_number)),
        )

        asyncio.run(executor.execute(operation, "job"))

        assert seen == [("job", 1), ("job", 2)]

    def test_concurrent_executions_keep_separate_histories(self):
        """Test one executor can serve concurrent executions"""
        executor = RetryExecutor(RetryConfig(base_delay=0.0, jitter_factor=0))

        async def run_both():
            first, _ = _failing(OperationError("boom", status=500), value="a")
            second, _ = _failing(value="b")
            return await asyncio.gather(executor.execute(first), executor.execute(second))

        first_result, second_result = asyncio.run(run_both())

        assert first_result.value == "a"
        assert len(first_result.attempts) == 2
        assert second_result.value == "b"
        assert len(second_result.attempts) == 1

    def test_failure_is_logged(self, caplog):
        """Test failures and permanent give-up are logged"""
        fake = FakeTime()
        operation, _ = _failing(OperationError("forbidden", status=403))

        with caplog.at_level("INFO", logger="retryflow.application.executor"):
            asyncio.run(_executor(fake).execute(operation, "upload"))

        messages = [r.getMessage() for r in caplog.records]
        assert any("upload failed on attempt 1 (authorization)" in m for m in messages)
        assert any("failed permanently (not retryable)" in m for m in messages)

    def test_every_category_has_a_failure_log_level(self):
        """Test failure logging covers every error category"""
        assert set(FAILURE_LOG_LEVELS) == set(ErrorCategory)
