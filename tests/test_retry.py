"""Tests for narrative_decisions.retry — backoff curve and state machine."""

from unittest.mock import AsyncMock, patch

import pytest

from narrative_decisions.retry import RetryMachine, RetryPolicy, RetryState


class Transient(Exception):
    pass


class Fatal(Exception):
    pass


def _retry_transient(error: Exception) -> bool:
    return isinstance(error, Transient)


# ── RetryPolicy ──────────────────────────────────────────────


class TestRetryPolicy:
    def test_exponential_delays(self) -> None:
        policy = RetryPolicy(base_delay=1.0)
        assert [policy.delay(n) for n in (1, 2, 3, 4)] == [1.0, 2.0, 4.0, 8.0]

    def test_delay_capped(self) -> None:
        policy = RetryPolicy(base_delay=1.0, max_delay=3.0)
        assert policy.delay(5) == 3.0

    def test_jitter_added_within_fraction(self) -> None:
        policy = RetryPolicy(base_delay=2.0, jitter=0.25)
        with patch("narrative_decisions.retry.random.uniform", return_value=0.4) as uniform:
            assert policy.delay(1) == pytest.approx(2.4)
        uniform.assert_called_once_with(0, 0.5)

    def test_no_jitter_by_default(self) -> None:
        policy = RetryPolicy(base_delay=0.5)
        assert policy.delay(2) == policy.delay(2) == 1.0


# ── RetryMachine ─────────────────────────────────────────────


class TestRetryMachine:
    async def test_first_attempt_succeeds(self) -> None:
        sleep = AsyncMock()
        machine = RetryMachine(RetryPolicy(), _retry_transient, sleep)
        result = await machine.run(AsyncMock(return_value="ok"))
        assert result == "ok"
        assert machine.state is RetryState.SUCCEEDED
        assert machine.attempt == 1
        sleep.assert_not_awaited()

    async def test_succeeds_after_transient_failures(self) -> None:
        sleep = AsyncMock()
        op = AsyncMock(side_effect=[Transient("a"), Transient("b"), "ok"])
        machine = RetryMachine(RetryPolicy(max_attempts=3, base_delay=1.0), _retry_transient, sleep)
        assert await machine.run(op) == "ok"
        assert [c.args[0] for c in op.await_args_list] == [1, 2, 3]
        assert [c.args[0] for c in sleep.await_args_list] == [1.0, 2.0]
        assert machine.history == [
            RetryState.ATTEMPTING, RetryState.BACKOFF,
            RetryState.ATTEMPTING, RetryState.BACKOFF,
            RetryState.ATTEMPTING, RetryState.SUCCEEDED,
        ]

    async def test_exhaustion_reraises_last_error(self) -> None:
        op = AsyncMock(side_effect=[Transient("a"), Transient("b")])
        machine = RetryMachine(RetryPolicy(max_attempts=2), _retry_transient, AsyncMock())
        with pytest.raises(Transient, match="b"):
            await machine.run(op)
        assert machine.state is RetryState.FAILED
        assert machine.exhausted is True
        assert machine.attempt == 2

    async def test_non_retryable_fails_immediately(self) -> None:
        sleep = AsyncMock()
        op = AsyncMock(side_effect=Fatal("nope"))
        machine = RetryMachine(RetryPolicy(max_attempts=5), _retry_transient, sleep)
        with pytest.raises(Fatal):
            await machine.run(op)
        assert machine.exhausted is False
        assert op.await_count == 1
        sleep.assert_not_awaited()

    async def test_single_attempt_ceiling(self) -> None:
        op = AsyncMock(side_effect=Transient("once"))
        machine = RetryMachine(RetryPolicy(max_attempts=1), _retry_transient, AsyncMock())
        with pytest.raises(Transient):
            await machine.run(op)
        assert machine.exhausted is True
        assert op.await_count == 1
