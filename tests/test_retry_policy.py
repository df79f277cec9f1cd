"""
Call envelope tests: bounded retries, doubling backoff, timeouts and
cancellation that is never retried.
"""
import asyncio
from unittest.mock import AsyncMock, patch

import pytest

from novabuild.core.exceptions import (
    BuildCancelledError,
    MaxRetriesError,
    OracleError,
    OracleTimeoutError,
)
from novabuild.orchestration.cancellation import CancellationToken
from novabuild.orchestration.retry_policy import RetryPolicy, call_with_retry

from tests.utils.call_counter import CallCounter


def flaky(counter: CallCounter, failures: int, result="ok"):
    async def operation():
        counter.inc("call")
        if counter.count("call") <= failures:
            raise OracleError("test", f"failure {counter.count('call')}")
        return result
    return operation


def test_retry_delay_doubles():
    policy = RetryPolicy(initial_delay=1.0)
    assert [policy.get_retry_delay(i) for i in range(3)] == [1.0, 2.0, 4.0]


def test_one_shot_keeps_timeout():
    policy = RetryPolicy(retries=2, initial_delay=0.5, timeout=30).one_shot()
    assert policy.retries == 0
    assert policy.timeout == 30


@pytest.mark.asyncio
async def test_succeeds_after_transient_failures():
    counter = CallCounter()
    policy = RetryPolicy(retries=2, initial_delay=0, timeout=5)

    result = await policy.run(flaky(counter, failures=2))

    assert result == "ok"
    counter.assert_exact("call", 3)


@pytest.mark.asyncio
async def test_exhausted_retries_wrap_last_cause():
    counter = CallCounter()
    policy = RetryPolicy(retries=2, initial_delay=0, timeout=5)

    with pytest.raises(MaxRetriesError) as exc_info:
        await policy.run(flaky(counter, failures=10))

    counter.assert_exact("call", 3)
    assert isinstance(exc_info.value.original_error, OracleError)
    assert "failure 3" in str(exc_info.value.original_error)


@pytest.mark.asyncio
async def test_timeout_counts_as_failure():
    async def slow():
        await asyncio.sleep(1)

    policy = RetryPolicy(retries=1, initial_delay=0, timeout=0.01)

    with pytest.raises(MaxRetriesError) as exc_info:
        await policy.run(slow)

    assert isinstance(exc_info.value.original_error, OracleTimeoutError)


@pytest.mark.asyncio
async def test_backoff_waits_double_each_time():
    counter = CallCounter()
    policy = RetryPolicy(retries=2, initial_delay=1.0, timeout=5)

    with patch("novabuild.orchestration.retry_policy.asyncio.sleep", new_callable=AsyncMock) as sleep:
        with pytest.raises(MaxRetriesError):
            await policy.run(flaky(counter, failures=10))

    assert [c.args[0] for c in sleep.await_args_list] == [1.0, 2.0]


@pytest.mark.asyncio
async def test_cancellation_is_not_retried():
    counter = CallCounter()

    async def cancelled():
        counter.inc("call")
        raise BuildCancelledError("p1")

    policy = RetryPolicy(retries=2, initial_delay=0, timeout=5)

    with pytest.raises(BuildCancelledError):
        await policy.run(cancelled)

    counter.assert_exact("call", 1)


@pytest.mark.asyncio
async def test_cancelled_token_skips_the_call():
    counter = CallCounter()
    token = CancellationToken("p1")
    token.cancel()

    with pytest.raises(BuildCancelledError):
        await RetryPolicy(initial_delay=0).run(flaky(counter, failures=0), cancel_token=token)

    counter.assert_exact("call", 0)


@pytest.mark.asyncio
async def test_cancellation_observed_right_after_a_call():
    token = CancellationToken("p1")

    async def cancel_then_answer():
        token.cancel()
        return "late answer"

    with pytest.raises(BuildCancelledError):
        await RetryPolicy(initial_delay=0).run(cancel_then_answer, cancel_token=token)


@pytest.mark.asyncio
async def test_cancellation_during_backoff_wakes_early():
    token = CancellationToken("p1")
    counter = CallCounter()

    async def fail_and_cancel():
        counter.inc("call")
        asyncio.get_running_loop().call_later(0.01, token.cancel)
        raise OracleError("test", "down")

    policy = RetryPolicy(retries=2, initial_delay=10, timeout=5)

    with pytest.raises(BuildCancelledError):
        await asyncio.wait_for(policy.run(fail_and_cancel, cancel_token=token), timeout=2)

    counter.assert_exact("call", 1)


@pytest.mark.asyncio
async def test_call_with_retry_helper():
    counter = CallCounter()
    result = await call_with_retry(flaky(counter, failures=1, result=42), retries=1, delay=0)
    assert result == 42
    counter.assert_exact("call", 2)
