import asyncio

import pytest

from app.core.retry import backoff_delays, call_with_retry, fetch_with_retry


class Flaky:
    def __init__(self, failures, result="ok", exc=ConnectionError):
        self.failures = failures
        self.result = result
        self.exc = exc
        self.attempts = 0

    def __call__(self):
        self.attempts += 1
        if self.failures is None or self.attempts <= self.failures:
            raise self.exc(f"attempt {self.attempts} failed")
        return self.result


def async_op(flaky):
    async def op():
        return flaky()
    return op


def recording_sleep(delays):
    async def sleep(seconds):
        delays.append(seconds)
    return sleep


def test_always_failing_operation_gives_up_after_max_retries():
    flaky = Flaky(failures=None)
    delays = []

    with pytest.raises(ConnectionError, match="attempt 4 failed"):
        asyncio.run(fetch_with_retry(async_op(flaky), max_retries=3, base_delay=1, sleep=recording_sleep(delays)))

    assert flaky.attempts == 4
    assert delays == [1, 2, 4]


def test_fail_once_then_succeed():
    flaky = Flaky(failures=1)
    delays = []

    result = asyncio.run(fetch_with_retry(async_op(flaky), max_retries=3, base_delay=1, sleep=recording_sleep(delays)))

    assert result == "ok"
    assert flaky.attempts == 2
    assert delays == [1]


def test_first_success_makes_no_retries():
    flaky = Flaky(failures=0)
    delays = []
    assert asyncio.run(fetch_with_retry(async_op(flaky), sleep=recording_sleep(delays))) == "ok"
    assert flaky.attempts == 1
    assert delays == []


def test_errors_outside_retry_on_are_raised_immediately():
    flaky = Flaky(failures=None, exc=ValueError)
    delays = []

    with pytest.raises(ValueError):
        asyncio.run(fetch_with_retry(
            async_op(flaky), retry_on=(ConnectionError,), sleep=recording_sleep(delays)
        ))

    assert flaky.attempts == 1
    assert delays == []


def test_zero_retries_means_one_attempt():
    flaky = Flaky(failures=None)
    with pytest.raises(ConnectionError):
        asyncio.run(fetch_with_retry(async_op(flaky), max_retries=0, sleep=recording_sleep([])))
    assert flaky.attempts == 1


def test_sync_twin_uses_the_same_schedule():
    flaky = Flaky(failures=2)
    delays = []

    assert call_with_retry(flaky, max_retries=3, base_delay=0.5, sleep=delays.append) == "ok"
    assert flaky.attempts == 3
    assert delays == [0.5, 1.0]


def test_backoff_delays():
    assert backoff_delays(3, 1) == [1, 2, 4]
    assert backoff_delays(4, 0.25) == [0.25, 0.5, 1.0, 2.0]
    assert backoff_delays(0, 1) == []
