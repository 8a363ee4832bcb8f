import httpx
import pytest

from deliveries.services.routing.retry import (
    RetryExhausted,
    RetryPolicy,
    call_with_retry,
    is_transport_error,
    linear_backoff,
)


def test_linear_backoff_grows_with_attempt() -> None:
    assert [linear_backoff(1.0, attempt) for attempt in (1, 2, 3)] == [1.0, 2.0, 3.0]
    assert RetryPolicy(base_delay=0.5).delay_for(2) == 1.0


def test_transport_errors_are_retryable_but_status_errors_are_not() -> None:
    request = httpx.Request("GET", "https://maps.example.test")
    response = httpx.Response(500, request=request)

    assert is_transport_error(httpx.ReadTimeout("slow", request=request))
    assert is_transport_error(ConnectionError("refused"))
    assert not is_transport_error(httpx.HTTPStatusError("boom", request=request, response=response))
    assert not is_transport_error(ValueError("bad"))


def test_call_with_retry_succeeds_on_third_attempt_with_linear_sleeps() -> None:
    outcomes = [httpx.ConnectTimeout("t1"), httpx.ConnectTimeout("t2"), "ok"]
    sleeps: list[float] = []
    attempts: list[int] = []

    def flaky():
        outcome = outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    result = call_with_retry(
        flaky,
        RetryPolicy(max_attempts=3, base_delay=1.0),
        sleep=sleeps.append,
        on_attempt=attempts.append,
    )

    assert result == "ok"
    assert attempts == [1, 2, 3]
    assert sleeps == [1.0, 2.0]


def test_call_with_retry_gives_up_after_budget() -> None:
    calls = []

    def always_times_out():
        calls.append(1)
        raise httpx.ConnectTimeout("down")

    with pytest.raises(RetryExhausted) as exc_info:
        call_with_retry(always_times_out, RetryPolicy(max_attempts=3, base_delay=0.0), sleep=lambda _: None)

    assert len(calls) == 3
    assert exc_info.value.attempts == 3
    assert isinstance(exc_info.value.last_error, httpx.ConnectTimeout)
    assert exc_info.value.__cause__ is exc_info.value.last_error


def test_non_retryable_error_propagates_immediately() -> None:
    calls = []

    def rejected():
        calls.append(1)
        raise ValueError("REQUEST_DENIED")

    with pytest.raises(ValueError):
        call_with_retry(rejected, RetryPolicy(max_attempts=5, base_delay=0.0), sleep=lambda _: None)

    assert len(calls) == 1
