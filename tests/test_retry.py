"""
Unit tests for retry policy
"""

import pytest

from mongoapi_sdk.exceptions import HTTPStatusError, ProtocolError, TransportError, ValidationError
from mongoapi_sdk.retry import RetryPolicy, is_retryable


def test_classification():
    assert is_retryable(TransportError("down"))
    assert is_retryable(HTTPStatusError(502, "bad gateway"))
    assert not is_retryable(HTTPStatusError(404, "not found"))
    assert not is_retryable(ValidationError("bad input"))
    assert not is_retryable(ProtocolError("garbage"))
    assert not is_retryable(ValueError("bug"))


def test_delays_double_and_cap():
    policy = RetryPolicy(max_retries=6, backoff_base=0.5, backoff_cap=4.0)

    assert policy.delays() == [0.5, 1.0, 2.0, 4.0, 4.0, 4.0]


def test_call_retries_then_succeeds():
    sleeps = []
    retried = []
    attempts = iter([TransportError("a"), TransportError("b"), "done"])

    def fn():
        item = next(attempts)
        if isinstance(item, Exception):
            raise item
        return item

    policy = RetryPolicy(
        max_retries=3,
        sleep=sleeps.append,
        on_retry=lambda attempt, exc, wait: retried.append(attempt),
    )

    assert policy.call(fn) == "done"
    assert sleeps == [0.1, 0.2]
    assert retried == [0, 1]


def test_call_terminal_error_not_retried():
    sleeps = []
    calls = []

    def fn():
        calls.append(1)
        raise HTTPStatusError(400, "bad")

    with pytest.raises(HTTPStatusError):
        RetryPolicy(max_retries=3, sleep=sleeps.append).call(fn)

    assert len(calls) == 1
    assert sleeps == []
