# Author: PB & Claude
# Maintainer: PB
# Original date: 2026.10.18
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ------
# tests/test_retry.py

import pytest

from nextup.core.retry import (
    RetryConfig, RetryableOperation, calculate_delay, is_retryable_error,
)
from nextup.system.exceptions import HTTPStatusError, NetworkError, TransferError, VersionError

FAST = RetryConfig(max_attempts=3, base_delay=0.5, max_delay=10.0, jitter=False)


class TestCalculateDelay:
    def test_exponential_growth_is_capped(self):
        config = RetryConfig(base_delay=1.0, max_delay=5.0, exponential_base=2.0, jitter=False)
        assert [calculate_delay(n, config) for n in range(0, 5)] == [0.0, 1.0, 2.0, 4.0, 5.0]

    def test_jitter_stays_within_ten_percent(self):
        config = RetryConfig(base_delay=10.0, max_delay=100.0, jitter=True)
        for _ in range(50):
            assert 9.0 <= calculate_delay(1, config) <= 11.0


class TestIsRetryable:
    def test_network_error(self):
        assert is_retryable_error(NetworkError("down"), (NetworkError, TransferError))

    def test_permanent_http_error(self):
        assert not is_retryable_error(HTTPStatusError("gone", status_code=404), (TransferError,))

    def test_unrelated_error(self):
        assert not is_retryable_error(VersionError("bad"), (TransferError,))


class TestRetryableOperation:
    def test_succeeds_after_transient_failures(self):
        sleeps = []
        attempts = []

        def flaky():
            attempts.append(1)
            if len(attempts) < 3:
                raise NetworkError("temporary")
            return "done"

        op = RetryableOperation("flaky", FAST, sleep=sleeps.append)
        assert op.execute(flaky) == "done"
        assert op.attempt == 3
        assert sleeps == [0.5, 1.0]

    def test_gives_up_after_max_attempts(self):
        op = RetryableOperation("doomed", FAST, sleep=lambda s: None)
        with pytest.raises(NetworkError):
            op.execute(lambda: (_ for _ in ()).throw(NetworkError("still down")))
        assert op.attempt == 3

    def test_non_retryable_error_is_raised_immediately(self):
        calls = []

        def fails():
            calls.append(1)
            raise ValueError("bug")

        op = RetryableOperation("buggy", FAST, sleep=lambda s: None)
        with pytest.raises(ValueError):
            op.execute(fails)
        assert len(calls) == 1
