"""Unit tests for the retry policy."""

import pytest

from hull_client.core.errors import TransportError
from hull_client.core.services.rest import RetryPolicy, is_transient


class TestIsTransient:
    def test_timeouts_and_server_errors_are_transient(self):
        assert is_transient(TransportError("timeout", timeout=True))
        assert is_transient(TransportError("bad gateway", status_code=502))

    def test_client_errors_are_not_transient(self):
        assert not is_transient(TransportError("not found", status_code=404))
        assert not is_transient(TransportError("refused"))
        assert not is_transient(ValueError("boom"))


class TestRetryPolicy:
    """Test delay computation and the retry loop."""

    def test_exponential_delay_with_cap(self):
        policy = RetryPolicy(backoff=1.0, exponential_base=2.0, max_backoff=3.0)

        assert policy.get_delay(0) == 1.0
        assert policy.get_delay(1) == 2.0
        assert policy.get_delay(2) == 3.0

    def test_should_retry_stops_at_max_attempts(self):
        policy = RetryPolicy(max_attempts=3)
        error = TransportError("timeout", timeout=True)

        assert policy.should_retry(error, 0)
        assert policy.should_retry(error, 1)
        assert not policy.should_retry(error, 2)

    def test_at_least_one_attempt(self):
        assert RetryPolicy(max_attempts=0).max_attempts == 1

    async def test_retries_transient_errors_until_success(self):
        calls = []
        retries = []

        async def operation():
            calls.append(1)
            if len(calls) < 3:
                raise TransportError("unavailable", status_code=503)
            return "ok"

        policy = RetryPolicy(max_attempts=3, backoff=0)
        result = await policy.run(operation, on_retry=lambda e, n, d: retries.append(n))

        assert result == "ok"
        assert len(calls) == 3
        assert retries == [1, 2]

    async def test_reraises_after_last_attempt(self):
        calls = []

        async def operation():
            calls.append(1)
            raise TransportError("timeout", timeout=True)

        with pytest.raises(TransportError):
            await RetryPolicy(max_attempts=2, backoff=0).run(operation)

        assert len(calls) == 2

    async def test_does_not_retry_permanent_errors(self):
        calls = []

        async def operation():
            calls.append(1)
            raise TransportError("forbidden", status_code=403)

        with pytest.raises(TransportError):
            await RetryPolicy(max_attempts=5, backoff=0).run(operation)

        assert len(calls) == 1

    async def test_custom_predicate(self):
        calls = []

        async def operation():
            calls.append(1)
            if len(calls) == 1:
                raise KeyError("flaky")
            return len(calls)

        policy = RetryPolicy(backoff=0, is_retryable=lambda e: isinstance(e, KeyError))

        assert await policy.run(operation) == 2
