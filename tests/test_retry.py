"""Tests for the retry policy and the provider HTTP client."""

import httpx
import pytest

from bridgeflow.errors import InvalidRoute, ProviderHttpError, UnsupportedSignatureScheme
from bridgeflow.routing.http import ProviderHttpClient
from bridgeflow.routing.retry import RetryPolicy, is_retryable


class TestIsRetryable:
    """Tests for error classification."""

    def test_server_errors_are_retryable(self):
        assert is_retryable(ProviderHttpError("quote", 500))
        assert is_retryable(ProviderHttpError("quote", 503))

    def test_rate_limit_is_retryable(self):
        assert is_retryable(ProviderHttpError("quote", 429))

    def test_client_errors_are_not_retryable(self):
        assert not is_retryable(ProviderHttpError("quote", 400))
        assert not is_retryable(ProviderHttpError("quote", 404))

    def test_network_errors_are_retryable(self):
        assert is_retryable(ProviderHttpError("quote", message="network: connection reset"))
        assert is_retryable(httpx.ConnectError("refused"))
        assert is_retryable(RuntimeError("Request timed out"))

    def test_local_errors_are_never_retried(self):
        assert not is_retryable(InvalidRoute("timeout while parsing"))
        assert not is_retryable(UnsupportedSignatureScheme("eip712"))


class TestRetryPolicy:
    """Tests for the retry loop."""

    @pytest.mark.asyncio
    async def test_linear_backoff(self, sleeps, recording_sleep):
        policy = RetryPolicy(max_attempts=3, base_delay=2.0, sleep=recording_sleep)
        calls = []

        async def always_503():
            calls.append(1)
            raise ProviderHttpError("quote", 503)

        with pytest.raises(ProviderHttpError):
            await policy.run(always_503, operation="quote")

        assert len(calls) == 3
        assert sleeps == [2.0, 4.0]

    @pytest.mark.asyncio
    async def test_succeeds_after_transient_failure(self, sleeps, recording_sleep):
        policy = RetryPolicy(max_attempts=3, base_delay=2.0, sleep=recording_sleep)
        answers = [ProviderHttpError("quote", 502), {"ok": True}]

        async def flaky():
            answer = answers.pop(0)
            if isinstance(answer, Exception):
                raise answer
            return answer

        assert await policy.run(flaky) == {"ok": True}
        assert sleeps == [2.0]

    @pytest.mark.asyncio
    async def test_permanent_error_not_retried(self, sleeps, recording_sleep):
        policy = RetryPolicy(sleep=recording_sleep)
        calls = []

        async def bad_request():
            calls.append(1)
            raise ProviderHttpError("quote", 400)

        with pytest.raises(ProviderHttpError):
            await policy.run(bad_request)

        assert len(calls) == 1
        assert sleeps == []


class TestProviderHttpClient:
    """Tests for the JSON transport over httpx."""

    def _client(self, handler, sleeps_sink):
        async def sleep(delay):
            sleeps_sink.append(delay)

        return ProviderHttpClient(
            "https://api.example.test",
            name="test",
            retry=RetryPolicy(max_attempts=3, base_delay=2.0, sleep=sleep),
            transport=httpx.MockTransport(handler),
        )

    @pytest.mark.asyncio
    async def test_503_retried_three_times(self):
        requests = []
        sleeps = []

        def handler(request):
            requests.append(request)
            return httpx.Response(503, text="overloaded")

        client = self._client(handler, sleeps)
        with pytest.raises(ProviderHttpError) as exc_info:
            await client.request_json("GET", "/quote", operation="test.quote")

        assert exc_info.value.status == 503
        assert len(requests) == 3
        assert sleeps == [2.0, 4.0]

    @pytest.mark.asyncio
    async def test_400_never_retried(self):
        requests = []
        sleeps = []

        def handler(request):
            requests.append(request)
            return httpx.Response(400, json={"message": "bad amount"})

        client = self._client(handler, sleeps)
        with pytest.raises(ProviderHttpError) as exc_info:
            await client.request_json("GET", "/quote", operation="test.quote")

        assert exc_info.value.status == 400
        assert len(requests) == 1
        assert sleeps == []

    @pytest.mark.asyncio
    async def test_none_params_dropped(self):
        seen = {}

        def handler(request):
            seen["params"] = dict(request.url.params)
            return httpx.Response(200, json={"ok": True})

        client = self._client(handler, [])
        data = await client.request_json(
            "GET", "/quote", operation="test.quote", params={"a": "1", "b": None}
        )

        assert data == {"ok": True}
        assert seen["params"] == {"a": "1"}

    @pytest.mark.asyncio
    async def test_invalid_json_raises(self):
        client = self._client(lambda request: httpx.Response(200, text="<html>"), [])

        with pytest.raises(ProviderHttpError):
            await client.request_json("GET", "/quote", operation="test.quote", retry=False)
