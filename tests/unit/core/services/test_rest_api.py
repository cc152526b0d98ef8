"""Unit tests for the REST invoker."""

import httpx
import pytest

from hull_client.core.configuration import Configuration
from hull_client.core.errors import TransportError, UnsupportedMethod
from hull_client.core.services.rest import RestApiService, RetryPolicy, format_url, normalize_method
from hull_client.core.services.rest.rest_api import build_headers
from hull_client.runtime.logging import ClientLogger
from hull_client.version import __version__
from tests.utils import json_body


@pytest.fixture
def configuration(config):
    return Configuration(config)


@pytest.fixture
def rest_api(transport):
    return RestApiService(transport=transport, retry_policy=RetryPolicy(backoff=0))


class TestHelpers:
    @pytest.mark.parametrize(
        "method, verb",
        [("get", "GET"), ("POST", "POST"), ("put", "PUT"), ("delete", "DELETE"), ("del", "DELETE")],
    )
    def test_normalize_method(self, method, verb):
        assert normalize_method(method) == verb

    def test_unknown_method(self):
        with pytest.raises(UnsupportedMethod):
            normalize_method("patch")

    def test_format_url(self, configuration):
        assert format_url(configuration, "/me") == "https://test.hullapp.io/api/v1/me"
        assert format_url(configuration, "search/user_reports") == (
            "https://test.hullapp.io/api/v1/search/user_reports"
        )
        assert format_url(configuration, "http://firehose.test/") == "http://firehose.test/"

    def test_identity_headers(self, config):
        headers = build_headers(Configuration({**config, "user_id": "user-1"}))

        assert headers["Hull-App-Id"] == config["id"]
        assert headers["Hull-Access-Token"] == config["secret"]
        assert headers["Hull-Organization"] == config["organization"]
        assert headers["Hull-User-Id"] == "user-1"
        assert headers["User-Agent"] == f"Hull Python Client version: {__version__}"

    def test_scoped_headers_use_access_token(self, config):
        configuration = Configuration({**config, "user_claim": "123"})

        assert build_headers(configuration)["Hull-Access-Token"] == configuration.get("access_token")
        configuration.set("sudo", True)
        assert build_headers(configuration)["Hull-Access-Token"] == config["secret"]


class TestRestApiCall:
    """Test requests issued by RestApiService.call."""

    async def test_get_sends_query_params(self, rest_api, transport, configuration):
        transport.queue(httpx.Response(200, json={"id": "me"}))

        result = await rest_api.call(configuration, "me", "get", {"fields": "email"})

        request = transport.requests[0]
        assert result == {"id": "me"}
        assert request.method == "GET"
        assert request.url.path == "/api/v1/me"
        assert request.url.params["fields"] == "email"
        assert request.headers["Hull-App-Id"] == configuration.get("id")

    async def test_post_sends_json_body(self, rest_api, transport, configuration):
        await rest_api.call(configuration, "users", "post", {"email": "foo@bar.com"})

        request = transport.requests[0]
        assert request.method == "POST"
        assert json_body(request) == {"email": "foo@bar.com"}

    async def test_extra_headers(self, rest_api, transport, configuration):
        await rest_api.call(configuration, "me", "get", options={"headers": {"X-Test": "1"}})

        assert transport.requests[0].headers["X-Test"] == "1"

    async def test_plain_text_and_empty_bodies(self, rest_api, transport, configuration):
        transport.queue(httpx.Response(200, text="ok"), httpx.Response(204))

        assert await rest_api.call(configuration, "a") == "ok"
        assert await rest_api.call(configuration, "b") is None

    async def test_rejects_unknown_method_before_sending(self, rest_api, transport, configuration):
        with pytest.raises(UnsupportedMethod):
            await rest_api.call(configuration, "me", "patch")

        assert transport.requests == []

    async def test_retries_server_errors(self, rest_api, transport, configuration):
        transport.queue(httpx.Response(503), httpx.Response(200, json={"ok": True}))

        assert await rest_api.call(configuration, "me") == {"ok": True}
        assert len(transport.requests) == 2

    async def test_retries_timeouts(self, rest_api, transport, configuration):
        transport.queue(httpx.ReadTimeout("slow"), httpx.Response(200, json={}))

        await rest_api.call(configuration, "me")

        assert len(transport.requests) == 2

    async def test_gives_up_after_max_attempts(self, rest_api, transport, configuration):
        transport.queue(httpx.Response(500), httpx.Response(502), httpx.Response(503))

        with pytest.raises(TransportError) as exc_info:
            await rest_api.call(configuration, "me")

        assert exc_info.value.status_code == 503
        assert len(transport.requests) == 3

    async def test_client_errors_are_not_retried(self, rest_api, transport, configuration):
        transport.queue(httpx.Response(404))

        with pytest.raises(TransportError) as exc_info:
            await rest_api.call(configuration, "missing")

        assert exc_info.value.status_code == 404
        assert not exc_info.value.is_retryable
        assert len(transport.requests) == 1

    async def test_connection_errors_surface_as_transport_errors(self, rest_api, transport, configuration):
        transport.queue(httpx.ConnectError("refused"))

        with pytest.raises(TransportError) as exc_info:
            await rest_api.call(configuration, "me")

        assert isinstance(exc_info.value.cause, httpx.ConnectError)

    async def test_logs_retries_and_failures(self, rest_api, transport, configuration):
        logs: list = []
        client_logger = ClientLogger({"organization": "test.hullapp.io"}, logs=logs)
        transport.queue(httpx.ReadTimeout("slow"), httpx.Response(400))

        with pytest.raises(TransportError):
            await rest_api.call(configuration, "me", client_logger=client_logger)

        messages = [entry["message"] for entry in logs]
        assert messages == ["client.timeout", "client.error"]
        assert logs[0]["data"]["retryCount"] == 1
        assert logs[0]["data"]["method"] == "get"
