"""
Tests for the Serveradmin HTTP client.

Tests cover request construction, signing headers, retry logic,
error responses and response decoding. Requests are served by
``httpx.MockTransport`` so nothing leaves the process.
"""

import gzip
import json
from unittest.mock import patch

import httpx
import pytest

from adminapi import __version__
from adminapi.auth import SecurityTokenSigner, calc_app_id, calc_security_token
from adminapi.client import (
    API_ENDPOINT_NEW_OBJECT,
    API_ENDPOINT_QUERY,
    USER_AGENT,
    AdminapiClient,
)
from adminapi.config import Settings
from adminapi.exceptions import APIError, ConfigurationError, PayloadError, ResponseError
from adminapi.filters import Filters, any_, regexp

TOKEN = "1234567890"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _success(result=None):
    return httpx.Response(200, json={"status": "success", "result": result or []})


def _client(handler, **kwargs):
    """Client whose requests are answered by *handler*."""
    return AdminapiClient(
        "http://serveradmin.test",
        SecurityTokenSigner(TOKEN),
        transport=httpx.MockTransport(handler),
        **kwargs,
    )


class Recorder:
    """Transport handler that answers from a list and keeps the requests."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


# ===========================================================================
# Initialization
# ===========================================================================


class TestClientInitialization:
    """Tests for client initialization."""

    def test_base_url_trailing_slash_stripped(self):
        client = AdminapiClient("http://serveradmin.test/", SecurityTokenSigner(TOKEN))
        assert client.base_url == "http://serveradmin.test"

    def test_defaults(self):
        client = AdminapiClient("http://serveradmin.test", SecurityTokenSigner(TOKEN))
        assert client.timeout == 30.0
        assert client.max_retries == 3

    def test_user_agent_carries_version(self):
        assert USER_AGENT == f"Adminapi Python Client {__version__}"

    def test_from_settings(self):
        settings = Settings(
            base_url="http://serveradmin.test/api", token=TOKEN, timeout=5, max_retries=1
        )
        client = AdminapiClient.from_settings(settings)
        assert client.base_url == "http://serveradmin.test"
        assert client.timeout == 5.0
        assert client.max_retries == 1
        assert isinstance(client.signer, SecurityTokenSigner)

    def test_from_settings_uses_environment(self, serveradmin_env):
        client = AdminapiClient.from_settings()
        assert client.base_url == "http://serveradmin.test"

    def test_from_settings_without_base_url(self):
        with pytest.raises(ConfigurationError) as exc_info:
            AdminapiClient.from_settings(Settings(token=TOKEN))
        assert "SERVERADMIN_BASE_URL" in str(exc_info.value)

    def test_from_settings_without_credentials(self):
        with pytest.raises(ConfigurationError):
            AdminapiClient.from_settings(Settings(base_url="http://serveradmin.test"))


# ===========================================================================
# Persistent connection
# ===========================================================================


class TestPersistentConnection:
    """Tests for the shared httpx client."""

    def test_client_reused(self):
        client = _client(Recorder())
        assert client._get_client() is client._get_client()

    def test_close(self):
        client = _client(Recorder())
        inner = client._get_client()
        client.close()
        assert inner.is_closed
        assert client._client is None

    def test_context_manager_closes(self):
        with _client(Recorder()) as client:
            inner = client._get_client()
        assert inner.is_closed

    def test_close_without_requests(self):
        _client(Recorder()).close()


# ===========================================================================
# Request construction
# ===========================================================================


class TestRequestConstruction:
    """Tests for method, body, endpoint and headers."""

    def test_query_body(self):
        recorder = Recorder(_success())
        filters = Filters({
            "hostname": any_(regexp("test.foo.local"), regexp(".*\\.bar.local")),
        })
        payload = {"filters": filters.to_wire(), "restrict": ["hostname", "object_id"]}

        _client(recorder).query(payload)

        request = recorder.requests[0]
        assert request.method == "GET"
        assert request.url.path == API_ENDPOINT_QUERY
        assert request.content == (
            b'{"filters":{"hostname":{"Any":[{"Regexp":"test.foo.local"},'
            b'{"Regexp":".*\\\\.bar.local"}]}},"restrict":["hostname","object_id"]}'
        )

    def test_headers(self):
        recorder = Recorder(_success())
        with patch("adminapi.client.time.time", return_value=123456789.5):
            _client(recorder).query({"filters": {}, "restrict": ["object_id"]})

        request = recorder.requests[0]
        body = request.content
        assert request.headers["Content-Type"] == "application/x-json"
        assert request.headers["X-Timestamp"] == "123456789"
        assert request.headers["User-Agent"] == USER_AGENT
        assert request.headers["Accept-Encoding"] == "gzip"
        assert request.headers["X-Application"] == calc_app_id(TOKEN.encode())
        assert request.headers["X-SecurityToken"] == calc_security_token(
            TOKEN.encode(), 123456789, body
        )

    @pytest.mark.parametrize("value", [float("inf"), float("nan")])
    def test_non_finite_body_not_sent(self, value):
        recorder = Recorder(_success())
        client = _client(recorder)
        with pytest.raises(PayloadError) as exc_info:
            client.query({"filters": {"memory": value}, "restrict": ["object_id"]})
        assert exc_info.value.details["endpoint"] == API_ENDPOINT_QUERY
        assert recorder.requests == []

    def test_unserializable_body_not_sent(self):
        recorder = Recorder(_success())
        with pytest.raises(PayloadError):
            _client(recorder).query({"filters": {"hostname": object()}})
        assert recorder.requests == []

    def test_new_object_params(self):
        recorder = Recorder(httpx.Response(200, json={"hostname": None, "servertype": "vm"}))

        _client(recorder).new_object("vm")

        request = recorder.requests[0]
        assert request.url.path == API_ENDPOINT_NEW_OBJECT
        assert request.url.params["servertype"] == "vm"
        assert request.content == b"null"

    def test_new_object_param_encoded(self):
        recorder = Recorder(httpx.Response(200, json={}))
        _client(recorder).new_object("a&b c")
        assert recorder.requests[0].url.params["servertype"] == "a&b c"


# ===========================================================================
# Retry logic
# ===========================================================================


class TestRetryLogic:
    """Tests for retry with exponential backoff."""

    def test_retry_on_503(self):
        recorder = Recorder(httpx.Response(503), _success([{"object_id": 1}]))
        with patch("adminapi.client.time.sleep") as mock_sleep:
            result = _client(recorder).query({"filters": {}, "restrict": []})

        assert result == [{"object_id": 1}]
        assert len(recorder.requests) == 2
        mock_sleep.assert_called_once_with(1)

    def test_backoff_doubles(self):
        recorder = Recorder(
            httpx.Response(502), httpx.Response(504), httpx.Response(503), _success()
        )
        with patch("adminapi.client.time.sleep") as mock_sleep:
            _client(recorder).query({"filters": {}, "restrict": []})

        assert [c.args[0] for c in mock_sleep.call_args_list] == [1, 2, 4]

    def test_retries_exhausted(self):
        recorder = Recorder(*[httpx.Response(503) for _ in range(3)])
        with patch("adminapi.client.time.sleep"):
            with pytest.raises(APIError) as exc_info:
                _client(recorder, max_retries=2).query({"filters": {}, "restrict": []})

        assert exc_info.value.status_code == 503
        assert len(recorder.requests) == 3

    def test_retry_on_transport_error(self):
        recorder = Recorder(httpx.ConnectError("refused"), _success())
        with patch("adminapi.client.time.sleep") as mock_sleep:
            _client(recorder).query({"filters": {}, "restrict": []})

        assert len(recorder.requests) == 2
        mock_sleep.assert_called_once_with(1)

    def test_transport_error_reraised(self):
        recorder = Recorder(httpx.ConnectError("refused"), httpx.ConnectError("refused"))
        with patch("adminapi.client.time.sleep"):
            with pytest.raises(httpx.ConnectError):
                _client(recorder, max_retries=1).query({"filters": {}, "restrict": []})

    def test_no_retry_on_400(self):
        recorder = Recorder(httpx.Response(400, json={"error": {"message": "bad"}}))
        with patch("adminapi.client.time.sleep") as mock_sleep:
            with pytest.raises(APIError):
                _client(recorder).query({"filters": {}, "restrict": []})

        assert len(recorder.requests) == 1
        mock_sleep.assert_not_called()

    def test_no_retries_configured(self):
        recorder = Recorder(httpx.Response(503))
        with pytest.raises(APIError):
            _client(recorder, max_retries=0).query({"filters": {}, "restrict": []})
        assert len(recorder.requests) == 1


# ===========================================================================
# Error responses
# ===========================================================================


class TestErrorResponses:
    """Tests for non-2xx answers."""

    def test_error_message_from_json(self):
        recorder = Recorder(httpx.Response(
            400, json={"error": {"message": "Invalid filter: Between"}}
        ))
        with pytest.raises(APIError) as exc_info:
            _client(recorder).query({"filters": {}, "restrict": []})

        error = exc_info.value
        assert error.status_code == 400
        assert error.reason == "Bad Request"
        assert error.server_message == "Invalid filter: Between"
        assert error.message == "HTTP error 400 Bad Request: Invalid filter: Between"
        assert error.details["endpoint"] == API_ENDPOINT_QUERY

    def test_error_message_from_text(self):
        recorder = Recorder(httpx.Response(403, text="forbidden\n"))
        with pytest.raises(APIError) as exc_info:
            _client(recorder).query({"filters": {}, "restrict": []})

        assert exc_info.value.message == "HTTP error 403 Forbidden: forbidden"

    def test_error_without_body(self):
        recorder = Recorder(httpx.Response(404))
        with pytest.raises(APIError) as exc_info:
            _client(recorder).new_object("nope")

        assert exc_info.value.message == "HTTP error 404 Not Found"


# ===========================================================================
# Response handling
# ===========================================================================


class TestResponseHandling:
    """Tests for decoding successful responses."""

    def test_query_result(self):
        objects = [{"object_id": 483903, "hostname": "foo.bar.local"}]
        recorder = Recorder(_success(objects))
        assert _client(recorder).query({"filters": {}, "restrict": []}) == objects

    def test_gzip_body(self):
        body = json.dumps({"status": "success", "result": [{"object_id": 7}]}).encode()
        recorder = Recorder(httpx.Response(
            200, content=gzip.compress(body), headers={"Content-Encoding": "gzip"}
        ))
        assert _client(recorder).query({"filters": {}, "restrict": []}) == [{"object_id": 7}]

    def test_invalid_json(self):
        recorder = Recorder(httpx.Response(200, text="<html>"))
        with pytest.raises(ResponseError) as exc_info:
            _client(recorder).query({"filters": {}, "restrict": []})
        assert "not valid JSON" in str(exc_info.value)

    def test_missing_result(self):
        recorder = Recorder(httpx.Response(200, json={"status": "error"}))
        with pytest.raises(ResponseError):
            _client(recorder).query({"filters": {}, "restrict": []})

    def test_new_object_attributes(self):
        recorder = Recorder(httpx.Response(200, json={"servertype": "vm", "hostname": None}))
        assert _client(recorder).new_object("vm") == {"servertype": "vm", "hostname": None}

    def test_new_object_not_a_mapping(self):
        recorder = Recorder(httpx.Response(200, json=[1, 2]))
        with pytest.raises(ResponseError):
            _client(recorder).new_object("vm")
