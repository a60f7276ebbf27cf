"""Tests for the chat-completion client."""

import json
from typing import Any, Callable, Dict, List

import httpx
import pytest

from hm import USER_AGENT
from hm.config.settings import HmSettings
from hm.core.client import CompletionClient
from hm.core.errors import CompletionError, EmptyCompletion, ResponseParseError, TransportError
from hm.core.prompt import CompletionRequest

REQUEST = CompletionRequest(system_prompt="You are helpful.", user_message="Explain the following command: ls")


@pytest.fixture
def settings() -> HmSettings:
    return HmSettings(
        api_key="secret",
        api_endpoint="https://example.openai.azure.com",
        api_version="2024-06-01",
        deployment="gpt-4o",
    )


def json_handler(payload: Any, status_code: int = 200, seen: List[httpx.Request] = None) -> Callable:
    """Handler answering every request with the given JSON payload."""

    def handler(request: httpx.Request) -> httpx.Response:
        if seen is not None:
            seen.append(request)
        return httpx.Response(status_code, json=payload)

    return handler


def make_client(settings: HmSettings, handler: Callable) -> CompletionClient:
    return CompletionClient(settings, transport=httpx.MockTransport(handler))


def completion(content: Any) -> Dict[str, Any]:
    return {"choices": [{"message": {"role": "assistant", "content": content}}]}


class TestRequest:
    """The outbound request."""

    def test_url(self, settings: HmSettings) -> None:
        """Test the deployment URL."""
        client = CompletionClient(settings)
        assert client.url == "https://example.openai.azure.com/openai/deployments/gpt-4o/chat/completions"

    def test_trailing_slash_on_endpoint(self, settings: HmSettings) -> None:
        """Test that a trailing slash does not double up."""
        client = CompletionClient(settings.model_copy(update={"api_endpoint": "https://example.openai.azure.com/"}))
        assert client.url == "https://example.openai.azure.com/openai/deployments/gpt-4o/chat/completions"

    def test_single_post(self, settings: HmSettings) -> None:
        """Test method, query string, headers and body of the request."""
        seen: List[httpx.Request] = []
        client = make_client(settings, json_handler(completion("ok"), seen=seen))

        client.complete(REQUEST)

        assert len(seen) == 1
        request = seen[0]
        assert request.method == "POST"
        assert request.url.path == "/openai/deployments/gpt-4o/chat/completions"
        assert request.url.params["api-version"] == "2024-06-01"
        assert request.headers["api-key"] == "secret"
        assert request.headers["content-type"] == "application/json"
        assert request.headers["user-agent"] == USER_AGENT
        assert json.loads(request.content) == {
            "messages": [
                {"role": "system", "content": "You are helpful."},
                {"role": "user", "content": "Explain the following command: ls"},
            ]
        }

    def test_no_deadline(self, settings: HmSettings) -> None:
        """Test that the request carries no connect, read, write or pool timeout."""
        seen: List[httpx.Request] = []
        client = make_client(settings, json_handler(completion("ok"), seen=seen))

        client.complete(REQUEST)

        assert seen[0].extensions["timeout"] == {"connect": None, "read": None, "write": None, "pool": None}

    def test_identical_requests_have_identical_bodies(self, settings: HmSettings) -> None:
        """Test that serialization is deterministic."""
        client = CompletionClient(settings)
        assert client.build_body(REQUEST) == client.build_body(REQUEST)


class TestResponse:
    """Extracting the completion text."""

    def test_first_choice(self, settings: HmSettings) -> None:
        """Test returning the first choice's content."""
        payload = {
            "choices": [
                {"message": {"content": "use ls -la"}},
                {"message": {"content": "second"}},
            ]
        }
        client = make_client(settings, json_handler(payload))

        assert client.complete(REQUEST).text == "use ls -la"

    def test_null_content(self, settings: HmSettings) -> None:
        """Test that a null content yields an empty string."""
        client = make_client(settings, json_handler(completion(None)))
        assert client.complete(REQUEST).text == ""

    def test_error_status_still_parsed(self, settings: HmSettings) -> None:
        """Test that the body of a non-2xx response is parsed as usual."""
        client = make_client(settings, json_handler(completion("still here"), status_code=500))
        assert client.complete(REQUEST).text == "still here"

    def test_empty_choices(self, settings: HmSettings) -> None:
        """Test that an empty choices list is an EmptyCompletion."""
        client = make_client(settings, json_handler({"choices": []}))

        with pytest.raises(EmptyCompletion) as exc_info:
            client.complete(REQUEST)

        assert str(exc_info.value) == "no content found in response"

    def test_missing_choices(self, settings: HmSettings) -> None:
        """Test that a body without choices is an EmptyCompletion."""
        client = make_client(settings, json_handler({}))

        with pytest.raises(EmptyCompletion):
            client.complete(REQUEST)

    @pytest.mark.parametrize("body", [b'{"choices": null}', b"null"])
    def test_null_choices(self, settings: HmSettings, body: bytes) -> None:
        """Test that null choices or a null body is an EmptyCompletion."""
        client = make_client(settings, lambda request: httpx.Response(200, content=body))

        with pytest.raises(EmptyCompletion, match="no content found in response"):
            client.complete(REQUEST)

    def test_provider_error_message(self, settings: HmSettings) -> None:
        """Test that the provider's error message is included."""
        payload = {"error": {"code": "401", "message": "Access denied due to invalid subscription key."}}
        client = make_client(settings, json_handler(payload, status_code=401))

        with pytest.raises(EmptyCompletion) as exc_info:
            client.complete(REQUEST)

        assert str(exc_info.value) == (
            "no content found in response (status 401: Access denied due to invalid subscription key.)"
        )
        assert exc_info.value.details["status"] == 401

    def test_invalid_json(self, settings: HmSettings) -> None:
        """Test that a non-JSON body is a ResponseParseError."""
        client = make_client(settings, lambda request: httpx.Response(502, text="<html>Bad Gateway</html>"))

        with pytest.raises(ResponseParseError, match="error unmarshalling response"):
            client.complete(REQUEST)

    @pytest.mark.parametrize("payload", [
        [],
        {"choices": "none"},
        {"choices": [{"text": "legacy completion"}]},
        {"choices": [{"message": {"content": 5}}]},
    ])
    def test_unexpected_structure(self, settings: HmSettings, payload: Any) -> None:
        """Test that a body of the wrong shape is a ResponseParseError."""
        client = make_client(settings, json_handler(payload))

        with pytest.raises(ResponseParseError):
            client.complete(REQUEST)


class TestTransport:
    """Transport failures."""

    def test_connect_error(self, settings: HmSettings) -> None:
        """Test that an unreachable endpoint is a TransportError."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("Connection refused", request=request)

        client = make_client(settings, handler)

        with pytest.raises(TransportError) as exc_info:
            client.complete(REQUEST)

        assert str(exc_info.value).startswith("error sending request:")
        assert isinstance(exc_info.value.original_error, httpx.ConnectError)

    def test_timeout(self, settings: HmSettings) -> None:
        """Test that a timeout is a TransportError."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        with pytest.raises(TransportError):
            make_client(settings, handler).complete(REQUEST)

    def test_unsupported_scheme(self, settings: HmSettings) -> None:
        """Test that an endpoint without a usable scheme fails before any response."""
        client = CompletionClient(settings.model_copy(update={"api_endpoint": "example.openai.azure.com"}))

        with pytest.raises(CompletionError):
            client.complete(REQUEST)
