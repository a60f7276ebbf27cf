"""
Azure OpenAI chat-completion client for hm.

Sends exactly one request per call and extracts the text of the first
choice. There is no retry and no streaming; the timeout is httpx's default.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional

import httpx
from pydantic import BaseModel, ValidationError

from hm import USER_AGENT
from hm.config.settings import HmSettings
from hm.core.errors import EmptyCompletion, RequestBuildError, ResponseParseError, TransportError
from hm.core.prompt import CompletionRequest

logger = logging.getLogger(__name__)


class ChatMessage(BaseModel):
    """OpenAI-compatible chat message."""
    role: str
    content: str


class ChatCompletionBody(BaseModel):
    """Request body; the deployment selects the model."""
    messages: List[ChatMessage]


class ChoiceMessage(BaseModel):
    """Assistant message of a returned choice."""
    content: Optional[str] = None


class Choice(BaseModel):
    """One returned completion choice."""
    message: ChoiceMessage


class ProviderError(BaseModel):
    """Error object the provider sends instead of choices."""
    code: Optional[str] = None
    message: Optional[str] = None


class ChatCompletionResponseBody(BaseModel):
    """The parts of the provider response hm reads."""
    choices: Optional[List[Choice]] = None
    error: Optional[ProviderError] = None


@dataclass(frozen=True)
class CompletionResponse:
    """Text of the first returned choice."""
    text: str


class CompletionClient:
    """Client for an Azure OpenAI chat-completions deployment."""

    def __init__(
        self,
        settings: HmSettings,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        """Initialize the client.

        Args:
            settings: Effective settings with endpoint, deployment and key
            transport: Optional httpx transport, used by tests to mock the endpoint
        """
        self.settings = settings
        self._transport = transport

    @property
    def url(self) -> str:
        """Chat-completions URL without the query string."""
        endpoint = self.settings.api_endpoint.rstrip("/")
        return f"{endpoint}/openai/deployments/{self.settings.deployment}/chat/completions"

    def build_body(self, request: CompletionRequest) -> bytes:
        """Serialize the system and user messages, in that order."""
        body = ChatCompletionBody(
            messages=[
                ChatMessage(role="system", content=request.system_prompt),
                ChatMessage(role="user", content=request.user_message),
            ]
        )
        try:
            return body.model_dump_json().encode("utf-8")
        except ValueError as e:
            raise RequestBuildError(f"error marshaling request body: {e}", original_error=e) from e

    def complete(self, request: CompletionRequest) -> CompletionResponse:
        """
        Request a completion.

        Args:
            request: System prompt and user message

        Returns:
            CompletionResponse with the first choice's text

        Raises:
            RequestBuildError: The request could not be constructed
            TransportError: Sending the request or reading the response failed
            ResponseParseError: The response is not the expected JSON
            EmptyCompletion: The response has no choices
        """
        content = self.build_body(request)
        headers = {
            "Content-Type": "application/json",
            "api-key": self.settings.api_key,
            "User-Agent": USER_AGENT,
        }

        # No deadline: completions wait as long as the deployment takes.
        with httpx.Client(transport=self._transport, timeout=None) as client:
            try:
                http_request = client.build_request(
                    "POST",
                    self.url,
                    params={"api-version": self.settings.api_version},
                    headers=headers,
                    content=content,
                )
            except (httpx.InvalidURL, httpx.UnsupportedProtocol, ValueError) as e:
                raise RequestBuildError(f"error creating request: {e}", original_error=e) from e

            logger.debug(f"POST {self.url} api-version={self.settings.api_version}")

            try:
                response = client.send(http_request)
            except httpx.HTTPError as e:
                raise TransportError(f"error sending request: {e}", original_error=e) from e

        # Non-2xx responses are parsed like any other.
        logger.debug(f"Response status: {response.status_code}")
        return CompletionResponse(text=self._extract_text(response))

    def _extract_text(self, response: httpx.Response) -> str:
        try:
            payload = response.json()
        except ValueError as e:
            raise ResponseParseError(f"error unmarshalling response: {e}", original_error=e) from e

        # A JSON null body carries no choices.
        if payload is None:
            payload = {}

        try:
            body = ChatCompletionResponseBody.model_validate(payload)
        except ValidationError as e:
            raise ResponseParseError(
                f"error unmarshalling response: unexpected structure ({e.error_count()} errors)",
                details={"status": response.status_code},
                original_error=e,
            ) from e

        if not body.choices:
            provider_message = body.error.message if body.error else None
            raise EmptyCompletion(status=response.status_code, provider_message=provider_message)

        return body.choices[0].message.content or ""
