"""
JSON REST provider adapter.

Talks to a backend exposing:

- ``GET  {base_url}/conversations``
- ``GET  {base_url}/conversations/{id}/messages``
- ``POST {base_url}/conversations/{id}/messages`` with ``{"content": text}``

Responses are JSON lists, or objects wrapping the list under
``conversations`` / ``messages``. Authentication is a bearer token.
"""

import logging
from typing import Any
from urllib.parse import quote

import httpx
from pydantic import ValidationError

from chatdeck.adapters.records import conversation_from_record, message_from_record
from chatdeck.chat.exceptions import (
    AuthExpiredError,
    InvalidReferenceError,
    ProviderUnavailableError,
    SendRejectedError,
)
from chatdeck.chat.models import (
    CapabilityRule,
    CapabilityTag,
    Conversation,
    Message,
    ProviderType,
)
from chatdeck.chat.protocol import ProviderAdapter

logger = logging.getLogger(__name__)

# Status codes meaning "the provider refused this message"
REJECTED_STATUSES = {400, 409, 413, 422}


class HttpAdapter(ProviderAdapter):
    """Provider adapter for a JSON REST messaging backend.

    Configuration:
        - base_url: API root, e.g. https://school.example.org/api/v1
        - token: Bearer token (empty = no Authorization header)
        - timeout: Request timeout in seconds
    """

    def __init__(
        self,
        provider_id: str,
        base_url: str,
        token: str = "",
        timeout: float = 30.0,
        capabilities: dict[CapabilityTag, CapabilityRule] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize the HTTP adapter.

        Args:
            provider_id: Account identifier
            base_url: API root URL
            token: Bearer token
            timeout: Request timeout in seconds
            capabilities: Capability overrides
            transport: Custom httpx transport (used by tests)
        """
        super().__init__(provider_id, capabilities)

        headers = {"Accept": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"

        self._base_url = base_url
        self._client = httpx.AsyncClient(
            base_url=base_url,
            headers=headers,
            timeout=timeout,
            transport=transport,
            follow_redirects=True,
        )

    @property
    def provider_type(self) -> ProviderType:
        """The type of provider this adapter handles."""
        return ProviderType.HTTP

    def default_capabilities(self) -> dict[CapabilityTag, CapabilityRule]:
        return {
            CapabilityTag.CHAT_REPLY: CapabilityRule.ALWAYS,
            CapabilityTag.CHAT_ATTACHMENTS: CapabilityRule.ALWAYS,
        }

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        """Perform a request and map transport and auth failures."""
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.TimeoutException as e:
            raise ProviderUnavailableError(
                f"Request to {self._base_url} timed out", provider=self.provider_id
            ) from e
        except httpx.HTTPError as e:
            raise ProviderUnavailableError(
                f"Request to {self._base_url} failed: {e}", provider=self.provider_id
            ) from e

        if response.status_code in (401, 403):
            raise AuthExpiredError(
                f"Session rejected by {self._base_url} ({response.status_code})",
                provider=self.provider_id,
            )
        if response.status_code >= 500:
            raise ProviderUnavailableError(
                f"Server error {response.status_code} from {self._base_url}",
                provider=self.provider_id,
            )
        return response

    def _records(self, response: httpx.Response, key: str) -> list[dict[str, Any]]:
        """Extract the record list from a successful JSON response."""
        if response.status_code != 200:
            raise ProviderUnavailableError(
                f"Unexpected status {response.status_code} from {response.request.url}",
                provider=self.provider_id,
            )
        try:
            payload = response.json()
        except ValueError as e:
            raise ProviderUnavailableError(
                f"Invalid JSON from {response.request.url}", provider=self.provider_id
            ) from e

        if isinstance(payload, dict):
            payload = payload.get(key)
        if not isinstance(payload, list):
            raise ProviderUnavailableError(
                f"Expected a list of {key} from {response.request.url}",
                provider=self.provider_id,
            )
        return payload

    def _thread_path(self, conversation: Conversation) -> str:
        native_id = conversation.ref or conversation.native_id
        return f"conversations/{quote(str(native_id), safe='')}/messages"

    async def list_conversations(self) -> list[Conversation]:
        response = await self._request("GET", "conversations")
        try:
            return [
                conversation_from_record(self.provider_id, record)
                for record in self._records(response, "conversations")
            ]
        except (KeyError, TypeError, AttributeError, ValidationError) as e:
            raise ProviderUnavailableError(
                f"Malformed conversation record: {e}", provider=self.provider_id
            ) from e

    async def list_messages(self, conversation: Conversation) -> list[Message]:
        self.check_reference(conversation)

        response = await self._request("GET", self._thread_path(conversation))
        if response.status_code == 404:
            raise InvalidReferenceError(
                f"Conversation {conversation.id} not found upstream",
                provider=self.provider_id,
                conversation_id=conversation.id,
            )
        try:
            return [message_from_record(record) for record in self._records(response, "messages")]
        except (KeyError, TypeError, AttributeError, ValidationError) as e:
            raise ProviderUnavailableError(
                f"Malformed message record: {e}", provider=self.provider_id
            ) from e

    async def send(self, conversation: Conversation, text: str) -> None:
        self.check_reference(conversation)

        response = await self._request(
            "POST", self._thread_path(conversation), json={"content": text}
        )
        if response.status_code == 404:
            raise InvalidReferenceError(
                f"Conversation {conversation.id} not found upstream",
                provider=self.provider_id,
                conversation_id=conversation.id,
            )
        if response.status_code in REJECTED_STATUSES:
            raise SendRejectedError(
                f"Message rejected: {_error_detail(response)}",
                provider=self.provider_id,
                status_code=response.status_code,
            )
        if not response.is_success:
            raise ProviderUnavailableError(
                f"Unexpected status {response.status_code} on send",
                provider=self.provider_id,
            )

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()


def _error_detail(response: httpx.Response) -> str:
    """Best-effort human readable error from a response body."""
    try:
        payload = response.json()
    except ValueError:
        return response.text[:200] or f"HTTP {response.status_code}"

    if isinstance(payload, dict):
        for key in ("error", "detail", "message"):
            if payload.get(key):
                return str(payload[key])
    return f"HTTP {response.status_code}"
