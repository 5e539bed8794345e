"""In-process provider adapter.

Keeps conversations and messages in memory, optionally seeded from a YAML
or JSON fixture file. Useful for demos, offline front-end work and tests.

Fixture format::

    conversations:
      - id: "42"
        subject: "Field trip"
        creator: "Ms. Martin"
        date: "2024-03-01T08:00:00Z"
        created_by_account: false
        messages:
          - id: "1"
            author: "Ms. Martin"
            content: "<p>Bring a packed lunch &amp; a coat.</p>"
            date: "2024-03-01T08:00:00Z"
            attachments:
              - name: "permission.pdf"
                url: "https://example.org/permission.pdf"
"""

import html
import itertools
import logging
from collections.abc import Callable
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import yaml

from chatdeck.adapters.records import conversation_from_record, message_from_record
from chatdeck.chat.exceptions import InvalidReferenceError
from chatdeck.chat.models import (
    CapabilityRule,
    CapabilityTag,
    Conversation,
    Message,
    ProviderType,
)
from chatdeck.chat.protocol import ProviderAdapter

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class MemoryAdapter(ProviderAdapter):
    """Provider adapter backed by in-memory records.

    Sent messages are stored HTML-escaped, the way a markup-based provider
    would return them, and authored by ``account_name``.
    """

    def __init__(
        self,
        provider_id: str,
        account_name: str = "",
        records: list[dict[str, Any]] | None = None,
        capabilities: dict[CapabilityTag, CapabilityRule] | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        """Initialize the memory adapter.

        Args:
            provider_id: Account identifier
            account_name: Display name used as author of sent messages
            records: Conversation records, each with an optional ``messages`` list
            capabilities: Capability overrides
            clock: Timestamp source for sent messages
        """
        super().__init__(provider_id, capabilities)

        self._account_name = account_name
        self._clock = clock or _utcnow
        self._ids = itertools.count(1)

        self._conversations: dict[str, Conversation] = {}
        self._messages: dict[str, list[Message]] = {}

        for record in records or []:
            self.add_record(record)

    @classmethod
    def from_fixture(
        cls,
        path: Path,
        provider_id: str,
        account_name: str = "",
        capabilities: dict[CapabilityTag, CapabilityRule] | None = None,
    ) -> "MemoryAdapter":
        """Create an adapter seeded from a YAML/JSON fixture file.

        Raises:
            ValueError: If the file cannot be read or has no conversation list.
        """
        try:
            with open(path, encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ValueError(f"Cannot load fixture {path}: {e}") from e

        records = data.get("conversations") if isinstance(data, dict) else None
        if not isinstance(records, list):
            raise ValueError(f"Fixture {path} has no 'conversations' list")

        try:
            adapter = cls(provider_id, account_name, records, capabilities)
        except (KeyError, TypeError, AttributeError, ValueError) as e:
            raise ValueError(f"Malformed record in fixture {path}: {e}") from e

        logger.info(f"Loaded {len(records)} conversations from {path}")
        return adapter

    @property
    def provider_type(self) -> ProviderType:
        """The type of provider this adapter handles."""
        return ProviderType.MEMORY

    @property
    def account_name(self) -> str:
        """Display name of the local account on this provider."""
        return self._account_name

    def default_capabilities(self) -> dict[CapabilityTag, CapabilityRule]:
        return {
            CapabilityTag.CHAT_REPLY: CapabilityRule.ALWAYS,
            CapabilityTag.CHAT_ATTACHMENTS: CapabilityRule.ALWAYS,
        }

    def add_record(self, record: dict[str, Any]) -> Conversation:
        """Add a conversation record (and its ``messages``) to the store."""
        conversation = conversation_from_record(self.provider_id, record)
        native_id = conversation.ref

        self._conversations[native_id] = conversation
        self._messages[native_id] = [
            message_from_record(m) for m in record.get("messages") or []
        ]
        return conversation

    def remove_conversation(self, native_id: str) -> None:
        """Drop a conversation, as if deleted upstream."""
        self._conversations.pop(native_id, None)
        self._messages.pop(native_id, None)

    def _thread(self, conversation: Conversation) -> list[Message]:
        self.check_reference(conversation)
        native_id = conversation.ref or conversation.native_id
        if native_id not in self._messages:
            raise InvalidReferenceError(
                f"Unknown conversation {conversation.id}",
                provider=self.provider_id,
                conversation_id=conversation.id,
            )
        return self._messages[native_id]

    async def list_conversations(self) -> list[Conversation]:
        return list(self._conversations.values())

    async def list_messages(self, conversation: Conversation) -> list[Message]:
        return list(self._thread(conversation))

    async def send(self, conversation: Conversation, text: str) -> None:
        thread = self._thread(conversation)
        thread.append(
            Message(
                id=f"sent-{next(self._ids)}",
                author=self._account_name,
                content=html.escape(text, quote=False),
                date=self._clock(),
            )
        )
        logger.debug(f"Stored sent message in {conversation.id}")
