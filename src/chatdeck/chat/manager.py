"""
Chat manager for Chatdeck.

Main interface for front ends. Aggregates conversations from every
registered provider adapter, routes message fetches and sends to the
owning adapter, and keeps the session caches (conversation list,
per-conversation messages, previews).
"""

import asyncio
import logging

from chatdeck.chat.capabilities import CapabilityRegistry
from chatdeck.chat.exceptions import (
    CapabilityDeniedError,
    EmptyInputError,
    InvalidReferenceError,
    classify_error,
)
from chatdeck.chat.models import CapabilityTag, Conversation, Message
from chatdeck.chat.protocol import ProviderAdapter
from chatdeck.chat.resolver import (
    DEFAULT_PREVIEW_LENGTH,
    DEFAULT_PREVIEW_MARKER,
    build_preview,
    sort_conversations,
)

logger = logging.getLogger(__name__)


class ChatManager:
    """
    Aggregates conversations and messages across provider adapters.

    The manager is the only writer of its caches. Adapter failures while
    listing conversations are absorbed per adapter; failures on a single
    conversation are raised to the caller and leave the caches intact.
    """

    def __init__(
        self,
        adapters: list[ProviderAdapter] | None = None,
        *,
        preview_length: int = DEFAULT_PREVIEW_LENGTH,
        preview_marker: str = DEFAULT_PREVIEW_MARKER,
        max_concurrent_fetches: int = 8,
    ):
        """
        Initialize the chat manager.

        Args:
            adapters: Adapters to register, in priority order for de-duplication.
            preview_length: Default maximum preview length in characters.
            preview_marker: Marker appended to truncated previews.
            max_concurrent_fetches: Bound on parallel preview fetches.
        """
        self._adapters: dict[str, ProviderAdapter] = {}
        self._capabilities = CapabilityRegistry(self._adapters)

        self.preview_length = preview_length
        self.preview_marker = preview_marker
        self.max_concurrent_fetches = max_concurrent_fetches

        self._conversations: list[Conversation] = []
        self._messages: dict[str, list[Message]] = {}
        self._previews: dict[str, str | None] = {}

        for adapter in adapters or []:
            self.register_adapter(adapter)

    # -------------------------------------------------------------------------
    # Adapter registration
    # -------------------------------------------------------------------------

    def register_adapter(self, adapter: ProviderAdapter) -> None:
        """
        Register a provider adapter.

        Args:
            adapter: The adapter to register.

        Raises:
            ValueError: If an adapter with the same provider_id is registered.
        """
        if adapter.provider_id in self._adapters:
            raise ValueError(f"Adapter for {adapter.provider_id} already registered")

        self._adapters[adapter.provider_id] = adapter
        logger.info(
            f"Registered {adapter.provider_type.value} adapter: {adapter.provider_id}"
        )

    def unregister_adapter(self, provider_id: str) -> None:
        """Unregister an adapter. Its conversations drop out on the next refresh."""
        if provider_id in self._adapters:
            del self._adapters[provider_id]
            logger.info(f"Unregistered adapter: {provider_id}")

    @property
    def adapters(self) -> list[ProviderAdapter]:
        """Registered adapters in registration order."""
        return list(self._adapters.values())

    @property
    def capabilities(self) -> CapabilityRegistry:
        """The capability registry backed by the registered adapters."""
        return self._capabilities

    # -------------------------------------------------------------------------
    # Conversations
    # -------------------------------------------------------------------------

    async def list_conversations(self) -> list[Conversation]:
        """
        Refresh and return the merged conversation list.

        Every adapter is queried concurrently; results are concatenated in
        registration order and de-duplicated by id (first seen wins). The
        cache is replaced wholesale.

        Returns:
            Merged conversations in adapter order.
        """
        adapters = list(self._adapters.values())
        results = await asyncio.gather(
            *(adapter.list_conversations() for adapter in adapters),
            return_exceptions=True,
        )

        merged: list[Conversation] = []
        seen: set[str] = set()

        for adapter, result in zip(adapters, results):
            if isinstance(result, BaseException):
                if not isinstance(result, Exception):
                    raise result
                logger.warning(
                    f"Provider {adapter.provider_id} contributed no conversations "
                    f"({classify_error(result).value}): {result}"
                )
                continue

            try:
                batch = list(result)
                for conversation in batch:
                    if not isinstance(conversation, Conversation):
                        raise TypeError(
                            f"expected Conversation, got {type(conversation).__name__}"
                        )
            except TypeError as e:
                logger.warning(
                    f"Provider {adapter.provider_id} returned an invalid conversation list: {e}"
                )
                continue

            for conversation in batch:
                if conversation.id in seen:
                    logger.debug(f"Skipping duplicate conversation {conversation.id}")
                    continue
                seen.add(conversation.id)
                merged.append(conversation)

        self._conversations = merged

        # Forget messages and previews of conversations that disappeared
        self._messages = {k: v for k, v in self._messages.items() if k in seen}
        self._previews = {k: v for k, v in self._previews.items() if k in seen}

        logger.info(f"Loaded {len(merged)} conversations from {len(adapters)} providers")
        return list(merged)

    @property
    def conversations(self) -> list[Conversation]:
        """Cached conversations, newest first."""
        return sort_conversations(self._conversations)

    def get_conversation(self, conversation_id: str) -> Conversation | None:
        """Look up a cached conversation by id."""
        for conversation in self._conversations:
            if conversation.id == conversation_id:
                return conversation
        return None

    # -------------------------------------------------------------------------
    # Messages
    # -------------------------------------------------------------------------

    def _adapter_for(self, conversation: Conversation) -> ProviderAdapter:
        adapter = self._adapters.get(conversation.provider_id)
        if adapter is None:
            raise InvalidReferenceError(
                f"No adapter registered for provider '{conversation.provider_id}'",
                provider=conversation.provider_id,
                conversation_id=conversation.id,
            )
        return adapter

    async def list_messages(self, conversation: Conversation) -> list[Message]:
        """
        Fetch the messages of a conversation from its owning adapter.

        Content is returned raw; normalization happens at render time.

        Args:
            conversation: The conversation to fetch.

        Returns:
            Messages in provider order.

        Raises:
            InvalidReferenceError: If no registered adapter owns the conversation.
            ChatError: Any adapter failure, unchanged.
        """
        adapter = self._adapter_for(conversation)
        messages = list(await adapter.list_messages(conversation))
        self._messages[conversation.id] = messages
        logger.debug(f"Fetched {len(messages)} messages for {conversation.id}")
        return list(messages)

    def cached_messages(self, conversation_id: str) -> list[Message] | None:
        """Messages from the last successful fetch, or None if never fetched."""
        messages = self._messages.get(conversation_id)
        return list(messages) if messages is not None else None

    async def send(self, conversation: Conversation | None, text: str) -> list[Message]:
        """
        Send a message and return the refreshed thread.

        The send is awaited before the re-fetch, so the returned messages
        reflect this send's completion. Nothing is appended locally.

        Args:
            conversation: Target conversation.
            text: User-entered text; trimmed before sending.

        Returns:
            Messages fetched after the send. If that fetch fails, the
            previously cached messages (possibly empty).

        Raises:
            EmptyInputError: If there is no conversation or text is blank.
            InvalidReferenceError: If no registered adapter owns the conversation.
            CapabilityDeniedError: If the conversation cannot be replied to.
            ChatError: Adapter send failures, unchanged.
        """
        if conversation is None:
            raise EmptyInputError("No conversation selected")

        trimmed = (text or "").strip()
        if not trimmed:
            raise EmptyInputError("Message text is empty", provider=conversation.provider_id)

        adapter = self._adapter_for(conversation)
        if not self.supports(CapabilityTag.CHAT_REPLY, conversation):
            raise CapabilityDeniedError(
                f"Replying is not available in {conversation.id}",
                provider=conversation.provider_id,
                capability=CapabilityTag.CHAT_REPLY.value,
            )

        await adapter.send(conversation, trimmed)
        logger.info(f"Sent message in {conversation.id}")

        try:
            return await self.list_messages(conversation)
        except Exception as e:
            logger.warning(f"Refresh after send failed for {conversation.id}: {e}")
            return self.cached_messages(conversation.id) or []

    # -------------------------------------------------------------------------
    # Capabilities
    # -------------------------------------------------------------------------

    def supports(self, capability: CapabilityTag, conversation: Conversation) -> bool:
        """Check whether a capability is available in a conversation. Never raises."""
        return self._capabilities.supports(capability, conversation)

    # -------------------------------------------------------------------------
    # Previews
    # -------------------------------------------------------------------------

    async def refresh_previews(self, max_length: int | None = None) -> dict[str, str | None]:
        """
        Fetch every cached conversation and compute its preview.

        Fetches run concurrently and independently: a failing conversation
        keeps its previous preview and does not affect the others.

        Args:
            max_length: Preview length; defaults to the manager's setting.

        Returns:
            Snapshot of the preview cache.
        """
        length = max_length if max_length is not None else self.preview_length
        semaphore = asyncio.Semaphore(max(1, self.max_concurrent_fetches))

        async def _refresh_one(conversation: Conversation) -> None:
            async with semaphore:
                try:
                    messages = await self.list_messages(conversation)
                except Exception as e:
                    logger.warning(f"Preview fetch failed for {conversation.id}: {e}")
                    return
            self._previews[conversation.id] = build_preview(
                messages, length, self.preview_marker
            )

        await asyncio.gather(*(_refresh_one(c) for c in list(self._conversations)))
        return dict(self._previews)

    def preview(self, conversation_id: str) -> str | None:
        """Cached preview for a conversation, or None."""
        return self._previews.get(conversation_id)

    @property
    def previews(self) -> dict[str, str | None]:
        """Snapshot of the preview cache."""
        return dict(self._previews)

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def close(self) -> None:
        """Close every adapter."""
        for provider_id, adapter in self._adapters.items():
            try:
                await adapter.close()
            except Exception as e:
                logger.error(f"Failed to close adapter {provider_id}: {e}")

    def reset_session(self) -> None:
        """Drop all cached conversations, messages and previews."""
        self._conversations = []
        self._messages.clear()
        self._previews.clear()


# Singleton instance
_chat_manager: ChatManager | None = None


def get_chat_manager(reload: bool = False) -> ChatManager:
    """
    Get the global chat manager instance.

    Args:
        reload: Force recreation of the manager from configuration.

    Returns:
        ChatManager instance.
    """
    global _chat_manager

    if _chat_manager is None or reload:
        from chatdeck.adapters.factory import create_adapters
        from chatdeck.config import get_config

        config = get_config(reload=reload)
        _chat_manager = ChatManager(
            create_adapters(config),
            preview_length=config.chat.preview_length,
            preview_marker=config.chat.preview_marker,
            max_concurrent_fetches=config.chat.max_concurrent_fetches,
        )

    return _chat_manager


def clear_chat_manager() -> None:
    """Clear the global chat manager instance."""
    global _chat_manager
    _chat_manager = None
