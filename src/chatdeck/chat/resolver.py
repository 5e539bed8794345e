"""
Directionality and ordering resolver.

Providers expose no stable cross-provider user id, so whether a message
was sent by the local account is inferred from display names:

- thread created by the local account: outgoing iff author == creator
- thread created by someone else: outgoing iff author != creator

In a thread with several non-creator authors (group threads) every one of
them is reported as outgoing. That approximation is kept deliberately.
"""

from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from chatdeck.chat.models import Conversation, Message
from chatdeck.chat.normalizer import normalize

DEFAULT_PREVIEW_LENGTH = 100
DEFAULT_PREVIEW_MARKER = "…"


@dataclass(frozen=True)
class RenderedMessage:
    """A message paired with its display text and direction."""

    message: Message
    text: str
    outgoing: bool


def is_outgoing(
    conversation: Conversation,
    message: Message,
    local_display_name: str | None = None,
) -> bool:
    """
    Decide whether a message was sent by the local account.

    Args:
        conversation: The conversation the message belongs to.
        message: The message to classify.
        local_display_name: Local account name, only consulted when the
            provider did not report a creator.

    Returns:
        True for outgoing messages.
    """
    if not conversation.creator:
        return bool(local_display_name) and message.author == local_display_name

    if conversation.created_by_account:
        return message.author == conversation.creator
    return message.author != conversation.creator


def sort_messages(messages: Iterable[Message]) -> list[Message]:
    """Sort messages oldest first; equal timestamps keep input order."""
    return sorted(messages, key=lambda m: m.date)


def sort_conversations(conversations: Iterable[Conversation]) -> list[Conversation]:
    """Sort conversations newest first; equal timestamps keep input order."""
    # sorted() stays stable with reverse=True
    return sorted(conversations, key=lambda c: c.date, reverse=True)


def truncate(text: str, max_length: int, marker: str = DEFAULT_PREVIEW_MARKER) -> str:
    """Cut text to max_length characters and append marker if anything was cut."""
    if len(text) <= max_length:
        return text
    return text[:max_length] + marker


def build_preview(
    messages: Sequence[Message],
    max_length: int = DEFAULT_PREVIEW_LENGTH,
    marker: str = DEFAULT_PREVIEW_MARKER,
) -> str | None:
    """
    Build the list-view preview of a conversation.

    Args:
        messages: Messages of the conversation, in any order.
        max_length: Maximum number of characters kept before the marker.
        marker: Appended when the text was truncated.

    Returns:
        Normalized, truncated text of the latest message, or None when
        there are no messages.
    """
    if not messages:
        return None

    latest = sort_messages(messages)[-1]
    return truncate(normalize(latest.content), max_length, marker)


def display_title(conversation: Conversation, placeholder: str) -> str:
    """Subject, else recipient, else the placeholder."""
    return conversation.subject or conversation.recipient or placeholder


def render_thread(
    conversation: Conversation,
    messages: Iterable[Message],
    local_display_name: str | None = None,
) -> list[RenderedMessage]:
    """Order a thread for display and attach normalized text and direction."""
    return [
        RenderedMessage(
            message=message,
            text=normalize(message.content),
            outgoing=is_outgoing(conversation, message, local_display_name),
        )
        for message in sort_messages(messages)
    ]
