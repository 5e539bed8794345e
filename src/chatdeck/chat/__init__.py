"""
Chatdeck chat core.

Provides unified access to conversations from several providers with:
- Concurrent aggregation and de-duplication across adapters
- Capability checks per conversation
- Content normalization for provider markup
- Directionality, ordering and preview helpers
"""

from chatdeck.chat.capabilities import CapabilityRegistry, parse_capabilities
from chatdeck.chat.exceptions import (
    AuthExpiredError,
    CapabilityDeniedError,
    ChatError,
    EmptyInputError,
    FailureType,
    InvalidReferenceError,
    ProviderUnavailableError,
    SendRejectedError,
    classify_error,
    is_transient,
)
from chatdeck.chat.manager import ChatManager, clear_chat_manager, get_chat_manager
from chatdeck.chat.models import (
    Attachment,
    CapabilityRule,
    CapabilityTag,
    Conversation,
    Message,
    ProviderType,
)
from chatdeck.chat.normalizer import decode_entities, normalize, strip_tags
from chatdeck.chat.protocol import ProviderAdapter
from chatdeck.chat.resolver import (
    RenderedMessage,
    build_preview,
    display_title,
    is_outgoing,
    render_thread,
    sort_conversations,
    sort_messages,
    truncate,
)

__all__ = [
    # Manager
    "ChatManager",
    "get_chat_manager",
    "clear_chat_manager",
    # Protocol
    "ProviderAdapter",
    "CapabilityRegistry",
    "parse_capabilities",
    # Models
    "Attachment",
    "CapabilityRule",
    "CapabilityTag",
    "Conversation",
    "Message",
    "ProviderType",
    # Exceptions
    "ChatError",
    "ProviderUnavailableError",
    "AuthExpiredError",
    "InvalidReferenceError",
    "SendRejectedError",
    "EmptyInputError",
    "CapabilityDeniedError",
    "FailureType",
    "classify_error",
    "is_transient",
    # Normalizer
    "normalize",
    "strip_tags",
    "decode_entities",
    # Resolver
    "RenderedMessage",
    "build_preview",
    "display_title",
    "is_outgoing",
    "render_thread",
    "sort_conversations",
    "sort_messages",
    "truncate",
]
