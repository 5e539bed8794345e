"""Data models for aggregated conversations."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ProviderType(str, Enum):
    """Supported provider integrations."""

    MEMORY = "memory"
    HTTP = "http"


class CapabilityTag(str, Enum):
    """Optional messaging features whose availability depends on the thread."""

    CHAT_REPLY = "chat_reply"
    CHAT_ATTACHMENTS = "chat_attachments"


class CapabilityRule(str, Enum):
    """How an account grants a capability for a given thread."""

    ALWAYS = "always"
    NEVER = "never"
    OWN_THREADS = "own_threads"  # Only threads created by the local account
    OTHERS_THREADS = "others_threads"  # Only threads started by someone else

    def allows(self, created_by_account: bool) -> bool:
        """Evaluate the rule for a thread's creation context."""
        if self is CapabilityRule.ALWAYS:
            return True
        if self is CapabilityRule.OWN_THREADS:
            return created_by_account
        if self is CapabilityRule.OTHERS_THREADS:
            return not created_by_account
        return False


def _as_aware(value: datetime) -> datetime:
    """Treat naive timestamps as UTC so providers can be compared."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class Attachment(BaseModel):
    """A file attached to a message."""

    model_config = ConfigDict(frozen=True)

    name: str
    url: str  # Directly openable; bytes are never fetched by the core


class Message(BaseModel):
    """A single message in a conversation, as supplied by the provider."""

    model_config = ConfigDict(frozen=True)

    id: str  # Unique and stable within its conversation
    author: str
    content: str = ""  # Provider-native markup, normalized at render time
    date: datetime
    attachments: tuple[Attachment, ...] = ()

    @field_validator("date")
    @classmethod
    def date_as_aware(cls, value: datetime) -> datetime:
        return _as_aware(value)

    def __str__(self) -> str:
        """String representation for logging."""
        return f"[{self.id}] {self.author}: {self.content[:50]}"


class Conversation(BaseModel):
    """A messaging thread owned by exactly one provider account."""

    model_config = ConfigDict(frozen=True)

    id: str  # Provider-qualified, see qualify_id()
    provider_id: str
    subject: Optional[str] = None
    recipient: Optional[str] = None
    creator: str = ""
    date: datetime
    created_by_account: bool = False

    # Opaque native reference, only meaningful to the adapter that produced it
    ref: Any = Field(default=None, exclude=True, repr=False)

    @field_validator("date")
    @classmethod
    def date_as_aware(cls, value: datetime) -> datetime:
        return _as_aware(value)

    @staticmethod
    def qualify_id(provider_id: str, native_id: str) -> str:
        """Build the provider-qualified identifier for a native thread id."""
        return f"{provider_id}:{native_id}"

    @property
    def native_id(self) -> str:
        """The identifier without its provider prefix."""
        prefix = f"{self.provider_id}:"
        if self.id.startswith(prefix):
            return self.id[len(prefix) :]
        return self.id

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Conversation):
            return NotImplemented
        return self.model_dump() == other.model_dump()

    def __hash__(self) -> int:
        return hash((self.provider_id, self.id))

    def __str__(self) -> str:
        """String representation for logging."""
        return f"{self.id} ({self.subject or self.recipient or '-'})"
