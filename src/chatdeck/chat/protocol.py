"""Provider adapter protocol definition."""

from abc import ABC, abstractmethod

from chatdeck.chat.exceptions import InvalidReferenceError
from chatdeck.chat.models import (
    CapabilityRule,
    CapabilityTag,
    Conversation,
    Message,
    ProviderType,
)


class ProviderAdapter(ABC):
    """Abstract base class for provider adapters.

    Each backend account (a school messaging service, a mail-like REST API,
    an in-process store) implements this protocol so the chat manager can
    aggregate it with the others.
    """

    def __init__(
        self,
        provider_id: str,
        capabilities: dict[CapabilityTag, CapabilityRule] | None = None,
    ) -> None:
        """Initialize the provider adapter.

        Args:
            provider_id: Unique account identifier, used to qualify conversation ids
            capabilities: Overrides merged on top of default_capabilities()
        """
        self._provider_id = provider_id
        self._capabilities = {**self.default_capabilities(), **(capabilities or {})}

    @property
    def provider_id(self) -> str:
        """The account identifier this adapter serves."""
        return self._provider_id

    @property
    @abstractmethod
    def provider_type(self) -> ProviderType:
        """The type of provider this adapter handles."""
        ...

    @property
    def capabilities(self) -> dict[CapabilityTag, CapabilityRule]:
        """The capability declarations for this account."""
        return dict(self._capabilities)

    def default_capabilities(self) -> dict[CapabilityTag, CapabilityRule]:
        """Capabilities the provider grants when configuration says nothing.

        Default implementation grants nothing. Adapters override this.
        """
        return {}

    @abstractmethod
    async def list_conversations(self) -> list[Conversation]:
        """Fetch all conversations visible to this account.

        Returns:
            Conversations with ids qualified by this adapter's provider_id

        Raises:
            ProviderUnavailableError: If the backend cannot be reached
            AuthExpiredError: If the account session is no longer valid
        """
        ...

    @abstractmethod
    async def list_messages(self, conversation: Conversation) -> list[Message]:
        """Fetch the messages of a conversation produced by this adapter.

        Args:
            conversation: A conversation returned by list_conversations()

        Returns:
            Messages with raw provider content, in provider order

        Raises:
            InvalidReferenceError: If the conversation belongs to another adapter
            ProviderUnavailableError: If the backend cannot be reached
            AuthExpiredError: If the account session is no longer valid
        """
        ...

    @abstractmethod
    async def send(self, conversation: Conversation, text: str) -> None:
        """Post a message in a conversation.

        Args:
            conversation: A conversation returned by list_conversations()
            text: Trimmed, non-empty message text

        Raises:
            InvalidReferenceError: If the conversation belongs to another adapter
            SendRejectedError: If the provider refuses the message
            ProviderUnavailableError: If the backend cannot be reached
        """
        ...

    def has_capability(self, tag: CapabilityTag, created_by_account: bool) -> bool:
        """Check whether a feature is available for a thread.

        Args:
            tag: The capability being asked about
            created_by_account: Whether the local account started the thread

        Returns:
            True if the feature is available. Never raises.
        """
        rule = self._capabilities.get(tag, CapabilityRule.NEVER)
        return rule.allows(created_by_account)

    def owns(self, conversation: Conversation) -> bool:
        """Check whether a conversation was produced by this adapter."""
        return conversation.provider_id == self._provider_id

    def check_reference(self, conversation: Conversation) -> None:
        """Raise InvalidReferenceError for a conversation from another adapter."""
        if not self.owns(conversation):
            raise InvalidReferenceError(
                f"Conversation {conversation.id} belongs to provider "
                f"'{conversation.provider_id}', not '{self._provider_id}'",
                provider=self._provider_id,
                conversation_id=conversation.id,
            )

    async def close(self) -> None:
        """Release connections held by the adapter.

        Default implementation does nothing. Adapters holding network
        clients should override this.
        """
        pass
