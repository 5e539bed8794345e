"""Capability registry: per-account answers to "can I do X in this thread"."""

import logging

from chatdeck.chat.models import CapabilityRule, CapabilityTag, Conversation
from chatdeck.chat.protocol import ProviderAdapter

logger = logging.getLogger(__name__)


def parse_capabilities(raw: dict[str, str] | None) -> dict[CapabilityTag, CapabilityRule]:
    """
    Convert a ``{tag: rule}`` mapping from configuration into enums.

    Unknown tags or rules are skipped with a warning.

    Args:
        raw: Mapping such as ``{"chat_reply": "own_threads"}``.

    Returns:
        Parsed capability declarations.
    """
    parsed: dict[CapabilityTag, CapabilityRule] = {}
    for tag_name, rule_name in (raw or {}).items():
        try:
            parsed[CapabilityTag(tag_name)] = CapabilityRule(rule_name)
        except ValueError:
            logger.warning(f"Ignoring unknown capability declaration: {tag_name}={rule_name}")
    return parsed


class CapabilityRegistry:
    """Answers capability queries by delegating to the owning adapter.

    The registry never raises: a missing adapter or a failing adapter
    predicate answers False, which only hides a feature.
    """

    def __init__(self, adapters: dict[str, ProviderAdapter] | None = None) -> None:
        """Initialize the registry.

        Args:
            adapters: Shared mapping of provider_id to adapter
        """
        self._adapters = adapters if adapters is not None else {}

    def supports(self, capability: CapabilityTag, conversation: Conversation) -> bool:
        """Check whether a capability is available in a conversation.

        Args:
            capability: The capability tag
            conversation: The conversation being displayed

        Returns:
            True if the owning adapter grants the capability for this thread
        """
        adapter = self._adapters.get(conversation.provider_id)
        if adapter is None:
            logger.debug(
                f"No adapter for provider '{conversation.provider_id}', "
                f"denying {capability.value}"
            )
            return False

        try:
            return bool(adapter.has_capability(capability, conversation.created_by_account))
        except Exception as e:
            logger.warning(
                f"Capability check {capability.value} failed on {adapter.provider_id}: {e}"
            )
            return False

    def describe(self, conversation: Conversation) -> dict[CapabilityTag, bool]:
        """Evaluate every known capability for a conversation."""
        return {tag: self.supports(tag, conversation) for tag in CapabilityTag}
