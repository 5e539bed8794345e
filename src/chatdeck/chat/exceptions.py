"""
Chat exceptions for Chatdeck.

Defines the error taxonomy shared by the manager and provider adapters.
"""

from enum import Enum


class FailureType(Enum):
    """Classification of chat failures for logging and retry decisions."""

    PROVIDER_UNAVAILABLE = "provider_unavailable"
    AUTH_EXPIRED = "auth_expired"
    INVALID_REFERENCE = "invalid_reference"
    SEND_REJECTED = "send_rejected"
    EMPTY_INPUT = "empty_input"
    CAPABILITY_DENIED = "capability_denied"
    UNKNOWN = "unknown"


class ChatError(Exception):
    """Base exception for chat errors."""

    def __init__(self, message: str, provider: str | None = None):
        super().__init__(message)
        self.provider = provider


class ProviderUnavailableError(ChatError):
    """Provider could not be reached (network, timeout, server error)."""

    pass


class AuthExpiredError(ChatError):
    """Provider session is no longer valid."""

    pass


class InvalidReferenceError(ChatError):
    """Conversation was routed to an adapter that did not produce it."""

    def __init__(
        self,
        message: str,
        provider: str | None = None,
        conversation_id: str | None = None,
    ):
        super().__init__(message, provider)
        self.conversation_id = conversation_id


class SendRejectedError(ChatError):
    """Provider refused the message (validation, size, permissions)."""

    def __init__(
        self,
        message: str,
        provider: str | None = None,
        status_code: int | None = None,
    ):
        super().__init__(message, provider)
        self.status_code = status_code


class EmptyInputError(ChatError):
    """Attempted to send blank text or to no conversation."""

    pass


class CapabilityDeniedError(ChatError):
    """The conversation does not allow the requested feature."""

    def __init__(self, message: str, provider: str | None = None, capability: str | None = None):
        super().__init__(message, provider)
        self.capability = capability


def classify_error(error: Exception) -> FailureType:
    """
    Classify an exception into a failure type.

    Args:
        error: The exception to classify.

    Returns:
        The failure type classification.
    """
    if isinstance(error, ProviderUnavailableError):
        return FailureType.PROVIDER_UNAVAILABLE
    elif isinstance(error, AuthExpiredError):
        return FailureType.AUTH_EXPIRED
    elif isinstance(error, InvalidReferenceError):
        return FailureType.INVALID_REFERENCE
    elif isinstance(error, SendRejectedError):
        return FailureType.SEND_REJECTED
    elif isinstance(error, EmptyInputError):
        return FailureType.EMPTY_INPUT
    elif isinstance(error, CapabilityDeniedError):
        return FailureType.CAPABILITY_DENIED

    # Transport-level errors raised outside an adapter's own mapping
    if isinstance(error, (ConnectionError, TimeoutError)):
        return FailureType.PROVIDER_UNAVAILABLE

    return FailureType.UNKNOWN


def is_transient(failure_type: FailureType) -> bool:
    """
    Determine if a failure is worth retrying later without user action.

    Args:
        failure_type: The classified failure type.

    Returns:
        True if the same call may succeed on a later attempt.
    """
    # Expired sessions need a re-login; rejected or blank input needs editing
    non_transient = {
        FailureType.AUTH_EXPIRED,
        FailureType.INVALID_REFERENCE,
        FailureType.SEND_REJECTED,
        FailureType.EMPTY_INPUT,
        FailureType.CAPABILITY_DENIED,
    }
    return failure_type not in non_transient
