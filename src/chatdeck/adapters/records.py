"""Conversion of provider JSON/YAML records into chat models."""

from typing import Any

from chatdeck.chat.models import Attachment, Conversation, Message


def conversation_from_record(provider_id: str, record: dict[str, Any]) -> Conversation:
    """Build a Conversation from a provider record.

    Expected keys: ``id``, ``date`` and optionally ``subject``,
    ``recipient``, ``creator``, ``created_by_account``. The native id is
    kept as the opaque ``ref``.

    Raises:
        KeyError: If ``id`` is missing.
        pydantic.ValidationError: If a field has the wrong type.
    """
    native_id = str(record["id"])
    return Conversation(
        id=Conversation.qualify_id(provider_id, native_id),
        provider_id=provider_id,
        subject=record.get("subject") or None,
        recipient=record.get("recipient") or None,
        creator=record.get("creator") or "",
        date=record.get("date"),
        created_by_account=record.get("created_by_account") or False,
        ref=native_id,
    )


def message_from_record(record: dict[str, Any]) -> Message:
    """Build a Message from a provider record.

    Expected keys: ``id``, ``author``, ``content``, ``date`` and an
    optional ``attachments`` list of ``{name, url}`` objects.
    """
    attachments = tuple(
        Attachment(name=item.get("name") or item["url"], url=item["url"])
        for item in record.get("attachments") or []
    )
    return Message(
        id=str(record["id"]),
        author=record.get("author") or "",
        content=record.get("content") or "",
        date=record.get("date"),
        attachments=attachments,
    )
