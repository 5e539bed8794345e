"""
chatdeck chats - Browse and reply to conversations.

Usage:
    chatdeck chats list [--json] [--no-preview]
    chatdeck chats show CONVERSATION_ID [--me NAME]
    chatdeck chats send CONVERSATION_ID TEXT
    chatdeck chats capabilities CONVERSATION_ID
"""

import asyncio
import json
from collections.abc import Awaitable, Callable
from datetime import datetime
from typing import Annotated, Any, TypeVar

import typer
from rich.markup import escape
from rich.panel import Panel

from chatdeck.chat import (
    CapabilityDeniedError,
    CapabilityTag,
    ChatError,
    ChatManager,
    Conversation,
    EmptyInputError,
    Message,
    clear_chat_manager,
    classify_error,
    display_title,
    get_chat_manager,
    is_transient,
    render_thread,
)
from chatdeck.cli.output import console, print_error, print_info, print_success, print_table
from chatdeck.config import ConfigurationError, get_config

app = typer.Typer(
    name="chats",
    help="Browse and reply to conversations.",
)

T = TypeVar("T")


def _run(func: Callable[[ChatManager], Awaitable[T]]) -> T:
    """Run an async operation against the chat manager, closing adapters after."""

    async def _main() -> T:
        manager = get_chat_manager()
        try:
            return await func(manager)
        finally:
            await manager.close()
            clear_chat_manager()

    try:
        return asyncio.run(_main())
    except ConfigurationError as e:
        print_error(escape(str(e)))
        raise typer.Exit(1)


def _format_date(value: datetime) -> str:
    return value.astimezone().strftime("%Y-%m-%d %H:%M")


async def _find_conversation(manager: ChatManager, conversation_id: str) -> Conversation:
    await manager.list_conversations()
    conversation = manager.get_conversation(conversation_id)
    if conversation is None:
        print_error(f"Conversation not found: {escape(conversation_id)}")
        raise typer.Exit(1)
    return conversation


def _print_thread(
    conversation: Conversation,
    messages: list[Message],
    local_display_name: str,
    can_reply: bool,
) -> None:
    config = get_config()
    title = display_title(conversation, config.chat.placeholder_title)
    header = (
        f"[bold]{escape(title)}[/bold]\n"
        f"{escape(conversation.creator or conversation.recipient or '')}"
        f"  [dim]{_format_date(conversation.date)}[/dim]"
    )
    console.print(Panel(header, title=conversation.id, expand=False))

    for rendered in render_thread(conversation, messages, local_display_name):
        message = rendered.message
        when = f"[dim]{_format_date(message.date)}[/dim]"
        if rendered.outgoing:
            console.print(f"[cyan]→ me[/cyan] {when}", justify="right")
            console.print(escape(rendered.text), justify="right")
        else:
            console.print(f"[bold]{escape(message.author)}[/bold] {when}")
            console.print(escape(rendered.text))
        for attachment in message.attachments:
            console.print(f"  [dim]📎 {escape(attachment.name)} <{escape(attachment.url)}>[/dim]")

    console.print()
    if can_reply:
        print_info("Reply available: chatdeck chats send " + conversation.id + " TEXT")
    else:
        print_info("Replying is disabled for this conversation.")


@app.command("list")
def list_chats(
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON."),
    ] = False,
    no_preview: Annotated[
        bool,
        typer.Option("--no-preview", help="Skip fetching message previews."),
    ] = False,
) -> None:
    """List conversations from all accounts, newest first."""

    async def _list(manager: ChatManager) -> tuple[list[Conversation], dict[str, str | None]]:
        await manager.list_conversations()
        previews = {} if no_preview else await manager.refresh_previews()
        return manager.conversations, previews

    conversations, previews = _run(_list)
    placeholder = get_config().chat.placeholder_title

    if json_output:
        payload: list[dict[str, Any]] = [
            {
                **conversation.model_dump(mode="json"),
                "title": display_title(conversation, placeholder),
                "preview": previews.get(conversation.id),
            }
            for conversation in conversations
        ]
        console.print_json(json.dumps(payload))
        return

    if not conversations:
        print_info("No conversations.")
        return

    rows = [
        [
            escape(display_title(conversation, placeholder)),
            _format_date(conversation.date),
            conversation.provider_id,
            escape(previews.get(conversation.id) or ""),
            conversation.id,
        ]
        for conversation in conversations
    ]
    print_table(["Title", "Date", "Account", "Preview", "ID"], rows, title="Conversations")


@app.command()
def show(
    conversation_id: Annotated[str, typer.Argument(help="Conversation ID (account:id).")],
    me: Annotated[
        str | None,
        typer.Option("--me", help="Local display name, overrides configuration."),
    ] = None,
) -> None:
    """Show a conversation thread, oldest message first."""

    async def _show(manager: ChatManager) -> tuple[Conversation, list[Message], bool]:
        conversation = await _find_conversation(manager, conversation_id)
        try:
            messages = await manager.list_messages(conversation)
        except ChatError as e:
            print_error(f"Could not load messages: {escape(str(e))}")
            raise typer.Exit(1)
        return conversation, messages, manager.supports(CapabilityTag.CHAT_REPLY, conversation)

    conversation, messages, can_reply = _run(_show)
    local_name = me or get_config().local_display_name_for(conversation.provider_id)
    _print_thread(conversation, messages, local_name, can_reply)


@app.command()
def send(
    conversation_id: Annotated[str, typer.Argument(help="Conversation ID (account:id).")],
    text: Annotated[str, typer.Argument(help="Message text.")],
) -> None:
    """Reply in a conversation and print the refreshed thread."""

    async def _send(manager: ChatManager) -> tuple[Conversation, list[Message]]:
        conversation = await _find_conversation(manager, conversation_id)
        try:
            messages = await manager.send(conversation, text)
        except EmptyInputError:
            print_error("Message text is empty.")
            raise typer.Exit(1)
        except CapabilityDeniedError:
            print_error("Replying is not available in this conversation.")
            raise typer.Exit(1)
        except ChatError as e:
            hint = " Try again later." if is_transient(classify_error(e)) else ""
            print_error(f"Send failed: {escape(str(e))}.{hint}")
            raise typer.Exit(1)
        return conversation, messages

    conversation, messages = _run(_send)
    print_success("Message sent.")
    local_name = get_config().local_display_name_for(conversation.provider_id)
    _print_thread(conversation, messages, local_name, can_reply=True)


@app.command()
def capabilities(
    conversation_id: Annotated[str, typer.Argument(help="Conversation ID (account:id).")],
) -> None:
    """Show which optional features a conversation supports."""

    async def _describe(manager: ChatManager) -> dict[CapabilityTag, bool]:
        conversation = await _find_conversation(manager, conversation_id)
        return manager.capabilities.describe(conversation)

    answers = _run(_describe)
    rows = [
        [tag.value, "[green]yes[/green]" if allowed else "[red]no[/red]"]
        for tag, allowed in answers.items()
    ]
    print_table(["Capability", "Available"], rows, title=conversation_id)
