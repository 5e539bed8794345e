"""CLI command modules."""

from chatdeck.cli.commands import chats, config

__all__ = ["chats", "config"]
