"""
Main Typer application for chatdeck CLI.

This module defines the root CLI application and registers all command groups.
"""

from typing import Annotated

import typer

from chatdeck import __version__
from chatdeck.chat import clear_chat_manager
from chatdeck.cli.commands import chats, config
from chatdeck.cli.output import configure_logging, print_info
from chatdeck.config import ConfigurationError, get_config

app = typer.Typer(
    name="chatdeck",
    help="One inbox for conversations from all your messaging accounts.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    pretty_exceptions_enable=True,
    pretty_exceptions_show_locals=False,
)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        print_info(f"chatdeck version [green]{__version__}[/green]")
        raise typer.Exit()


@app.callback()
def main_callback(
    version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            "-V",
            help="Show version and exit.",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
    profile: Annotated[
        str | None,
        typer.Option(
            "--profile",
            "-p",
            help="Use specific config profile.",
        ),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option(
            "--verbose",
            "-v",
            help="Show debug logs on stderr.",
        ),
    ] = False,
) -> None:
    """
    [bold blue]chatdeck[/bold blue] - Unified messaging client

    Lists, reads and replies to conversations from every configured account.
    """
    level = "WARNING"
    try:
        level = get_config(reload=profile is not None, profile=profile).general.log_level
    except ConfigurationError:
        pass  # Reported by the command that needs the configuration

    configure_logging("DEBUG" if verbose else level)

    if profile is not None:
        clear_chat_manager()


app.add_typer(chats.app, name="chats")
app.add_typer(config.app, name="config")


if __name__ == "__main__":
    app()
