"""
chatdeck config - Configuration inspection commands.

Usage:
    chatdeck config show
    chatdeck config show chat
    chatdeck config validate
    chatdeck config path
"""

import json
from typing import Annotated

import typer
import yaml
from rich.markup import escape
from rich.syntax import Syntax

from chatdeck.cli.output import console, print_error, print_info, print_success, print_table
from chatdeck.config import (
    ConfigurationError,
    get_config_sources,
    get_nested_value,
    load_config,
)
from chatdeck.storage.paths import get_global_config_path, get_profiles_dir, list_profiles

app = typer.Typer(
    name="config",
    help="Configuration management.",
)

# Never echo credentials
_REDACTED = "********"


def _redact(config_dict: dict) -> dict:
    for account in config_dict.get("accounts", []):
        if account.get("token"):
            account["token"] = _REDACTED
    return config_dict


@app.command()
def show(
    section: Annotated[
        str | None,
        typer.Argument(help="Config section to show (e.g., 'chat', 'chat.preview_length')."),
    ] = None,
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON."),
    ] = False,
    profile: Annotated[
        str | None,
        typer.Option("--profile", "-p", help="Profile to use."),
    ] = None,
) -> None:
    """Show effective configuration values."""
    try:
        config = load_config(profile=profile)
    except ConfigurationError as e:
        print_error(escape(str(e)))
        raise typer.Exit(1)

    data = _redact(config.model_dump(mode="json"))
    if section:
        data = get_nested_value(data, section)
        if data is None:
            print_error(f"Unknown config section: {section}")
            raise typer.Exit(1)

    if json_output:
        console.print_json(json.dumps(data))
        return

    rendered = yaml.dump(data, default_flow_style=False, sort_keys=False, allow_unicode=True)
    console.print(Syntax(rendered, "yaml", theme="ansi_dark", background_color="default"))


@app.command()
def validate(
    profile: Annotated[
        str | None,
        typer.Option("--profile", "-p", help="Profile to validate."),
    ] = None,
) -> None:
    """Validate the merged configuration."""
    try:
        config = load_config(profile=profile)
    except ConfigurationError as e:
        print_error(escape(str(e)))
        raise typer.Exit(1)

    enabled = len(config.enabled_accounts())
    print_success(f"Configuration is valid ({enabled} enabled accounts)")


@app.command()
def path() -> None:
    """Show configuration file locations and available profiles."""
    sources = get_config_sources()
    rows = [[name, str(p) if p else "[dim]not found[/dim]"] for name, p in sources.items()]
    if sources["global"] is None:
        rows[0][1] = f"[dim]not found ({get_global_config_path()})[/dim]"
    print_table(["Source", "Path"], rows, title="Configuration sources")

    profiles = list_profiles()
    if profiles:
        print_info(f"Profiles: {', '.join(profiles)}")
    else:
        print_info(f"No profiles in {get_profiles_dir()}")
