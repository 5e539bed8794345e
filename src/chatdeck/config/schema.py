"""
Pydantic configuration schema for Chatdeck.

This module defines all configuration models with validation.
"""

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

# =============================================================================
# Account Configuration
# =============================================================================


class AccountConfig(BaseModel):
    """One provider account, served by one adapter.

    Tokens may reference environment variables as ``${VAR_NAME}``.
    """

    model_config = ConfigDict(extra="allow")

    id: str = Field(min_length=1)
    type: Literal["memory", "http"] = "memory"
    enable: bool = True
    display_name: str = ""  # Local account's display name on this provider

    # http
    base_url: str = ""
    token: str = ""
    timeout: float = Field(default=30.0, gt=0.0, le=120.0)

    # memory
    fixture: Path | None = None

    # Per-account capability overrides, e.g. {"chat_reply": "own_threads"}
    capabilities: dict[str, str] = Field(default_factory=dict)

    @field_validator("id")
    @classmethod
    def id_has_no_separator(cls, value: str) -> str:
        if ":" in value:
            raise ValueError("account id must not contain ':'")
        return value

    @model_validator(mode="after")
    def http_needs_base_url(self) -> "AccountConfig":
        if self.type == "http" and self.enable and not self.base_url:
            raise ValueError(f"account '{self.id}' of type http requires base_url")
        return self


# =============================================================================
# Chat Configuration
# =============================================================================


class ChatConfig(BaseModel):
    """Conversation list and thread behavior."""

    model_config = ConfigDict(extra="allow")

    preview_length: int = Field(default=100, ge=1)
    preview_marker: str = "…"
    placeholder_title: str = "Untitled conversation"
    local_display_name: str = ""
    max_concurrent_fetches: int = Field(default=8, ge=1, le=64)


# =============================================================================
# General Configuration
# =============================================================================


class GeneralConfig(BaseModel):
    """General settings."""

    model_config = ConfigDict(extra="allow")

    default_profile: str | None = None
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "WARNING"


# =============================================================================
# Root Configuration Model
# =============================================================================


class Config(BaseModel):
    """
    Root configuration model for Chatdeck.

    Configuration can be loaded from YAML files and environment variables,
    merged in order of priority.
    """

    model_config = ConfigDict(extra="allow")

    accounts: list[AccountConfig] = Field(default_factory=list)
    chat: ChatConfig = Field(default_factory=ChatConfig)
    general: GeneralConfig = Field(default_factory=GeneralConfig)

    @model_validator(mode="after")
    def unique_account_ids(self) -> "Config":
        ids = [account.id for account in self.accounts]
        duplicates = sorted({i for i in ids if ids.count(i) > 1})
        if duplicates:
            raise ValueError(f"duplicate account ids: {', '.join(duplicates)}")
        return self

    def enabled_accounts(self) -> list[AccountConfig]:
        """Accounts with enable=True, in declaration order."""
        return [account for account in self.accounts if account.enable]

    def get_account(self, account_id: str) -> AccountConfig | None:
        """Find an account by id."""
        for account in self.accounts:
            if account.id == account_id:
                return account
        return None

    def local_display_name_for(self, account_id: str) -> str:
        """Local display name for an account, falling back to chat.local_display_name."""
        account = self.get_account(account_id)
        if account and account.display_name:
            return account.display_name
        return self.chat.local_display_name
