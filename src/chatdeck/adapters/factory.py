"""Build provider adapters from configuration."""

import logging

from chatdeck.chat.capabilities import parse_capabilities
from chatdeck.chat.protocol import ProviderAdapter
from chatdeck.config.loader import resolve_env_reference
from chatdeck.config.schema import AccountConfig, Config
from chatdeck.storage.paths import expand_path

logger = logging.getLogger(__name__)


def create_adapter(account: AccountConfig, local_display_name: str = "") -> ProviderAdapter:
    """Create the adapter for one account.

    Args:
        account: Account configuration
        local_display_name: Fallback author name for memory accounts

    Returns:
        The configured adapter

    Raises:
        ValueError: If the account cannot be set up (missing fixture, etc.)
    """
    capabilities = parse_capabilities(account.capabilities)

    if account.type == "http":
        from chatdeck.adapters.http import HttpAdapter

        return HttpAdapter(
            account.id,
            base_url=account.base_url,
            token=resolve_env_reference(account.token),
            timeout=account.timeout,
            capabilities=capabilities,
        )

    from chatdeck.adapters.memory import MemoryAdapter

    account_name = account.display_name or local_display_name
    if account.fixture:
        return MemoryAdapter.from_fixture(
            expand_path(account.fixture), account.id, account_name, capabilities
        )
    return MemoryAdapter(account.id, account_name, capabilities=capabilities)


def create_adapters(config: Config) -> list[ProviderAdapter]:
    """Create adapters for every enabled account.

    Accounts that fail to set up are skipped with an error log, so one
    broken account never prevents the others from loading.

    Args:
        config: Chatdeck configuration

    Returns:
        Adapters in account declaration order
    """
    adapters: list[ProviderAdapter] = []

    for account in config.enabled_accounts():
        try:
            adapters.append(create_adapter(account, config.chat.local_display_name))
        except ValueError as e:
            logger.error(f"Skipping account {account.id}: {e}")

    return adapters
