"""Provider adapters for Chatdeck.

Each adapter implements ProviderAdapter for one backend account:
    - MemoryAdapter: in-process store, optionally seeded from a fixture file
    - HttpAdapter: JSON REST backend over httpx
"""

from chatdeck.adapters.factory import create_adapter, create_adapters
from chatdeck.adapters.http import HttpAdapter
from chatdeck.adapters.memory import MemoryAdapter

__all__ = [
    "HttpAdapter",
    "MemoryAdapter",
    "create_adapter",
    "create_adapters",
]
