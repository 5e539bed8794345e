"""
Chatdeck - Unified Messaging Client

Aggregates conversations and messages from several messaging providers
behind one interface, with content normalization, capability checks and
message directionality resolution.
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("chatdeck")
except PackageNotFoundError:
    __version__ = "0.1.0"

__all__ = [
    "__version__",
]
