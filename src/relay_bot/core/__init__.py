"""Core relay modules."""

from relay_bot.core.errors import (
    RelayError,
    ConfigurationError,
    ProviderError,
    TransportError,
)
from relay_bot.core.models import (
    AIProvider,
    InboundMessage,
    RelayStats,
)

__all__ = [
    "RelayError",
    "ConfigurationError",
    "ProviderError",
    "TransportError",
    "AIProvider",
    "InboundMessage",
    "RelayStats",
]
