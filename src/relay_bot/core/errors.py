"""Error taxonomy shared across the relay."""

from typing import Optional


class RelayError(Exception):
    """Base class for all relay errors."""


class ConfigurationError(RelayError):
    """Missing or invalid configuration. Fatal at startup."""


class ProviderError(RelayError):
    """
    An AI invocation failed (network, auth, provider-side, empty reply).

    Attributes:
        provider: Name of the backend that failed ("gemini", "openai")
        conversation_id: Conversation the call was made for, if known
    """

    def __init__(
        self,
        message: str,
        provider: str = "unknown",
        conversation_id: Optional[str] = None,
    ):
        self.provider = provider
        self.conversation_id = conversation_id
        super().__init__(message)

    def __str__(self) -> str:
        return f"[{self.provider}] {super().__str__()}"


class TransportError(RelayError):
    """Typing indicator or send failure. Always best-effort."""
