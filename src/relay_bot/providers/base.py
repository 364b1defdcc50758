"""
AI backend interface.

The relay never talks to a provider SDK directly. It depends on
ReplyGenerator, and each backend implements it:

- GeminiReplyGenerator: stateless, the text argument is the whole context.
- OpenAIReplyGenerator: keeps one provider-side conversation per chat, created
  on first use.

Both are invoked identically; authentication and session setup stay behind
this interface.
"""
from abc import ABC, abstractmethod


class ReplyGenerator(ABC):
    """Produces one reply string per call, or raises ProviderError."""

    name: str = "base"

    async def ensure_session(self, conversation_id: str) -> None:
        """Prepare per-conversation state. Idempotent; no-op for stateless backends."""
        return None

    @abstractmethod
    async def generate_reply(self, conversation_id: str, text: str) -> str:
        """
        Generate a reply for the merged inbound text.

        Args:
            conversation_id: Conversation the text belongs to
            text: Buffered messages joined in arrival order

        Returns:
            Non-empty reply text

        Raises:
            ProviderError: On any provider failure or an empty reply
        """
        ...
