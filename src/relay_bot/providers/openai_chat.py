"""
OpenAI backend (Responses API with per-chat conversations).

Each chat gets its own provider-side conversation, so OpenAI keeps the
dialogue history. The conversation must exist before the first reply for a
chat; ensure_session() creates it once and reuses it afterwards.
"""
import asyncio
import logging
from typing import Optional

from openai import AsyncOpenAI

from relay_bot.core.errors import ProviderError
from relay_bot.providers.base import ReplyGenerator

logger = logging.getLogger(__name__)


class OpenAIReplyGenerator(ReplyGenerator):
    """
    Stateful OpenAI backend.

    Attributes:
        prompt_id: ID of the stored prompt that carries the assistant's
                   instructions (OPENAI_ASSISTANT)
        model: Model name passed with every response request
    """

    name = "openai"

    def __init__(
        self,
        api_key: str,
        prompt_id: str,
        model: str = "gpt-4o-mini",
        client: Optional[AsyncOpenAI] = None,
    ):
        self.prompt_id = prompt_id
        self.model = model
        self.client = client or AsyncOpenAI(api_key=api_key)
        self._sessions: dict[str, str] = {}  # chat id -> OpenAI conversation id
        self._locks: dict[str, asyncio.Lock] = {}

    def get_session(self, conversation_id: str) -> Optional[str]:
        return self._sessions.get(conversation_id)

    async def ensure_session(self, conversation_id: str) -> None:
        if conversation_id in self._sessions:
            return

        lock = self._locks.setdefault(conversation_id, asyncio.Lock())
        async with lock:
            # Another caller may have created it while we waited
            if conversation_id in self._sessions:
                return
            try:
                conversation = await self.client.conversations.create(
                    metadata={"chat_id": conversation_id}
                )
            except Exception as e:
                raise ProviderError(
                    f"Could not create conversation: {e}",
                    provider=self.name,
                    conversation_id=conversation_id,
                ) from e
            self._sessions[conversation_id] = conversation.id
            logger.info(f"New OpenAI conversation {conversation.id} for {conversation_id}")

    async def generate_reply(self, conversation_id: str, text: str) -> str:
        await self.ensure_session(conversation_id)

        try:
            response = await self.client.responses.create(
                model=self.model,
                prompt={"id": self.prompt_id},
                conversation=self._sessions[conversation_id],
                input=text,
            )
        except Exception as e:
            raise ProviderError(str(e), provider=self.name, conversation_id=conversation_id) from e

        reply = (response.output_text or "").strip()
        if not reply:
            raise ProviderError("Empty reply", provider=self.name, conversation_id=conversation_id)

        logger.debug(f"OpenAI reply for {conversation_id}: {len(reply)} chars")
        return reply
