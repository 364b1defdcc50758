"""
Gemini backend (google-genai).
"""
import logging
from typing import Optional

from google import genai
from google.genai import types

from relay_bot.core.errors import ProviderError
from relay_bot.providers.base import ReplyGenerator

logger = logging.getLogger(__name__)


class GeminiReplyGenerator(ReplyGenerator):
    """
    Stateless Gemini backend.

    Every call is a single generate_content request; no history is kept
    between calls, so all context must be in the text argument.
    """

    name = "gemini"

    def __init__(
        self,
        api_key: str,
        model: str = "gemini-2.0-flash",
        system_prompt: Optional[str] = None,
        client: Optional[genai.Client] = None,
    ):
        self.model = model
        self.system_prompt = system_prompt
        self.client = client or genai.Client(api_key=api_key)

    async def generate_reply(self, conversation_id: str, text: str) -> str:
        config = None
        if self.system_prompt:
            config = types.GenerateContentConfig(system_instruction=self.system_prompt)

        try:
            response = await self.client.aio.models.generate_content(
                model=self.model,
                contents=text,
                config=config,
            )
        except Exception as e:
            raise ProviderError(str(e), provider=self.name, conversation_id=conversation_id) from e

        reply = (response.text or "").strip()
        if not reply:
            raise ProviderError("Empty reply", provider=self.name, conversation_id=conversation_id)

        logger.debug(f"Gemini reply for {conversation_id}: {len(reply)} chars")
        return reply
