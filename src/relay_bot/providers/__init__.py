"""AI backends behind a single reply interface."""

from relay_bot.providers.base import ReplyGenerator
from relay_bot.providers.gemini import GeminiReplyGenerator
from relay_bot.providers.openai_chat import OpenAIReplyGenerator
from relay_bot.providers.registry import PROVIDER_REGISTRY, create_reply_generator

__all__ = [
    "ReplyGenerator",
    "GeminiReplyGenerator",
    "OpenAIReplyGenerator",
    "PROVIDER_REGISTRY",
    "create_reply_generator",
]
