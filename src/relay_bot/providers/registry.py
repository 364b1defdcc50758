"""
Backend selection.

The AI variant is chosen once, at startup, from AI_SELECTED. PROVIDER_REGISTRY
is the closed set of supported variants.
"""
from typing import Callable, Mapping

from relay_bot.core.config import RelaySettings
from relay_bot.core.errors import ConfigurationError
from relay_bot.core.models import AIProvider
from relay_bot.providers.base import ReplyGenerator
from relay_bot.providers.gemini import GeminiReplyGenerator
from relay_bot.providers.openai_chat import OpenAIReplyGenerator


def _build_gemini(settings: RelaySettings) -> ReplyGenerator:
    return GeminiReplyGenerator(
        api_key=settings.gemini_key,
        model=settings.gemini_model,
        system_prompt=settings.gemini_prompt,
    )


def _build_openai(settings: RelaySettings) -> ReplyGenerator:
    return OpenAIReplyGenerator(
        api_key=settings.openai_key,
        prompt_id=settings.openai_assistant,
        model=settings.openai_model,
    )


PROVIDER_REGISTRY: Mapping[AIProvider, Callable[[RelaySettings], ReplyGenerator]] = {
    AIProvider.GEMINI: _build_gemini,
    AIProvider.GPT: _build_openai,
}


def create_reply_generator(settings: RelaySettings) -> ReplyGenerator:
    """
    Build the backend selected by settings.ai_selected.

    Raises:
        ConfigurationError: If credentials for the selected backend are missing
    """
    settings.validate_credentials()
    try:
        factory = PROVIDER_REGISTRY[settings.ai_selected]
    except KeyError:
        raise ConfigurationError(f"Unsupported AI_SELECTED: {settings.ai_selected!r}")
    return factory(settings)
