"""Tests for the Gemini and OpenAI backends and backend selection."""
import asyncio
from unittest.mock import AsyncMock, MagicMock, Mock

import pytest

from relay_bot.core.config import RelaySettings
from relay_bot.core.errors import ConfigurationError, ProviderError
from relay_bot.providers import (
    PROVIDER_REGISTRY,
    GeminiReplyGenerator,
    OpenAIReplyGenerator,
    create_reply_generator,
)
from relay_bot.core.models import AIProvider


def gemini_client(response=None, error=None) -> MagicMock:
    client = MagicMock()
    client.aio.models.generate_content = AsyncMock(return_value=response, side_effect=error)
    return client


def openai_client(output_text="Hello there", error=None) -> MagicMock:
    client = MagicMock()
    client.conversations.create = AsyncMock(return_value=Mock(id="conv_1"))
    client.responses.create = AsyncMock(return_value=Mock(output_text=output_text), side_effect=error)
    return client


class TestGeminiReplyGenerator:

    def test_generate_reply(self):
        client = gemini_client(Mock(text="  Hi!  "))
        generator = GeminiReplyGenerator(api_key="k", model="gemini-test", client=client)

        reply = asyncio.run(generator.generate_reply("chat-1", "Hello \n how are you?"))

        assert reply == "Hi!"
        kwargs = client.aio.models.generate_content.await_args.kwargs
        assert kwargs["model"] == "gemini-test"
        assert kwargs["contents"] == "Hello \n how are you?"
        assert kwargs["config"] is None

    def test_system_prompt_passed_as_instruction(self):
        client = gemini_client(Mock(text="ok"))
        generator = GeminiReplyGenerator(api_key="k", system_prompt="Be brief", client=client)

        asyncio.run(generator.generate_reply("chat-1", "hi"))

        config = client.aio.models.generate_content.await_args.kwargs["config"]
        assert config.system_instruction == "Be brief"

    def test_sdk_error_wrapped(self):
        client = gemini_client(error=RuntimeError("quota exceeded"))
        generator = GeminiReplyGenerator(api_key="k", client=client)

        with pytest.raises(ProviderError, match="quota exceeded") as exc_info:
            asyncio.run(generator.generate_reply("chat-1", "hi"))
        assert exc_info.value.provider == "gemini"
        assert exc_info.value.conversation_id == "chat-1"

    def test_empty_reply_is_an_error(self):
        client = gemini_client(Mock(text=None))
        generator = GeminiReplyGenerator(api_key="k", client=client)

        with pytest.raises(ProviderError, match="Empty reply"):
            asyncio.run(generator.generate_reply("chat-1", "hi"))

    def test_stateless_session_is_noop(self):
        generator = GeminiReplyGenerator(api_key="k", client=gemini_client())
        assert asyncio.run(generator.ensure_session("chat-1")) is None


class TestOpenAIReplyGenerator:

    def test_session_created_once_per_conversation(self):
        client = openai_client()
        generator = OpenAIReplyGenerator(api_key="k", prompt_id="pmpt_1", client=client)

        async def scenario():
            await asyncio.gather(*(generator.ensure_session("chat-1") for _ in range(5)))
            await generator.ensure_session("chat-1")

        asyncio.run(scenario())

        assert client.conversations.create.await_count == 1
        assert generator.get_session("chat-1") == "conv_1"

    def test_generate_reply_uses_conversation_and_prompt(self):
        client = openai_client(output_text="Hi!\n\nI'm doing well.")
        generator = OpenAIReplyGenerator(api_key="k", prompt_id="pmpt_1", model="gpt-test", client=client)

        reply = asyncio.run(generator.generate_reply("chat-1", "Hello"))

        assert reply == "Hi!\n\nI'm doing well."
        kwargs = client.responses.create.await_args.kwargs
        assert kwargs["model"] == "gpt-test"
        assert kwargs["conversation"] == "conv_1"
        assert kwargs["prompt"] == {"id": "pmpt_1"}
        assert kwargs["input"] == "Hello"

    def test_separate_conversations_get_separate_sessions(self):
        client = openai_client()
        client.conversations.create = AsyncMock(side_effect=[Mock(id="conv_a"), Mock(id="conv_b")])
        generator = OpenAIReplyGenerator(api_key="k", prompt_id="p", client=client)

        async def scenario():
            await generator.ensure_session("a")
            await generator.ensure_session("b")

        asyncio.run(scenario())
        assert generator.get_session("a") == "conv_a"
        assert generator.get_session("b") == "conv_b"

    def test_session_failure_is_provider_error_and_retryable(self):
        client = openai_client()
        client.conversations.create = AsyncMock(side_effect=[RuntimeError("auth"), Mock(id="conv_2")])
        generator = OpenAIReplyGenerator(api_key="k", prompt_id="p", client=client)

        with pytest.raises(ProviderError, match="Could not create conversation"):
            asyncio.run(generator.ensure_session("chat-1"))
        assert generator.get_session("chat-1") is None

        asyncio.run(generator.ensure_session("chat-1"))
        assert generator.get_session("chat-1") == "conv_2"

    def test_sdk_error_wrapped(self):
        client = openai_client(error=RuntimeError("rate limited"))
        generator = OpenAIReplyGenerator(api_key="k", prompt_id="p", client=client)

        with pytest.raises(ProviderError, match="rate limited"):
            asyncio.run(generator.generate_reply("chat-1", "hi"))

    def test_empty_reply_is_an_error(self):
        generator = OpenAIReplyGenerator(api_key="k", prompt_id="p", client=openai_client(output_text=""))
        with pytest.raises(ProviderError, match="Empty reply"):
            asyncio.run(generator.generate_reply("chat-1", "hi"))


class TestRegistry:

    def test_registry_is_closed_over_providers(self):
        assert set(PROVIDER_REGISTRY) == set(AIProvider)

    def test_default_selects_gemini(self):
        settings = RelaySettings.from_env({"GEMINI_KEY": "g-key"})
        generator = create_reply_generator(settings)
        assert isinstance(generator, GeminiReplyGenerator)
        assert generator.model == "gemini-2.0-flash"

    def test_gpt_selects_openai(self):
        settings = RelaySettings.from_env({
            "AI_SELECTED": "GPT",
            "OPENAI_KEY": "sk-test",
            "OPENAI_ASSISTANT": "pmpt_1",
        })
        generator = create_reply_generator(settings)
        assert isinstance(generator, OpenAIReplyGenerator)
        assert generator.prompt_id == "pmpt_1"

    def test_missing_credentials_fail_fast(self):
        settings = RelaySettings.from_env({"AI_SELECTED": "GPT"})
        with pytest.raises(ConfigurationError):
            create_reply_generator(settings)
