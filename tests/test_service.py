"""Tests for inbound normalization and the Telethon transport adapter."""
import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest
from pydantic import ValidationError
from telethon.tl.functions.messages import SetTypingRequest
from telethon.tl.types import SendMessageCancelAction, SendMessageTypingAction

from relay_bot.core.errors import TransportError
from relay_bot.core.models import STATUS_BROADCAST_ID, InboundMessage
from relay_bot.core.service import TelegramTransport, get_media_kind, to_inbound


def make_event(text="hi", is_private=True, chat_id=42, sender_id=42, **media):
    message = SimpleNamespace(id=7, media=media.pop("media", None), **media)
    return SimpleNamespace(
        message=message,
        raw_text=text,
        is_private=is_private,
        chat_id=chat_id,
        sender_id=sender_id,
    )


class TestInboundMessage:

    def test_private_chat_is_relayable(self):
        message = InboundMessage(chat_id="42", sender="42", body="hello")
        assert message.is_relayable()

    @pytest.mark.parametrize("overrides", [
        {"type": "photo"},
        {"is_group_msg": True},
        {"chat_id": STATUS_BROADCAST_ID},
    ])
    def test_filtered_messages(self, overrides):
        fields = {"chat_id": "42", "sender": "42", "body": "hello"}
        fields.update(overrides)
        assert not InboundMessage(**fields).is_relayable()

    def test_empty_identifier_rejected(self):
        with pytest.raises(ValidationError):
            InboundMessage(chat_id="  ", sender="42")


class TestToInbound:

    def test_private_text_message(self):
        inbound = to_inbound(make_event(text="Hello"))
        assert inbound.type == "chat"
        assert inbound.is_group_msg is False
        assert inbound.chat_id == "42"
        assert inbound.sender == "42"
        assert inbound.body == "Hello"
        assert inbound.message_id == 7
        assert inbound.is_relayable()

    def test_group_message_marked(self):
        inbound = to_inbound(make_event(is_private=False, chat_id=-100123, sender_id=42))
        assert inbound.is_group_msg is True
        assert not inbound.is_relayable()

    def test_photo_is_not_chat(self):
        inbound = to_inbound(make_event(text="", media=object(), photo=object()))
        assert inbound.type == "photo"
        assert not inbound.is_relayable()

    def test_missing_text_becomes_empty_body(self):
        inbound = to_inbound(make_event(text=None))
        assert inbound.body == ""

    def test_media_kinds(self):
        voice = SimpleNamespace(media=object(), voice=object())
        preview = SimpleNamespace(media=object(), web_preview=object())
        unknown = SimpleNamespace(media=object())
        assert get_media_kind(voice) == "voice"
        assert get_media_kind(preview) is None
        assert get_media_kind(unknown) == "media"
        assert get_media_kind(SimpleNamespace(media=None)) is None


class TestTelegramTransport:

    def test_send_message_uses_numeric_peer(self):
        client = AsyncMock()
        transport = TelegramTransport(client)

        asyncio.run(transport.send_message("42", "hello"))

        client.send_message.assert_awaited_once_with(42, "hello")

    def test_send_message_keeps_username_peer(self):
        client = AsyncMock()
        asyncio.run(TelegramTransport(client).send_message("@alice", "hello"))
        client.send_message.assert_awaited_once_with("@alice", "hello")

    def test_send_failure_raises_transport_error(self):
        client = AsyncMock()
        client.send_message.side_effect = RuntimeError("flood wait")

        with pytest.raises(TransportError, match="flood wait"):
            asyncio.run(TelegramTransport(client).send_message("42", "hello"))

    def test_typing_indicators(self):
        client = AsyncMock()
        transport = TelegramTransport(client)

        async def scenario():
            await transport.start_typing("42")
            await transport.stop_typing("42")

        asyncio.run(scenario())

        requests = [call.args[0] for call in client.await_args_list]
        assert all(isinstance(r, SetTypingRequest) for r in requests)
        assert isinstance(requests[0].action, SendMessageTypingAction)
        assert isinstance(requests[1].action, SendMessageCancelAction)

    def test_typing_failure_is_swallowed(self):
        client = AsyncMock(side_effect=RuntimeError("not allowed"))
        transport = TelegramTransport(client)

        asyncio.run(transport.start_typing("42"))
        asyncio.run(transport.stop_typing("42"))

    def test_get_me(self):
        client = AsyncMock()
        client.get_me.return_value = SimpleNamespace(id=1, username="relay", first_name="Relay")

        me = asyncio.run(TelegramTransport(client).get_me())
        assert me == {"id": 1, "username": "relay", "first_name": "Relay"}
