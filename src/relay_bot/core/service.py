"""
Transport layer for the relay.

The relay only needs three things from a messaging client: typing indicators,
sending a text, and a normalized view of inbound events. Transport captures
that surface; TelegramTransport implements it on Telethon.
"""
import logging
from typing import Any, Optional, Protocol

from telethon import TelegramClient
from telethon.tl.functions.messages import SetTypingRequest
from telethon.tl.types import SendMessageCancelAction, SendMessageTypingAction

from relay_bot.core.errors import TransportError
from relay_bot.core.models import CHAT_MESSAGE_TYPE, InboundMessage

logger = logging.getLogger(__name__)


class Transport(Protocol):
    """Messaging client surface consumed by the relay."""

    async def start_typing(self, chat_id: str) -> None:
        """Show the typing indicator. Best-effort."""
        ...

    async def stop_typing(self, chat_id: str) -> None:
        """Clear the typing indicator. Best-effort."""
        ...

    async def send_message(self, target: str, text: str) -> None:
        """Send one text message. Raises TransportError on failure."""
        ...


def _peer(identifier: str) -> int | str:
    """Telethon accepts numeric IDs as int and usernames as str."""
    try:
        return int(identifier)
    except ValueError:
        return identifier


def get_media_kind(message: Any) -> Optional[str]:
    """Return the media kind of a Telethon message, or None for plain text."""
    if getattr(message, "media", None) is None:
        return None
    if getattr(message, "voice", None):
        return "voice"
    if getattr(message, "video_note", None):
        return "video_note"
    if getattr(message, "sticker", None):
        return "sticker"
    if getattr(message, "gif", None):
        return "gif"
    if getattr(message, "photo", None):
        return "photo"
    if getattr(message, "video", None):
        return "video"
    if getattr(message, "audio", None):
        return "audio"
    if getattr(message, "document", None):
        return "document"
    # Web page previews attach media to ordinary text messages
    if getattr(message, "web_preview", None):
        return None
    return "media"


def to_inbound(event: Any) -> InboundMessage:
    """
    Normalize a Telethon NewMessage event.

    Text messages map to type "chat"; anything carrying media maps to its
    media kind so the relay filter skips it. Non-private chats are marked
    as group messages.
    """
    message = event.message
    media_kind = get_media_kind(message)
    sender_id = event.sender_id if event.sender_id is not None else event.chat_id

    return InboundMessage(
        type=media_kind or CHAT_MESSAGE_TYPE,
        is_group_msg=not event.is_private,
        chat_id=str(event.chat_id),
        sender=str(sender_id),
        body=event.raw_text or "",
        message_id=getattr(message, "id", None),
    )


class TelegramTransport:
    """Transport implementation on a connected Telethon client."""

    def __init__(self, client: TelegramClient):
        self.client = client

    async def _set_typing(self, chat_id: str, action) -> None:
        try:
            await self.client(SetTypingRequest(peer=_peer(chat_id), action=action))
        except Exception as e:
            # Presence indicators are not critical
            logger.warning(f"Typing indicator failed for {chat_id}: {e}")

    async def start_typing(self, chat_id: str) -> None:
        await self._set_typing(chat_id, SendMessageTypingAction())

    async def stop_typing(self, chat_id: str) -> None:
        await self._set_typing(chat_id, SendMessageCancelAction())

    async def send_message(self, target: str, text: str) -> None:
        try:
            await self.client.send_message(_peer(target), text)
        except Exception as e:
            raise TransportError(f"Could not send to {target}: {e}") from e

    async def get_me(self) -> dict:
        """Get info about the authenticated account."""
        me = await self.client.get_me()
        return {
            "id": me.id,
            "username": me.username,
            "first_name": me.first_name,
        }
