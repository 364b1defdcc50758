"""
Pydantic models for the relay.
"""
from enum import Enum
from typing import Optional

from pydantic import BaseModel, field_validator

# Pseudo-chat that carries status/story broadcasts, never a real conversation
STATUS_BROADCAST_ID = "status@broadcast"

# Only plain text chat messages are relayed
CHAT_MESSAGE_TYPE = "chat"


class AIProvider(str, Enum):
    """AI backend selected once at startup."""
    GPT = "GPT"
    GEMINI = "GEMINI"


class InboundMessage(BaseModel):
    """
    Transport-neutral view of an inbound message event.

    Attributes:
        type: Message kind ("chat" for plain text, otherwise the media kind)
        is_group_msg: True when the message was posted in a group or channel
        chat_id: Conversation identifier (key for all per-conversation state)
        sender: Address replies are delivered to
        body: Raw text body
        message_id: Transport message ID, if the transport has one
    """
    type: str = CHAT_MESSAGE_TYPE
    is_group_msg: bool = False
    chat_id: str
    sender: str
    body: str = ""
    message_id: Optional[int] = None

    @field_validator('chat_id', 'sender')
    @classmethod
    def validate_identifier(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Identifier cannot be empty")
        return v

    def is_relayable(self) -> bool:
        """True for one-to-one text messages that should reach the AI."""
        return (
            self.type == CHAT_MESSAGE_TYPE
            and not self.is_group_msg
            and self.chat_id != STATUS_BROADCAST_ID
        )


class RelayStats(BaseModel):
    """Counters shown in the daemon status table."""
    messages_received: int = 0
    messages_ignored: int = 0
    batches_processed: int = 0
    messages_batched: int = 0
    replies_sent: int = 0
    chunks_sent: int = 0
    chunks_failed: int = 0
    provider_failures: int = 0
    fallbacks_sent: int = 0
