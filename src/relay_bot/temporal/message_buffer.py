"""
Message Buffer - Per-conversation debounce for rapid-fire inbound messages.

This module provides the MessageBuffer class that accumulates bursts of
messages from one conversation and hands them downstream as a single batch,
so the AI backend sees one coherent request instead of several partial ones.

The debounce pattern works as follows:
1. When a message arrives, it's appended to the conversation's buffer
2. Any armed timer for that conversation is cancelled and a new one is armed
3. When a timer expires (no new message for the quiescence window), the buffer
   is snapshotted and removed BEFORE the flush callback runs
4. Messages arriving while the callback is in flight open a fresh buffer and a
   later, independent cycle

State per conversation:
    Idle      - no buffer, no timer
    Buffering - buffer non-empty, timer armed
    Flushing  - batch taken, flush callback in flight
"""

import asyncio
import logging
from datetime import datetime
from typing import Awaitable, Callable, Optional

from pydantic import BaseModel, Field

from relay_bot.temporal.timers import AsyncioTimerScheduler, TimerScheduler

logger = logging.getLogger(__name__)

# Separator placed between buffered bodies when a batch is merged
BUFFER_SEPARATOR = " \n "

DEFAULT_QUIESCENCE_SECONDS = 15.0


class BufferedMessage(BaseModel):
    """
    Single buffered message from a conversation.

    Attributes:
        text: The message body
        sender: Address the reply for this batch is delivered to
        message_id: Transport message ID for tracking, if any
        timestamp: When the message was received
    """
    text: str
    sender: str
    message_id: Optional[int] = None
    timestamp: datetime = Field(default_factory=datetime.now)


# Type alias for the flush callback signature
FlushCallback = Callable[[str, list[BufferedMessage]], Awaitable[None]]


def join_messages(messages: list[BufferedMessage]) -> str:
    """Merge buffered bodies in arrival order into one AI request text."""
    return BUFFER_SEPARATOR.join(msg.text for msg in messages)


class MessageBuffer:
    """
    Manages per-conversation message batching with debounce timer logic.

    - Messages accumulate in an in-memory buffer keyed by conversation_id
    - Each new message cancels and re-arms that conversation's timer
    - When the timer expires, the buffer is removed and flushed to the callback
    - Conversations never share state; each has at most one live timer

    A flush that raises (e.g. ProviderError after exhausted retries) is logged
    for that conversation only. The batch is not re-queued.

    Attributes:
        quiescence_seconds: Silence required after the last message before a flush
        flush_callback: Async function called with (conversation_id, messages)
        max_messages: Optional buffer size that forces an immediate flush

    Example:
        async def process_batch(conversation_id: str, messages: list[BufferedMessage]) -> None:
            print(f"{conversation_id}: {join_messages(messages)}")

        buffer = MessageBuffer(flush_callback=process_batch, quiescence_seconds=15.0)
        buffer.add_message("12345", BufferedMessage(text="Hello", sender="12345"))
    """

    def __init__(
        self,
        flush_callback: Optional[FlushCallback] = None,
        quiescence_seconds: float = DEFAULT_QUIESCENCE_SECONDS,
        max_messages: Optional[int] = None,
        scheduler: Optional[TimerScheduler] = None,
    ):
        """
        Initialize the MessageBuffer.

        Args:
            flush_callback: Async function to call when a buffer is flushed.
                           Signature: async def callback(conversation_id: str, messages: list[BufferedMessage])
            quiescence_seconds: Fixed debounce window, measured from the most recent message.
            max_messages: Buffer size that forces an immediate flush. None disables the limit.
            scheduler: Timer capability. Defaults to asyncio tasks.
        """
        if quiescence_seconds < 0:
            raise ValueError("quiescence_seconds must be non-negative")
        if max_messages is not None and max_messages < 1:
            raise ValueError("max_messages must be >= 1")

        self._buffers: dict[str, list[BufferedMessage]] = {}
        self._timers: dict[str, object] = {}
        self._generations: dict[str, int] = {}  # Invalidates timers that fire after being replaced
        self._inflight: set[asyncio.Task] = set()
        self._flush_callback = flush_callback
        self._quiescence_seconds = quiescence_seconds
        self._max_messages = max_messages
        self._scheduler = scheduler or AsyncioTimerScheduler()

        logger.debug(
            f"MessageBuffer initialized: quiescence_seconds={quiescence_seconds}, "
            f"max_messages={max_messages}"
        )

    def add_message(self, conversation_id: str, message: BufferedMessage) -> None:
        """
        Append a message and re-arm the conversation's debounce timer.

        Runs without suspending, so append-and-rearm cannot interleave with
        another message for the same conversation.

        Args:
            conversation_id: Stable identifier of the one-to-one chat
            message: The BufferedMessage to add
        """
        if conversation_id not in self._buffers:
            self._buffers[conversation_id] = []
            logger.debug(f"Created new buffer for {conversation_id}")

        self._buffers[conversation_id].append(message)
        self._generations[conversation_id] = self._generations.get(conversation_id, 0) + 1

        logger.debug(
            f"Added message to buffer for {conversation_id}, "
            f"buffer size: {len(self._buffers[conversation_id])}"
        )

        self._cancel_pending_timer(conversation_id)

        if self._max_messages is not None and len(self._buffers[conversation_id]) >= self._max_messages:
            logger.info(
                f"Buffer for {conversation_id} reached max size ({self._max_messages}), "
                f"forcing immediate flush"
            )
            task = asyncio.create_task(self._flush_guarded(conversation_id))
            self._track(task)
            return

        self._arm_timer(conversation_id)

    def _arm_timer(self, conversation_id: str) -> None:
        current_gen = self._generations.get(conversation_id, 0)

        async def on_fire():
            if self._generations.get(conversation_id) != current_gen:
                logger.debug(f"Timer for {conversation_id} is stale (gen {current_gen}), skipping flush")
                return
            self._timers.pop(conversation_id, None)
            task = asyncio.current_task()
            if task is not None:
                self._track(task)
            await self._flush_guarded(conversation_id)

        self._timers[conversation_id] = self._scheduler.schedule(self._quiescence_seconds, on_fire)
        logger.debug(f"Armed {self._quiescence_seconds}s timer for {conversation_id}")

    def _cancel_pending_timer(self, conversation_id: str) -> None:
        handle = self._timers.pop(conversation_id, None)
        if handle is not None:
            self._scheduler.cancel(handle)
            logger.debug(f"Cancelled existing timer for {conversation_id}")

    def _track(self, task: asyncio.Task) -> None:
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)

    def _take_batch(self, conversation_id: str) -> list[BufferedMessage]:
        """Remove and return the buffer and its timer entry (state -> Flushing)."""
        messages = self._buffers.pop(conversation_id, [])
        self._generations.pop(conversation_id, None)
        self._cancel_pending_timer(conversation_id)
        return messages

    async def _flush_guarded(self, conversation_id: str) -> None:
        """Flush from a background task; a failed cycle is logged, never raised."""
        try:
            await self.flush_now(conversation_id)
        except Exception as e:
            logger.error(f"Flush failed for {conversation_id}, batch dropped: {e}")

    async def flush_now(self, conversation_id: str) -> None:
        """
        Flush a conversation's buffer immediately, bypassing the timer.

        The buffer is removed before the callback runs. Errors raised by the
        callback propagate to the caller; the buffer is not restored.

        Args:
            conversation_id: Stable identifier of the one-to-one chat
        """
        messages = self._take_batch(conversation_id)

        if not messages:
            logger.debug(f"No messages to flush for {conversation_id}")
            return

        logger.info(f"Flushing buffer for {conversation_id}: {len(messages)} message(s)")

        if self._flush_callback:
            await self._flush_callback(conversation_id, messages)
            logger.debug(f"Flush callback completed for {conversation_id}")
        else:
            logger.warning(
                f"No flush callback configured, {len(messages)} messages "
                f"for {conversation_id} were discarded"
            )

    def get_buffer_size(self, conversation_id: str) -> int:
        """Number of messages waiting for a conversation (0 if none)."""
        return len(self._buffers.get(conversation_id, []))

    def get_buffered_messages(self, conversation_id: str) -> list[BufferedMessage]:
        """Copy of the waiting messages, without flushing."""
        return list(self._buffers.get(conversation_id, []))

    def has_pending_buffer(self, conversation_id: str) -> bool:
        return bool(self._buffers.get(conversation_id))

    def has_pending_timer(self, conversation_id: str) -> bool:
        return conversation_id in self._timers

    def get_all_pending_conversation_ids(self) -> list[str]:
        """Conversation IDs with non-empty buffers, e.g. for shutdown."""
        return [cid for cid, msgs in self._buffers.items() if msgs]

    @property
    def inflight_count(self) -> int:
        """Number of flushes currently running."""
        return len(self._inflight)

    def cancel_timer(self, conversation_id: str) -> None:
        """
        Cancel the timer for a conversation without flushing the buffer.

        Note: This leaves messages in the buffer. Call flush_now() separately
        if you need to process them.
        """
        if conversation_id in self._timers:
            self._cancel_pending_timer(conversation_id)
            logger.debug(f"Timer cancelled (without flush) for {conversation_id}")

    def clear_buffer(self, conversation_id: str) -> list[BufferedMessage]:
        """Drop a conversation's buffer and timer without calling the callback."""
        messages = self._take_batch(conversation_id)
        logger.debug(f"Buffer cleared for {conversation_id}: {len(messages)} message(s)")
        return messages

    async def flush_all(self) -> None:
        """
        Flush all pending buffers.

        Used for graceful shutdown. A failure in one conversation is logged
        and does not stop the others.
        """
        conversation_ids = self.get_all_pending_conversation_ids()
        logger.info(f"Flushing all buffers: {len(conversation_ids)} conversation(s)")

        for conversation_id in conversation_ids:
            await self._flush_guarded(conversation_id)

    def cancel_all(self) -> None:
        """Cancel all pending timers without flushing."""
        timer_ids = list(self._timers.keys())
        logger.info(f"Cancelling all timers: {len(timer_ids)} timer(s)")

        for conversation_id in timer_ids:
            self.cancel_timer(conversation_id)

    async def wait_idle(self) -> None:
        """Wait until every in-flight flush has finished."""
        while self._inflight:
            await asyncio.gather(*list(self._inflight), return_exceptions=True)

    @property
    def quiescence_seconds(self) -> float:
        return self._quiescence_seconds

    @property
    def max_messages(self) -> Optional[int]:
        return self._max_messages

    def __repr__(self) -> str:
        """String representation for debugging."""
        return (
            f"MessageBuffer(quiescence_seconds={self._quiescence_seconds}, "
            f"max_messages={self._max_messages}, "
            f"active_buffers={len(self.get_all_pending_conversation_ids())}, "
            f"active_timers={len(self._timers)}, "
            f"inflight={len(self._inflight)})"
        )
