"""
Reply pipeline run when a conversation's buffer is flushed.

MessageBuffer decides WHEN a burst is complete; ReplyRelay decides WHAT
happens next:

1. Merge the batch into one request text
2. Show the typing indicator
3. Call the AI backend through the bounded retry combinator
4. Clear the typing indicator
5. Split the reply and deliver the chunks with human-like pacing

If every attempt fails, the last ProviderError is re-raised so the buffer
logs the failed cycle for that conversation. The batch is not re-queued.
"""
import logging
from typing import Optional

from relay_bot.core.errors import ProviderError, TransportError
from relay_bot.core.models import RelayStats
from relay_bot.core.retry import retry_async
from relay_bot.core.service import Transport
from relay_bot.humanizer.sender import PacedSender, SendReport
from relay_bot.humanizer.splitter import split_messages
from relay_bot.providers.base import ReplyGenerator
from relay_bot.temporal.message_buffer import BufferedMessage, join_messages

logger = logging.getLogger(__name__)


class ReplyRelay:
    """Flush callback that turns a message batch into a delivered reply."""

    def __init__(
        self,
        generator: ReplyGenerator,
        transport: Transport,
        sender: Optional[PacedSender] = None,
        max_attempts: int = 3,
        timeout: Optional[float] = None,
        fallback_message: Optional[str] = None,
        max_chunk_length: Optional[int] = None,
        stats: Optional[RelayStats] = None,
    ):
        """
        Args:
            generator: Selected AI backend
            transport: Messaging client used for typing indicators and sends
            sender: Paced sender; built on transport when omitted
            max_attempts: AI attempts per flush
            timeout: Per-attempt timeout in seconds, None for no limit
            fallback_message: Sent to the user after exhausted retries, if set
            max_chunk_length: Optional soft limit passed to split_messages()
            stats: Shared counters (the daemon's status table reads them)
        """
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        self.generator = generator
        self.transport = transport
        self.sender = sender or PacedSender(transport)
        self.max_attempts = max_attempts
        self.timeout = timeout
        self.fallback_message = fallback_message
        self.max_chunk_length = max_chunk_length
        self.stats = stats if stats is not None else RelayStats()

    async def __call__(self, conversation_id: str, messages: list[BufferedMessage]) -> None:
        await self.process_batch(conversation_id, messages)

    async def process_batch(
        self,
        conversation_id: str,
        messages: list[BufferedMessage],
    ) -> Optional[SendReport]:
        """
        Process one flushed batch.

        Args:
            conversation_id: Conversation the batch belongs to
            messages: Buffered messages in arrival order

        Returns:
            SendReport for the delivered reply, None for an empty batch

        Raises:
            ProviderError: If every AI attempt failed
        """
        if not messages:
            return None

        self.stats.batches_processed += 1
        self.stats.messages_batched += len(messages)

        text = join_messages(messages)
        # Replies go to whoever sent the most recent message of the burst
        target = messages[-1].sender

        await self._typing(conversation_id, start=True)
        try:
            result = await retry_async(
                lambda: self.generator.generate_reply(conversation_id, text),
                max_attempts=self.max_attempts,
                timeout=self.timeout,
                label=f"{self.generator.name} reply for {conversation_id}",
            )
        finally:
            await self._typing(conversation_id, start=False)

        if not result.ok:
            self.stats.provider_failures += 1
            logger.error(
                f"No reply for {conversation_id} after {result.attempts} attempt(s): {result.error}"
            )
            if self.fallback_message:
                await self._send_fallback(target)

        try:
            reply = result.unwrap()
        except ProviderError:
            raise
        except Exception as e:
            # Timeouts and unexpected SDK errors surface as ProviderError
            raise ProviderError(
                f"{type(e).__name__}: {e}",
                provider=self.generator.name,
                conversation_id=conversation_id,
            ) from e

        chunks = split_messages(reply, max_length=self.max_chunk_length)
        logger.info(f"Sending {len(chunks)} chunk(s) to {target}")
        report = await self.sender.send(target, chunks)

        self.stats.replies_sent += 1
        self.stats.chunks_sent += report.sent
        self.stats.chunks_failed += report.failed
        return report

    async def _typing(self, conversation_id: str, start: bool) -> None:
        try:
            if start:
                await self.transport.start_typing(conversation_id)
            else:
                await self.transport.stop_typing(conversation_id)
        except Exception as e:
            # Best-effort presence; never blocks the reply
            logger.warning(f"Typing indicator failed for {conversation_id}: {e}")

    async def _send_fallback(self, target: str) -> None:
        try:
            await self.transport.send_message(target, self.fallback_message)
            self.stats.fallbacks_sent += 1
        except TransportError as e:
            logger.warning(f"Fallback message to {target} not delivered: {e}")
