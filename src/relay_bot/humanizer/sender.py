"""
Paced delivery of reply chunks.

Chunks go out one at a time, in order, with a typing-time pause before every
chunk after the first. Delivery is best-effort: a chunk that fails to send is
logged and skipped, and the remaining chunks are still delivered.
"""
import asyncio
import logging
from dataclasses import dataclass, field
from typing import Optional

from relay_bot.core.errors import TransportError
from relay_bot.core.service import Transport
from relay_bot.humanizer.timing import NaturalTiming

logger = logging.getLogger(__name__)


@dataclass
class SendReport:
    """Result of delivering one reply."""

    target: str
    sent: int = 0
    failed_indexes: list[int] = field(default_factory=list)

    @property
    def failed(self) -> int:
        return len(self.failed_indexes)

    @property
    def complete(self) -> bool:
        return not self.failed_indexes


class PacedSender:
    """Sends chunks through a transport with human-like spacing."""

    def __init__(self, transport: Transport, timing: Optional[NaturalTiming] = None):
        self.transport = transport
        self.timing = timing or NaturalTiming()

    async def send(self, target: str, chunks: list[str]) -> SendReport:
        """
        Deliver chunks to target in order.

        Args:
            target: Address to send to (the sender of the inbound batch)
            chunks: Ordered chunks from split_messages()

        Returns:
            SendReport with sent count and indexes of failed chunks
        """
        report = SendReport(target=target)

        for index, chunk in enumerate(chunks):
            if index > 0:
                delay = self.timing.get_chunk_delay(chunk)
                if delay > 0:
                    await asyncio.sleep(delay)

            text = chunk.lstrip()
            try:
                await self.transport.send_message(target, text)
                report.sent += 1
            except TransportError as e:
                report.failed_indexes.append(index)
                logger.warning(f"Chunk {index + 1}/{len(chunks)} to {target} not delivered: {e}")

        logger.info(f"Sent {report.sent}/{len(chunks)} chunk(s) to {target}")
        return report
