#!/usr/bin/env python3
"""
Relay Daemon.
Long-running service that relays one-to-one Telegram chats to an AI backend.
"""
import argparse
import asyncio
import logging
import signal
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table
from telethon import events

from relay_bot.core.client import get_client
from relay_bot.core.config import RelaySettings
from relay_bot.core.errors import ConfigurationError, ProviderError
from relay_bot.core.models import AIProvider, InboundMessage, RelayStats
from relay_bot.core.relay import ReplyRelay
from relay_bot.core.service import Transport, TelegramTransport, to_inbound
from relay_bot.humanizer.sender import PacedSender
from relay_bot.humanizer.timing import NaturalTiming
from relay_bot.providers import ReplyGenerator, create_reply_generator
from relay_bot.temporal.message_buffer import BufferedMessage, MessageBuffer

console = Console()
logger = logging.getLogger(__name__)

# How often the status table is printed
STATUS_INTERVAL_SECONDS = 60 * 5


class RelayDaemon:
    """Main daemon that wires the transport, buffer and AI backend together."""

    def __init__(self, settings: RelaySettings):
        self.settings = settings
        self.client = None
        self.transport: Optional[Transport] = None
        self.generator: Optional[ReplyGenerator] = None
        self.relay: Optional[ReplyRelay] = None
        self.message_buffer: Optional[MessageBuffer] = None
        self.stats = RelayStats()
        self.started_at: Optional[datetime] = None
        self.running = False

    def build_pipeline(
        self,
        transport: Transport,
        generator: Optional[ReplyGenerator] = None,
        timing: Optional[NaturalTiming] = None,
    ) -> None:
        """Create the relay and message buffer on top of a transport."""
        self.transport = transport
        self.generator = generator or create_reply_generator(self.settings)
        self.relay = ReplyRelay(
            generator=self.generator,
            transport=transport,
            sender=PacedSender(transport, timing),
            max_attempts=self.settings.max_retries,
            timeout=self.settings.ai_timeout_seconds,
            fallback_message=self.settings.fallback_message,
            max_chunk_length=self.settings.max_chunk_length,
            stats=self.stats,
        )
        self.message_buffer = MessageBuffer(
            flush_callback=self.relay,
            quiescence_seconds=self.settings.debounce_seconds,
        )

    async def initialize(self) -> None:
        """Initialize all components."""
        console.print("[bold blue]Initializing Relay Daemon...[/bold blue]")

        # Fail fast before touching the network
        self.settings.validate_credentials()
        self.generator = create_reply_generator(self.settings)
        console.print(f"  [green]✓[/green] AI backend: {self.settings.ai_selected.value}")

        self.client = await get_client(self.settings)
        transport = TelegramTransport(self.client)
        console.print(f"  [green]✓[/green] Telegram connected")

        me = await transport.get_me()
        console.print(f"  [green]✓[/green] Logged in as: {me['first_name']} (@{me['username']})")

        self.build_pipeline(transport, self.generator)
        console.print(
            f"  [green]✓[/green] Message buffer initialized "
            f"({self.settings.debounce_seconds:.0f}s quiescence, {self.settings.max_retries} attempts)"
        )

        self._register_handlers()
        console.print(f"  [green]✓[/green] Message handlers registered")

    async def handle_inbound(self, message: InboundMessage) -> bool:
        """
        Route one normalized inbound message into the buffer.

        Returns:
            True if the message was buffered, False if it was filtered out
        """
        if not message.is_relayable():
            self.stats.messages_ignored += 1
            return False

        self.stats.messages_received += 1
        logger.info(f"<- {message.chat_id}: {message.body[:100]}")

        self.message_buffer.add_message(
            message.chat_id,
            BufferedMessage(
                text=message.body,
                sender=message.sender,
                message_id=message.message_id,
            ),
        )
        logger.debug(f"Buffered message from {message.chat_id}, waiting for more...")

        # Stateful backends open the provider conversation ahead of the first flush.
        # generate_reply retries session creation on flush if this fails.
        try:
            await asyncio.wait_for(
                self.generator.ensure_session(message.chat_id),
                timeout=self.settings.ai_timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.warning(
                f"Session setup for {message.chat_id} timed out after "
                f"{self.settings.ai_timeout_seconds}s"
            )
        except ProviderError as e:
            logger.warning(f"Session setup failed for {message.chat_id}: {e}")
        return True

    def _register_handlers(self) -> None:
        """Register Telegram event handlers."""

        @self.client.on(events.NewMessage(incoming=True))
        async def handle_incoming(event):
            try:
                message = to_inbound(event)
            except ValueError as e:
                logger.warning(f"Skipping malformed event: {e}")
                return
            await self.handle_inbound(message)

    def _create_status_table(self) -> Table:
        """Create a status table for display."""
        table = Table(title="Relay Status")
        table.add_column("Metric", style="cyan")
        table.add_column("Value", style="green")

        if self.started_at:
            uptime = datetime.now() - self.started_at
            table.add_row("Uptime", str(uptime).split('.')[0])

        table.add_row("AI Backend", self.settings.ai_selected.value)
        table.add_row("Messages Received", str(self.stats.messages_received))
        table.add_row("Messages Ignored", str(self.stats.messages_ignored))
        table.add_row("Messages Batched", str(self.stats.messages_batched))
        table.add_row("Batches Processed", str(self.stats.batches_processed))
        table.add_row("Replies Sent", str(self.stats.replies_sent))
        table.add_row("Chunks Sent", str(self.stats.chunks_sent))
        table.add_row("Chunks Failed", str(self.stats.chunks_failed))
        table.add_row("Provider Failures", str(self.stats.provider_failures))

        if self.message_buffer:
            table.add_row(
                "Pending Conversations",
                str(len(self.message_buffer.get_all_pending_conversation_ids())),
            )

        return table

    async def run(self) -> None:
        """Run the daemon until stopped."""
        self.running = True
        self.started_at = datetime.now()

        console.print(Panel.fit(
            "[bold green]Relay Daemon Started[/bold green]\n"
            "Press Ctrl+C to stop",
            title="Status"
        ))

        last_status = datetime.now()
        try:
            while self.running:
                if (datetime.now() - last_status).total_seconds() >= STATUS_INTERVAL_SECONDS:
                    console.print(self._create_status_table())
                    last_status = datetime.now()
                await asyncio.sleep(1)
        except asyncio.CancelledError:
            console.print("\n[yellow]Shutdown requested...[/yellow]")
        finally:
            await self.shutdown()

    async def shutdown(self) -> None:
        """Gracefully shutdown the daemon."""
        self.running = False
        console.print("[yellow]Shutting down...[/yellow]")

        if self.message_buffer:
            pending = self.message_buffer.get_all_pending_conversation_ids()
            if pending:
                console.print(f"[cyan]Flushing {len(pending)} pending buffer(s)...[/cyan]")
                await self.message_buffer.flush_all()
            await self.message_buffer.wait_idle()
            console.print("[green]Message buffers drained[/green]")

        if self.client:
            await self.client.disconnect()
            console.print("[green]Disconnected from Telegram[/green]")

        console.print(Panel.fit(
            f"[bold]Final Stats[/bold]\n"
            f"Messages Received: {self.stats.messages_received}\n"
            f"Batches Processed: {self.stats.batches_processed}\n"
            f"Replies Sent: {self.stats.replies_sent}\n"
            f"Provider Failures: {self.stats.provider_failures}",
            title="Session Summary"
        ))


def setup_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True)],
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Telegram to AI chat relay")
    parser.add_argument(
        '--ai',
        choices=[p.value for p in AIProvider],
        type=str.upper,
        default=None,
        help='Override AI_SELECTED',
    )
    parser.add_argument(
        '--debounce',
        type=float,
        default=None,
        metavar='SECONDS',
        help='Override the quiescence window (DEBOUNCE_SECONDS)',
    )
    parser.add_argument(
        '--env-file',
        type=Path,
        default=None,
        help='Load environment from this .env file',
    )
    parser.add_argument(
        '--check-config',
        action='store_true',
        help='Validate configuration and exit',
    )
    return parser


def load_settings(args: argparse.Namespace) -> RelaySettings:
    """Settings from the environment with CLI overrides applied."""
    settings = RelaySettings.from_env(env_file=args.env_file)
    overrides = {}
    if args.ai:
        overrides["ai_selected"] = AIProvider(args.ai)
    if args.debounce is not None:
        if args.debounce < 0:
            raise ConfigurationError("--debounce must be non-negative")
        overrides["debounce_seconds"] = args.debounce
    if overrides:
        settings = settings.model_copy(update=overrides)
    return settings


async def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)

    try:
        settings = load_settings(args)
        setup_logging(settings.log_level)
        settings.validate_credentials()
        if args.check_config:
            settings.require_transport_credentials()
            console.print(f"[green]✓ Configuration valid (AI_SELECTED={settings.ai_selected.value})[/green]")
            return 0
    except ConfigurationError as e:
        console.print(f"[red bold]Configuration error: {e}[/red bold]")
        return 1

    daemon = RelayDaemon(settings)

    loop = asyncio.get_running_loop()

    def signal_handler():
        daemon.running = False

    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, signal_handler)

    try:
        try:
            await daemon.initialize()
        except Exception:
            # Release whatever initialize() already connected
            await daemon.shutdown()
            raise
        await daemon.run()
    except ConfigurationError as e:
        console.print(f"[red bold]Configuration error: {e}[/red bold]")
        return 1
    except Exception as e:
        console.print(f"[red bold]Fatal error: {e}[/red bold]")
        raise
    return 0


def cli() -> None:
    """Console script entry point."""
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    cli()
