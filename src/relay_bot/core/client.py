"""
Telethon client bootstrap.
"""
from pathlib import Path
from typing import Optional

from telethon import TelegramClient

from relay_bot.core.config import RelaySettings

# Session files live next to the working directory unless a path is given
DEFAULT_SESSION_DIR = Path.cwd()


async def get_client(settings: RelaySettings, session_dir: Optional[Path] = None) -> TelegramClient:
    """
    Create and start a Telethon client.

    On first run Telethon prompts for the phone number and login code in the
    terminal; afterwards the session file is reused.

    Raises:
        ConfigurationError: If Telegram credentials are missing
    """
    settings.require_transport_credentials()

    session_path = (session_dir or DEFAULT_SESSION_DIR) / settings.telegram_session
    client = TelegramClient(
        str(session_path),
        settings.telegram_api_id,
        settings.telegram_api_hash,
    )
    await client.start()
    return client
