"""
Relay configuration loaded from the environment.

Settings are read from process environment variables, optionally seeded from
a .env file via python-dotenv. Provider credentials are validated once at
startup so the daemon fails fast with a descriptive error instead of failing
on the first inbound message.

Usage:
    from relay_bot.core.config import RelaySettings

    settings = RelaySettings.from_env()
    settings.validate_credentials()
"""
import os
from pathlib import Path
from typing import Mapping, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ValidationError, field_validator

from relay_bot.core.errors import ConfigurationError
from relay_bot.core.models import AIProvider

DEFAULT_DEBOUNCE_SECONDS = 15.0
DEFAULT_MAX_RETRIES = 3
DEFAULT_AI_TIMEOUT_SECONDS = 60.0

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class RelaySettings(BaseModel):
    """Runtime configuration for the relay."""
    ai_selected: AIProvider = AIProvider.GEMINI

    # Gemini (stateless variant)
    gemini_key: Optional[str] = None
    gemini_model: str = "gemini-2.0-flash"
    gemini_prompt: Optional[str] = None

    # OpenAI (per-conversation session variant)
    openai_key: Optional[str] = None
    openai_assistant: Optional[str] = None  # Stored prompt ID
    openai_model: str = "gpt-4o-mini"

    # Telegram transport
    telegram_api_id: Optional[int] = None
    telegram_api_hash: Optional[str] = None
    telegram_session: str = "relay_bot"

    # Debounce / retry behaviour
    debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS
    max_retries: int = DEFAULT_MAX_RETRIES
    ai_timeout_seconds: Optional[float] = DEFAULT_AI_TIMEOUT_SECONDS
    fallback_message: Optional[str] = None  # Sent when every attempt failed
    max_chunk_length: Optional[int] = None  # Split paragraphs longer than this at sentence ends

    log_level: str = "INFO"

    @field_validator('ai_selected', mode='before')
    @classmethod
    def normalize_provider(cls, v):
        if isinstance(v, str):
            return v.strip().upper()
        return v

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.strip().upper()
        if level not in LOG_LEVELS:
            raise ValueError(f"LOG_LEVEL must be one of {', '.join(LOG_LEVELS)}")
        return level

    @field_validator('debounce_seconds')
    @classmethod
    def validate_debounce(cls, v: float) -> float:
        if v < 0:
            raise ValueError("DEBOUNCE_SECONDS must be non-negative")
        return v

    @field_validator('max_retries')
    @classmethod
    def validate_retries(cls, v: int) -> int:
        if v < 1:
            raise ValueError("MAX_RETRIES must be at least 1")
        return v

    @field_validator('ai_timeout_seconds')
    @classmethod
    def validate_timeout(cls, v: Optional[float]) -> Optional[float]:
        # 0 disables the per-attempt timeout
        if v is not None and v <= 0:
            return None
        return v

    @classmethod
    def from_env(
        cls,
        environ: Optional[Mapping[str, str]] = None,
        env_file: Optional[Path] = None,
    ) -> "RelaySettings":
        """
        Build settings from environment variables.

        Args:
            environ: Mapping to read from. Defaults to os.environ after
                     loading the .env file.
            env_file: Explicit .env path. When omitted, a .env in the current
                      directory is loaded if present.

        Returns:
            Parsed RelaySettings

        Raises:
            ConfigurationError: If a value cannot be parsed
        """
        if environ is None:
            if env_file is not None:
                load_dotenv(env_file)
            else:
                load_dotenv()
            environ = os.environ

        def get(name: str) -> Optional[str]:
            value = environ.get(name)
            if value is None or not value.strip():
                return None
            return value.strip()

        raw = {
            "ai_selected": get("AI_SELECTED"),
            "gemini_key": get("GEMINI_KEY") or get("GEMINI_API_KEY"),
            "gemini_model": get("GEMINI_MODEL"),
            "gemini_prompt": get("GEMINI_PROMPT"),
            "openai_key": get("OPENAI_KEY"),
            "openai_assistant": get("OPENAI_ASSISTANT"),
            "openai_model": get("OPENAI_MODEL"),
            "telegram_api_id": get("TELEGRAM_API_ID"),
            "telegram_api_hash": get("TELEGRAM_API_HASH"),
            "telegram_session": get("TELEGRAM_SESSION"),
            "debounce_seconds": get("DEBOUNCE_SECONDS"),
            "max_retries": get("MAX_RETRIES"),
            "ai_timeout_seconds": get("AI_TIMEOUT_SECONDS"),
            "fallback_message": get("FALLBACK_MESSAGE"),
            "max_chunk_length": get("MAX_CHUNK_LENGTH"),
            "log_level": get("LOG_LEVEL"),
        }
        # Unset variables fall back to model defaults
        values = {key: value for key, value in raw.items() if value is not None}

        try:
            return cls(**values)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid relay configuration: {e}") from e

    def missing_credentials(self) -> list[str]:
        """Names of required provider variables that are not set."""
        if self.ai_selected == AIProvider.GEMINI:
            return [] if self.gemini_key else ["GEMINI_KEY"]

        missing = []
        if not self.openai_key:
            missing.append("OPENAI_KEY")
        if not self.openai_assistant:
            missing.append("OPENAI_ASSISTANT")
        return missing

    def validate_credentials(self) -> None:
        """
        Fail fast when the selected AI variant lacks credentials.

        Raises:
            ConfigurationError: Naming every missing variable
        """
        missing = self.missing_credentials()
        if not missing:
            return

        if self.ai_selected == AIProvider.GEMINI:
            raise ConfigurationError(
                "GEMINI_KEY is required when AI_SELECTED=GEMINI. "
                "Create a key at https://aistudio.google.com/app/apikey"
            )
        raise ConfigurationError(
            f"AI_SELECTED=GPT requires {' and '.join(missing)} "
            "(your OpenAI API key and the ID of the stored prompt to use)"
        )

    def require_transport_credentials(self) -> None:
        """
        Fail fast when Telegram credentials are missing.

        Raises:
            ConfigurationError: If TELEGRAM_API_ID or TELEGRAM_API_HASH is unset
        """
        missing = []
        if self.telegram_api_id is None:
            missing.append("TELEGRAM_API_ID")
        if not self.telegram_api_hash:
            missing.append("TELEGRAM_API_HASH")
        if missing:
            raise ConfigurationError(
                f"Telegram transport requires {' and '.join(missing)} "
                "(get them from https://my.telegram.org)"
            )
