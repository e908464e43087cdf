"""Configuration management with validation and error handling."""
import os
from pathlib import Path
from typing import Optional
from dataclasses import dataclass
from dotenv import load_dotenv
import logging

from rocketchat_mcp.api.models import Credentials

logger = logging.getLogger(__name__)


@dataclass
class RocketChatConfig:
    """Rocket.Chat server connection"""
    base_url: str
    user_id: str
    auth_token: str
    timeout: int = 30
    verify_ssl: bool = True

    @property
    def credentials(self) -> Credentials:
        return Credentials(self.base_url, self.user_id, self.auth_token)


@dataclass
class LimitsConfig:
    """Sampling windows for local search and analytics"""
    search_window_max: int = 200          # messages fetched for a scoped search
    search_fallback_rooms: int = 5        # rooms scanned when global search is unavailable
    analytics_sample_size: int = 100      # messages/files/members per room analytics section
    activity_room_limit: int = 10         # rooms scanned for a user activity summary
    activity_messages_per_room: int = 50


@dataclass
class LoggingConfig:
    """Logging configuration"""
    level: str = "INFO"
    log_file: Optional[Path] = None
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    console_output: bool = True


class Config:
    """Central configuration with validation"""

    def __init__(self, env_file: Optional[Path] = None):
        """Load configuration from .env and environment variables"""
        if env_file is None:
            env_file = Path.cwd() / ".env"

        if env_file.exists():
            load_dotenv(env_file)
            logger.info(f"Configuration loaded from: {env_file}")
        else:
            logger.debug(f".env not found at {env_file}, using environment variables only")

        # Rocket.Chat
        self.rocketchat = RocketChatConfig(
            base_url=self._get_required("ROCKET_CHAT_URL"),
            user_id=self._get_required("ROCKET_CHAT_USER_ID"),
            auth_token=self._get_required("ROCKET_CHAT_AUTH_TOKEN"),
            timeout=self._get_int("ROCKET_CHAT_TIMEOUT", 30),
            verify_ssl=self._get_bool("ROCKET_CHAT_VERIFY_SSL", True)
        )

        # Limits
        self.limits = LimitsConfig(
            search_window_max=self._get_int("SEARCH_WINDOW_MAX", 200),
            search_fallback_rooms=self._get_int("SEARCH_FALLBACK_ROOMS", 5),
            analytics_sample_size=self._get_int("ANALYTICS_SAMPLE_SIZE", 100),
            activity_room_limit=self._get_int("ACTIVITY_ROOM_LIMIT", 10),
            activity_messages_per_room=self._get_int("ACTIVITY_MESSAGES_PER_ROOM", 50)
        )

        # Logging
        self.logging = LoggingConfig(
            level=self._get("LOG_LEVEL", "INFO").upper(),
            log_file=Path(self._get("LOG_FILE")) if self._get("LOG_FILE") else None,
            console_output=self._get_bool("LOG_CONSOLE", True)
        )

        self._validate()

    def _get(self, key: str, default: str = None) -> str:
        """Read an environment variable"""
        return os.getenv(key, default)

    def _get_required(self, key: str) -> str:
        """Read a required environment variable"""
        value = os.getenv(key)
        if not value:
            raise ValueError(f"Required environment variable not set: {key}")
        return value

    def _get_bool(self, key: str, default: bool = False) -> bool:
        """Read a boolean environment variable"""
        value = os.getenv(key, str(default)).lower()
        return value in ("true", "1", "yes", "on")

    def _get_int(self, key: str, default: int = 0) -> int:
        """Read an integer environment variable"""
        try:
            return int(os.getenv(key, default))
        except ValueError:
            logger.warning(f"Invalid integer variable {key}, using default {default}")
            return default

    def _validate(self):
        """Validate configuration"""
        if not self.rocketchat.base_url.startswith(("http://", "https://")):
            raise ValueError(f"Invalid Rocket.Chat URL: {self.rocketchat.base_url}")

        if self.logging.level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Invalid log level: {self.logging.level}")

        for name, value in vars(self.limits).items():
            if value < 1:
                raise ValueError(f"Limit {name} must be positive, got {value}")

        logger.debug("✓ Configuration validated")

    def to_dict(self) -> dict:
        """Export configuration as a dictionary (without secrets)"""
        return {
            "rocketchat_url": self.rocketchat.base_url,
            "user_id": self.rocketchat.user_id,
            "timeout": self.rocketchat.timeout,
            "verify_ssl": self.rocketchat.verify_ssl,
            "limits": vars(self.limits).copy(),
            "log_level": self.logging.level
        }
