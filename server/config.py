"""
Centralized configuration for the Kabo game server.

Configuration is loaded from (in order of precedence):
1. Environment variables
2. .env file (if exists)
3. Default values

Usage:
    from config import config
    print(config.PORT)
    print(config.rules.CABO_THRESHOLD)
"""

import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

env_path = Path(__file__).parent.parent / ".env"
if env_path.exists():
    load_dotenv(env_path)


def get_env(key: str, default: str = "") -> str:
    """Get environment variable with default."""
    return os.environ.get(key, default)


def get_env_bool(key: str, default: bool = False) -> bool:
    """Get boolean environment variable."""
    val = os.environ.get(key, "").lower()
    if val in ("true", "1", "yes", "on"):
        return True
    if val in ("false", "0", "no", "off"):
        return False
    return default


def get_env_int(key: str, default: int = 0) -> int:
    """Get integer environment variable."""
    try:
        return int(os.environ.get(key, str(default)))
    except ValueError:
        return default


@dataclass
class RuleSettings:
    """Tunable rule constants. Defaults are the canonical ruleset."""
    CABO_THRESHOLD: int = 10    # hand total must be strictly below this to call Cabo
    HAND_SIZE: int = 4
    INITIAL_PEEKS: int = 2
    LOG_WINDOW: int = 12        # log lines sent with each state broadcast
    LOG_HISTORY: int = 50       # log lines retained per room


@dataclass
class ServerConfig:
    """Server configuration."""
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    ENVIRONMENT: str = "development"

    # Error tracking
    SENTRY_DSN: str = ""

    # Room settings
    ROOM_CODE_LENGTH: int = 5
    MAX_NAME_LENGTH: int = 16

    rules: RuleSettings = field(default_factory=RuleSettings)

    @classmethod
    def from_env(cls) -> "ServerConfig":
        """Load configuration from environment variables."""
        return cls(
            HOST=get_env("HOST", "0.0.0.0"),
            PORT=get_env_int("PORT", 8000),
            DEBUG=get_env_bool("DEBUG", False),
            LOG_LEVEL=get_env("LOG_LEVEL", "INFO"),
            ENVIRONMENT=get_env("ENVIRONMENT", "development"),
            SENTRY_DSN=get_env("SENTRY_DSN", ""),
            ROOM_CODE_LENGTH=get_env_int("ROOM_CODE_LENGTH", 5),
            MAX_NAME_LENGTH=get_env_int("MAX_NAME_LENGTH", 16),
            rules=RuleSettings(
                CABO_THRESHOLD=get_env_int("CABO_THRESHOLD", 10),
                LOG_WINDOW=get_env_int("LOG_WINDOW", 12),
                LOG_HISTORY=get_env_int("LOG_HISTORY", 50),
            ),
        )


# Global config instance - loaded once at module import
config = ServerConfig.from_env()


def reload_config() -> ServerConfig:
    """Reload configuration from environment (useful for testing)."""
    global config
    config = ServerConfig.from_env()
    return config
