"""
Runtime configuration read from environment variables.
"""

import logging
import os
from dataclasses import dataclass
from typing import Optional

DEFAULT_API_URL = "https://api.anthropic.com/v1/messages"
DEFAULT_MODEL = "claude-sonnet-4-5-20250929"

LOG_FORMAT = "%(name)s | %(levelname)s | %(message)s"


@dataclass
class Settings:
    """Settings for the reasoning client, progress store and logging."""
    api_key: Optional[str] = None
    api_url: str = DEFAULT_API_URL
    model: str = DEFAULT_MODEL
    timeout: int = 30
    max_tokens: int = 4096
    progress_store_dir: Optional[str] = None
    log_level: str = "INFO"

    @property
    def ai_enabled(self) -> bool:
        return bool(self.api_key)

    @classmethod
    def from_env(cls) -> "Settings":
        api_key = os.environ.get("ANTHROPIC_API_KEY") or os.environ.get("CLAUDE_API_KEY")
        return cls(
            api_key=api_key or None,
            api_url=os.environ.get("CLAUDE_API_URL", DEFAULT_API_URL),
            model=os.environ.get("CLAUDE_MODEL", DEFAULT_MODEL),
            timeout=int(os.environ.get("CLAUDE_TIMEOUT", "30")),
            max_tokens=int(os.environ.get("CLAUDE_MAX_TOKENS", "4096")),
            progress_store_dir=os.environ.get("PROGRESS_STORE_DIR") or None,
            log_level=os.environ.get("LOG_LEVEL", "INFO").upper(),
        )


def configure_logging(level: str = "INFO") -> None:
    """Apply the default log format to the root logger."""
    logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO), format=LOG_FORMAT)
