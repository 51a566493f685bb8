"""Runtime configuration for the Help Scout MCP server."""
import os
from functools import lru_cache
from typing import Optional

from pydantic import BaseModel, Field

DEFAULT_BASE_URL = "https://api.helpscout.net/v2"

_TRUTHY = {"1", "true", "yes", "on"}


class Settings(BaseModel):
    """Settings resolved from the process environment."""

    base_url: str = Field(DEFAULT_BASE_URL, description="Help Scout Mailbox API v2 root")
    access_token: Optional[str] = Field(None, description="Bearer token forwarded on every request")
    timeout: float = Field(30.0, gt=0, description="Per-request transport timeout in seconds")
    allow_pii: bool = Field(False, description="Return message bodies instead of [REDACTED]")
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            base_url=os.getenv("HELPSCOUT_BASE_URL", DEFAULT_BASE_URL),
            access_token=os.getenv("HELPSCOUT_ACCESS_TOKEN") or None,
            timeout=float(os.getenv("HELPSCOUT_TIMEOUT", "30")),
            allow_pii=os.getenv("HELPSCOUT_ALLOW_PII", "false").strip().lower() in _TRUTHY,
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )


@lru_cache
def get_settings() -> Settings:
    """Return process-wide settings, read once from the environment."""
    return Settings.from_env()
