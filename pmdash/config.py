"""
Engine configuration with environment overrides.
"""
from __future__ import annotations

import logging
import os
import sys
from dataclasses import dataclass, field
from typing import List
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s [%(name)s] %(levelname)s: %(message)s"


def _split_csv(value: str) -> List[str]:
    return [part.strip() for part in value.split(",") if part.strip()]


@dataclass
class EngineConfig:
    """Dashboard engine configuration; every field can be overridden from the environment."""

    # Backend collaborator
    api_base_url: str = field(default_factory=lambda: os.getenv("PMDASH_API_BASE_URL", "http://localhost:5005/api"))
    request_timeout: float = field(default_factory=lambda: float(os.getenv("PMDASH_REQUEST_TIMEOUT", "10")))

    # Reference timezone for the "current work week" default
    timezone: str = field(default_factory=lambda: os.getenv("PMDASH_TIMEZONE", "UTC"))

    log_level: str = field(default_factory=lambda: os.getenv("PMDASH_LOG_LEVEL", "INFO"))
    cors_origins: List[str] = field(
        default_factory=lambda: _split_csv(
            os.getenv("PMDASH_CORS_ORIGINS", "http://localhost:3000,http://127.0.0.1:3000")
        )
    )

    @property
    def tzinfo(self) -> ZoneInfo:
        try:
            return ZoneInfo(self.timezone)
        except (ZoneInfoNotFoundError, ValueError):
            logger.warning("Unknown timezone %r, falling back to UTC", self.timezone)
            return ZoneInfo("UTC")


def configure_logging(level: str = "INFO") -> None:
    """Install a single stdout handler on the root logger."""
    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root.handlers = [handler]

    for name in ["uvicorn.access", "httpcore", "httpx"]:
        logging.getLogger(name).setLevel(logging.WARNING)


config = EngineConfig()
