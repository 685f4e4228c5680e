"""Runtime configuration loaded from the environment.

Values may come from a ``.env`` file in the working directory; it is loaded
once on import with :func:`dotenv.load_dotenv` and never overrides variables
that are already set.
"""

from __future__ import annotations

import dataclasses
import os
from functools import lru_cache

from dotenv import load_dotenv

load_dotenv()

DEFAULT_DATABASE_URL = "sqlite+pysqlite:///inbox.db"
DEFAULT_CSV_PATH = "GeneralistRails_Project_MessageData.csv"


@dataclasses.dataclass(frozen=True)
class InboxSettings:
    """Settings shared by the HTTP API and the ingestion CLI."""

    database_url: str = DEFAULT_DATABASE_URL
    csv_path: str = DEFAULT_CSV_PATH
    conversation_window_hours: float = 24.0
    cors_origins: tuple[str, ...] = ()
    reply_rate_limit: str = "30/minute"
    sse_keepalive_seconds: float = 15.0


@lru_cache(maxsize=1)
def get_settings() -> InboxSettings:
    """Load settings from the environment with development defaults."""

    origins = os.getenv("CORS_ORIGINS", "")
    return InboxSettings(
        database_url=os.getenv("DATABASE_URL") or DEFAULT_DATABASE_URL,
        csv_path=os.getenv("INBOX_CSV_PATH") or DEFAULT_CSV_PATH,
        conversation_window_hours=float(os.getenv("CONVERSATION_WINDOW_HOURS", "24")),
        cors_origins=tuple(o.strip() for o in origins.split(",") if o.strip()),
        reply_rate_limit=os.getenv("REPLY_RATE_LIMIT", "30/minute"),
        sse_keepalive_seconds=float(os.getenv("SSE_KEEPALIVE_SECONDS", "15")),
    )


def reset_settings_cache() -> None:
    """Clear cached settings; useful in tests when env vars change."""

    get_settings.cache_clear()


__all__ = ["InboxSettings", "get_settings", "reset_settings_cache"]
