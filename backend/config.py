from datetime import UTC, datetime
from pathlib import Path

from pydantic_settings import BaseSettings


def utcnow() -> datetime:
    """Return the current UTC time as a naive datetime.

    Timestamps stay naive everywhere in memory so comparisons between
    freshly created and rehydrated records never mix aware and naive values.
    """
    return datetime.now(UTC).replace(tzinfo=None)


def local_midnight() -> datetime:
    """Return the start of the current local day as a naive UTC datetime."""
    midnight = datetime.now().astimezone().replace(hour=0, minute=0, second=0, microsecond=0)
    return midnight.astimezone(UTC).replace(tzinfo=None)


class Settings(BaseSettings):
    app_name: str = "Flashvibe"
    database_url: str = f"sqlite+aiosqlite:///{Path(__file__).resolve().parent.parent / 'data' / 'flashvibe.db'}"
    persist_delay_seconds: float = 1.0
    load_batch_size: int = 20
    storage_write_retries: int = 3
    fallback_category: str = "general"
    default_categories: list[str] = ["general", "language", "science", "math", "history"]
    debug: bool = False

    model_config = {"env_prefix": "FLASHVIBE_", "env_file": ".env"}


settings = Settings()
