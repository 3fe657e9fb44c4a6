"""Project-level configuration and path helpers."""

import os
from pathlib import Path
from typing import Union

PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
DATA_DIR = PROJECT_ROOT / "03_data"
LOGS_DIR = PROJECT_ROOT / "04_logs"
ATTACHMENTS_DIR = DATA_DIR / "attachments"
DEFAULT_DB_PATH = DATA_DIR / "inbox.db"
DEFAULT_LOG_PATH = LOGS_DIR / "app.log"

DATA_DIR.mkdir(parents=True, exist_ok=True)
LOGS_DIR.mkdir(parents=True, exist_ok=True)

# Limits
MAX_ATTACHMENT_BYTES = 10 * 1024 * 1024  # 10 MiB
MAX_TEXT_LENGTH = 10_000
SUGGESTION_CONTEXT_SIZE = 5
ALLOWED_MIME_PREFIXES = ("image/", "video/", "audio/")
ALLOWED_MIME_TYPES = ("application/pdf",)


PathLike = Union[str, Path]


def resolve_db_path(env_value: PathLike | None = None) -> PathLike:
    """Resolve DATABASE_URL to an absolute path."""
    if not env_value:
        return DEFAULT_DB_PATH

    if str(env_value) == ":memory:":
        return ":memory:"

    candidate = Path(env_value)
    return candidate if candidate.is_absolute() else PROJECT_ROOT / candidate


def call_timeout() -> float:
    """Timeout in seconds for calls to external collaborators."""
    return float(os.getenv("INBOX_CALL_TIMEOUT", "30"))


def reconnect_attempts() -> int:
    """Realtime reconnect attempts before a subscriber gives up (0 disables)."""
    return int(os.getenv("REALTIME_RECONNECT_ATTEMPTS", "5"))


def reconnect_backoff() -> tuple[float, float]:
    """Base and maximum delay in seconds for realtime reconnect backoff."""
    base = float(os.getenv("REALTIME_RECONNECT_BACKOFF", "0.5"))
    ceiling = float(os.getenv("REALTIME_RECONNECT_BACKOFF_MAX", "8"))
    return base, ceiling
