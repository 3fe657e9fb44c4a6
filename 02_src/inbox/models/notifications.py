"""User-facing notification model."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Literal


@dataclass
class Notification:
    """A toast-style message produced by a conversation view."""

    level: Literal["info", "success", "error"]
    title: str
    detail: str = ""
    error_code: str | None = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
