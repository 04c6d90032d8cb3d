"""
Per-request state handed to every intent handler.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from sqlalchemy.ext.asyncio import AsyncSession

from .config import get_config
from .policy import ActionPolicy
from .storage import User

logger = logging.getLogger("commission-assistant.context")


def _utc_clock() -> datetime:
    return datetime.now(timezone.utc)


def resolve_timezone(name: str) -> ZoneInfo:
    """Return the named zone, falling back to the configured app timezone."""
    for candidate in (name, get_config()["timezone"], "UTC"):
        if not candidate:
            continue
        try:
            return ZoneInfo(candidate)
        except (ZoneInfoNotFoundError, ValueError):
            logger.warning(f"Unknown timezone '{candidate}', falling back")
    return ZoneInfo("UTC")


@dataclass
class HandlerContext:
    """Acting user plus the collaborators a handler may touch."""

    session: AsyncSession
    user: User
    policy: ActionPolicy = field(default_factory=ActionPolicy)
    clock: Callable[[], datetime] = _utc_clock

    @property
    def tz(self) -> ZoneInfo:
        return resolve_timezone(self.user.timezone or "")

    def now(self) -> datetime:
        """Current time, aware, in the acting user's timezone."""
        return self.clock().astimezone(self.tz)
