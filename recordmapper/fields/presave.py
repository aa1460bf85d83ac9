"""
Ready-made `before_save` hooks.
"""

from __future__ import annotations

import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional

from recordmapper.config import get_settings


def session(duration_days: Optional[int] = None) -> Callable[[Any, Any], None]:
    """
    Build a hook for session models.

    On creation it stores a random `session_token` and a `revoked_at` timestamp
    `duration_days` ahead (`SESSION_DURATION_DAYS` when omitted), then succeeds.
    """

    def hook(request: Any, response: Any) -> None:
        if request.is_new:
            days = duration_days if duration_days is not None else get_settings().session_duration_days
            now = datetime.now(timezone.utc).replace(microsecond=0)
            request.keys.set("session_token", secrets.token_urlsafe(32))
            request.keys.set("revoked_at", now + timedelta(days=days))
        response.success()

    return hook


__all__ = ["session"]
