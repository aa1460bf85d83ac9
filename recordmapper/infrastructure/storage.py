"""
Attachment storage collaborator resolving URLs under a fixed prefix.
"""

from __future__ import annotations

from typing import Optional
from urllib.parse import quote

from recordmapper.config import get_settings


class UrlPrefixStorage:
    def __init__(self, base_url: str) -> None:
        self.base_url = base_url.rstrip("/")

    def get_url(self, key: str) -> str:
        return f"{self.base_url}/{quote(key.lstrip('/'))}"

    def __repr__(self) -> str:
        return f"UrlPrefixStorage(base_url={self.base_url!r})"


def storage_from_settings() -> Optional[UrlPrefixStorage]:
    """Storage built from `STORAGE_BASE_URL`, or None when it is unset."""
    base_url = get_settings().storage_base_url
    return UrlPrefixStorage(base_url) if base_url else None


__all__ = ["UrlPrefixStorage", "storage_from_settings"]
