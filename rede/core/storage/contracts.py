from __future__ import annotations

import hashlib
from typing import Any, Optional, Protocol

CACHE_NAMESPACE = "exif-json:"


def cache_key_for_url(url: str) -> str:
    """Stable cache key for a lookup URL (md5 of namespace + url)."""

    return hashlib.md5((CACHE_NAMESPACE + url).encode("utf-8")).hexdigest()


class KeyValueCache(Protocol):
    """
    Opaque get/set cache for normalized lookup results.
    """

    def get(self, key: str) -> Optional[Any]:
        """
        Return the cached value, or None on miss/expiry.
        """
        ...

    def set(self, key: str, value: Any) -> None:
        """
        Store a JSON-safe value (last write wins).
        """
        ...


class SecretStore(Protocol):
    """
    Named string secrets (e.g. the base32 TOTP secret).
    """

    def get(self, name: str) -> Optional[str]:
        ...

    def set(self, name: str, value: str) -> None:
        ...

    def set_if_absent(self, name: str, value: str) -> bool:
        """
        Atomically store value if name has none. Returns True if written.
        """
        ...
