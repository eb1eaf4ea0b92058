from __future__ import annotations

import copy
import time
from threading import Lock
from typing import Any, Dict, Optional, Tuple


class InMemoryCache:
    """Process-local cache with optional TTL.

    Security notes:
    - Best-effort (memory-only). Multi-worker deployments should use the
      SQLite store so workers share cached lookups.

    """

    def __init__(self, *, ttl_seconds: int = 0):
        self._ttl = max(0, int(ttl_seconds))
        # key -> (value, expires_at or 0.0)
        self._entries: Dict[str, Tuple[Any, float]] = {}
        self._lock = Lock()

    def get(self, key: str) -> Optional[Any]:
        now = time.time()
        with self._lock:
            hit = self._entries.get(key)
            if hit is None:
                return None
            value, expires_at = hit
            if expires_at and expires_at <= now:
                del self._entries[key]
                return None
            return copy.deepcopy(value)

    def set(self, key: str, value: Any) -> None:
        expires_at = time.time() + self._ttl if self._ttl else 0.0
        with self._lock:
            self._entries[key] = (copy.deepcopy(value), expires_at)


class InMemorySecretStore:
    """Process-local secret store. Secrets vanish on restart."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._values: Dict[str, str] = dict(initial or {})
        self._lock = Lock()

    def get(self, name: str) -> Optional[str]:
        with self._lock:
            return self._values.get(name)

    def set(self, name: str, value: str) -> None:
        with self._lock:
            self._values[name] = value

    def set_if_absent(self, name: str, value: str) -> bool:
        with self._lock:
            if self._values.get(name):
                return False
            self._values[name] = value
            return True
