from __future__ import annotations

import json
import logging
import sqlite3
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

log = logging.getLogger("rede.storage")


def _json_dumps(obj: Any) -> str:
    """Deterministic JSON serialization.

    Security notes:
    - Expects JSON-safe values (normalized records); anything else raises.
    """

    return json.dumps(obj, sort_keys=True, separators=(",", ":"))


@dataclass(slots=True)
class SQLiteStore:
    """SQLite persistence for the lookup cache and named secrets.

    One database file backs both the KeyValueCache and SecretStore contracts,
    so the TOTP secret survives restarts and is shared by workers.

    Security notes:
    - Treat all values read from the database as untrusted.
    - This store does NOT encrypt data at rest (including the TOTP secret).
      Place the DB on an encrypted volume with restrictive permissions.

    """

    db_path: Path
    ttl_seconds: int = 0

    def __post_init__(self) -> None:
        self.db_path = Path(self.db_path)
        self.ttl_seconds = max(0, int(self.ttl_seconds))

    def connect(self) -> sqlite3.Connection:
        """Open a SQLite connection."""

        return sqlite3.connect(str(self.db_path), timeout=10)

    def init_schema(self) -> None:
        """Create tables if missing."""

        with self.connect() as con:
            con.executescript(
                """
                CREATE TABLE IF NOT EXISTS cache (
                    cache_key TEXT PRIMARY KEY,
                    value_json TEXT NOT NULL,
                    stored_at REAL NOT NULL,
                    expires_at REAL
                );

                CREATE TABLE IF NOT EXISTS secrets (
                    name TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                );
                """
            )

    # --- KeyValueCache ---

    def get(self, key: str) -> Optional[Any]:
        """Return a cached value, or None on miss or expiry."""

        with self.connect() as con:
            row = con.execute(
                "SELECT value_json, expires_at FROM cache WHERE cache_key = ?", (key,)
            ).fetchone()
        if row is None:
            return None
        value_json, expires_at = row
        if expires_at is not None and expires_at <= time.time():
            return None
        try:
            return json.loads(value_json)
        except json.JSONDecodeError:
            log.warning("cache_entry_corrupt", extra={"cache_key": key})
            return None

    def set(self, key: str, value: Any) -> None:
        """Store a value (last write wins)."""

        now = time.time()
        expires_at = now + self.ttl_seconds if self.ttl_seconds else None
        with self.connect() as con:
            con.execute(
                "INSERT OR REPLACE INTO cache(cache_key, value_json, stored_at, expires_at) VALUES(?,?,?,?)",
                (key, _json_dumps(value), now, expires_at),
            )

    def purge_expired(self) -> int:
        """Delete expired cache rows. Returns the number removed."""

        with self.connect() as con:
            cur = con.execute(
                "DELETE FROM cache WHERE expires_at IS NOT NULL AND expires_at <= ?", (time.time(),)
            )
            return int(cur.rowcount or 0)

    # --- SecretStore ---

    def get_secret(self, name: str) -> Optional[str]:
        with self.connect() as con:
            row = con.execute("SELECT value FROM secrets WHERE name = ?", (name,)).fetchone()
        return row[0] if row else None

    def set_secret(self, name: str, value: str) -> None:
        with self.connect() as con:
            con.execute("INSERT OR REPLACE INTO secrets(name, value) VALUES(?,?)", (name, value))

    def set_secret_if_absent(self, name: str, value: str) -> bool:
        with self.connect() as con:
            cur = con.execute("INSERT OR IGNORE INTO secrets(name, value) VALUES(?,?)", (name, value))
            return cur.rowcount == 1

    def secret_store(self) -> "SQLiteSecretStore":
        return SQLiteSecretStore(self)


@dataclass(frozen=True, slots=True)
class SQLiteSecretStore:
    """SecretStore view over a SQLiteStore (get/set name a secret, not a cache key)."""

    store: SQLiteStore

    def get(self, name: str) -> Optional[str]:
        return self.store.get_secret(name)

    def set(self, name: str, value: str) -> None:
        self.store.set_secret(name, value)

    def set_if_absent(self, name: str, value: str) -> bool:
        return self.store.set_secret_if_absent(name, value)
