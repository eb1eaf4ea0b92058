"""Cache and secret persistence used around the lookup core."""

from .contracts import CACHE_NAMESPACE, KeyValueCache, SecretStore, cache_key_for_url
from .memory_store import InMemoryCache, InMemorySecretStore
from .sqlite_store import SQLiteSecretStore, SQLiteStore

__all__ = [
    "CACHE_NAMESPACE",
    "KeyValueCache",
    "SecretStore",
    "cache_key_for_url",
    "InMemoryCache",
    "InMemorySecretStore",
    "SQLiteStore",
    "SQLiteSecretStore",
]
