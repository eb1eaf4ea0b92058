from __future__ import annotations

import hmac
import os
from dataclasses import dataclass
from typing import Dict, Optional


@dataclass(frozen=True, slots=True)
class Actor:
    """Authenticated caller identity.

    Security notes:
    - actor_id comes from the server-side key mapping, never from the client.

    """

    actor_id: str


TOTP_ACTOR = Actor(actor_id="totp")


def _parse_api_keys(raw: str) -> Dict[str, Actor]:
    """Parse REDE_API_KEYS into an API key -> Actor mapping.

    Format (semicolon-separated entries):
      <APIKEY>:<ACTOR_ID>;

    Example:
      REDE_API_KEYS="k1:alice;k2:wordpress-frontend"

    Security notes:
    - Env var is trusted server configuration.
    - Unknown/invalid entries are ignored (fail-closed by omission).

    """

    out: Dict[str, Actor] = {}
    for entry in (raw or "").split(";"):
        entry = entry.strip()
        if not entry:
            continue
        parts = entry.split(":", 1)
        if len(parts) != 2:
            continue
        key, actor_id = parts[0].strip(), parts[1].strip()
        if not key or not actor_id:
            continue
        out[key] = Actor(actor_id=actor_id)
    return out


def load_auth_config() -> Dict[str, Actor]:
    """Load the API key mapping from the environment."""

    return _parse_api_keys(os.environ.get("REDE_API_KEYS", ""))


def authenticate(api_key: Optional[str], mapping: Dict[str, Actor]) -> Optional[Actor]:
    """Resolve an API key to its Actor (the host session), or None.

    Security notes:
    - Uses constant-time comparison to reduce timing side-channels.

    """

    if not api_key:
        return None

    # Constant-time compare: iterate all keys.
    found: Optional[Actor] = None
    for k, actor in mapping.items():
        if hmac.compare_digest(k.encode("utf-8"), api_key.encode("utf-8")):
            found = actor
    return found
