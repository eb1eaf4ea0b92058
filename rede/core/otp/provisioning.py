from __future__ import annotations

import logging
import secrets
from typing import Optional

from rede.core.storage.contracts import SecretStore

from .base32 import b32decode, b32encode

log = logging.getLogger("rede.otp")

TOTP_SECRET_NAME = "rede_totp_secret"
SECRET_BYTES = 20


def generate_secret(nbytes: int = SECRET_BYTES) -> str:
    """Return a fresh base32-encoded secret from a CSPRNG."""

    return b32encode(secrets.token_bytes(max(SECRET_BYTES, int(nbytes))))


def get_or_create_secret(store: SecretStore, *, name: str = TOTP_SECRET_NAME) -> str:
    """Return the stored base32 secret, creating it on first use.

    Concurrent first calls converge: the write is set-if-absent and the
    value is re-read, so every caller uses the first writer's secret.

    Security notes:
    - Never logs the secret itself.
    - An existing secret is never replaced here; rotation is an operator action.

    """

    existing = store.get(name)
    if existing:
        return existing

    if store.set_if_absent(name, generate_secret()):
        log.info("totp_secret_created", extra={"secret_name": name})

    stored = store.get(name)
    if not stored:
        raise RuntimeError(f"secret store did not persist {name!r}")
    return stored


def load_secret_bytes(store: SecretStore, *, name: str = TOTP_SECRET_NAME) -> Optional[bytes]:
    """Decode the stored secret for the OTP engine, creating it if needed."""

    decoded = b32decode(get_or_create_secret(store, name=name))
    return decoded or None
