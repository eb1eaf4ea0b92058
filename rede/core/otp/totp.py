from __future__ import annotations

import hashlib
import hmac
import math
import struct
from dataclasses import dataclass

import pyotp

from .base32 import b32encode

PERIOD_SECONDS = 30
DIGITS = 6
WINDOW_STEPS = 1


def time_step(now: float, *, period: int = PERIOD_SECONDS) -> int:
    """Return the TOTP counter for a unix timestamp."""

    return int(math.floor(now / period))


def current_code(secret: bytes, step: int, *, digits: int = DIGITS) -> str:
    """Derive the HOTP code for one counter value (RFC 4226 dynamic truncation)."""

    msg = struct.pack(">Q", step & 0xFFFFFFFFFFFFFFFF)
    digest = hmac.new(secret, msg, hashlib.sha1).digest()
    offset = digest[-1] & 0x0F
    (value,) = struct.unpack(">I", digest[offset : offset + 4])
    value &= 0x7FFFFFFF
    return str(value % (10**digits)).zfill(digits)


def validate_code(
    secret: bytes,
    code: str,
    now: float,
    *,
    period: int = PERIOD_SECONDS,
    digits: int = DIGITS,
    window: int = WINDOW_STEPS,
) -> bool:
    """Check a supplied code against the current step and its neighbours.

    With the default window of 1 the previous, current and next 30-second
    steps are accepted.

    Security notes:
    - Uses constant-time comparison.
    - All candidate steps are compared; no early exit on a match.

    """

    if not isinstance(code, str) or not code:
        return False

    supplied = code.encode("utf-8")
    step = time_step(now, period=period)
    ok = False
    for k in range(-window, window + 1):
        expected = current_code(secret, step + k, digits=digits).encode("ascii")
        if hmac.compare_digest(expected, supplied):
            ok = True
    return ok


def provisioning_uri(secret: bytes, account: str, *, issuer: str = "rede") -> str:
    """Render an otpauth:// URI for enrolling the secret in an authenticator app.

    pyotp handles the label and parameter encoding; code derivation and
    validation stay in this module.

    """

    totp = pyotp.TOTP(b32encode(secret), digits=DIGITS, interval=PERIOD_SECONDS, issuer=issuer)
    return totp.provisioning_uri(name=account, issuer_name=issuer)


@dataclass(frozen=True, slots=True)
class TotpEngine:
    """TOTP parameters bundled for callers that pass an engine around."""

    period: int = PERIOD_SECONDS
    digits: int = DIGITS
    window: int = WINDOW_STEPS

    def code_at(self, secret: bytes, now: float) -> str:
        return current_code(secret, time_step(now, period=self.period), digits=self.digits)

    def validate(self, secret: bytes, code: str, now: float) -> bool:
        return validate_code(
            secret, code, now, period=self.period, digits=self.digits, window=self.window
        )
