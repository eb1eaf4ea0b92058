"""Time-based one-time passwords (RFC 6238) used as an API credential.

Security notes:
- Codes are compared in constant time.
- The shared secret is created once and only read afterwards.
"""

from .base32 import b32decode, b32encode
from .gate import AUTH_REQUIRED_REASON, AUTH_SCHEME_PREFIX, CredentialGate, GateDecision
from .provisioning import TOTP_SECRET_NAME, generate_secret, get_or_create_secret, load_secret_bytes
from .totp import TotpEngine, current_code, provisioning_uri, time_step, validate_code

__all__ = [
    "b32encode",
    "b32decode",
    "TotpEngine",
    "time_step",
    "current_code",
    "validate_code",
    "provisioning_uri",
    "CredentialGate",
    "GateDecision",
    "AUTH_SCHEME_PREFIX",
    "AUTH_REQUIRED_REASON",
    "TOTP_SECRET_NAME",
    "generate_secret",
    "get_or_create_secret",
    "load_secret_bytes",
]
