from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from .totp import TotpEngine

AUTH_SCHEME_PREFIX = "TOTP "
AUTH_REQUIRED_REASON = "Authentication required."


@dataclass(frozen=True, slots=True)
class GateDecision:
    """Outcome of an authorization check."""

    accepted: bool
    status: int = 200
    reason: Optional[str] = None


ACCEPT = GateDecision(accepted=True)
REJECT = GateDecision(accepted=False, status=401, reason=AUTH_REQUIRED_REASON)


@dataclass(frozen=True, slots=True)
class CredentialGate:
    """Authorize a request by host session or by a TOTP Authorization header.

    Header format (scheme is case-sensitive):
      Authorization: TOTP <6-digit code>

    Security notes:
    - Every rejection carries the same 401 and reason, whatever failed.
    - The secret is only read, never modified here.

    """

    engine: TotpEngine = field(default_factory=TotpEngine)

    def authorize(
        self,
        host_session_active: bool,
        authorization_header: Optional[str],
        secret: Optional[bytes],
        now: float,
    ) -> GateDecision:
        if host_session_active:
            return ACCEPT

        if not authorization_header or not authorization_header.startswith(AUTH_SCHEME_PREFIX):
            return REJECT
        code = authorization_header[len(AUTH_SCHEME_PREFIX) :].strip()
        if not code or not secret:
            return REJECT

        if self.engine.validate(secret, code, now):
            return ACCEPT
        return REJECT
