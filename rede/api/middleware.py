from __future__ import annotations

import logging
import re
import time
from typing import Any, Callable, Dict
from uuid import uuid4

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

log = logging.getLogger("rede.api")

REQUEST_ID_HEADER = "X-Request-ID"

_REQUEST_ID_RE = re.compile(r"^[A-Za-z0-9._-]{1,64}$")


def _request_id(request: Request) -> str:
    supplied = request.headers.get(REQUEST_ID_HEADER, "")
    return supplied if _REQUEST_ID_RE.match(supplied) else uuid4().hex


def _lookup_fields(request: Request) -> Dict[str, Any]:
    """Collect what the auth dependency and the read endpoint left on request.state."""

    state = request.state
    return {
        "actor_id": getattr(state, "actor_id", None),
        "auth_method": getattr(state, "auth_method", None),
        "lookup_success": getattr(state, "lookup_success", None),
        "cache_hit": getattr(state, "cache_hit", None),
    }


class LookupAuditMiddleware(BaseHTTPMiddleware):
    """Tag each request with an id and write one audit line when it finishes.

    The line records how the caller authenticated (api_key or totp) and,
    for lookups, whether the envelope was a success and came from cache.
    Rejected credentials are logged at WARNING as "exif_auth_rejected".

    Security notes:
    - Client request ids are echoed only if they match [A-Za-z0-9._-]{1,64}.
    - The query string (the looked-up URL), API keys and OTP codes are never
      logged.

    """

    async def dispatch(self, request: Request, call_next: Callable):
        rid = _request_id(request)
        request.state.request_id = rid
        started = time.monotonic()
        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
            response.headers[REQUEST_ID_HEADER] = rid
            return response
        finally:
            fields = _lookup_fields(request)
            fields.update(
                request_id=rid,
                path=request.url.path,
                status_code=status_code,
                duration_ms=int((time.monotonic() - started) * 1000),
            )
            if status_code == 401:
                log.warning("exif_auth_rejected", extra=fields)
            else:
                log.info("exif_request", extra=fields)
