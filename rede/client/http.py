from __future__ import annotations

import json
import ssl
import time
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional
from urllib.error import HTTPError, URLError
from urllib.parse import urlencode, urljoin
from urllib.request import Request, urlopen

from rede.core.otp import AUTH_SCHEME_PREFIX, TotpEngine, b32decode


@dataclass(frozen=True, slots=True)
class HttpResponse:
    """HTTP response wrapper.

    Security notes:
    - Treat `body_bytes` as untrusted.

    """

    status: int
    headers: Mapping[str, str]
    body_bytes: bytes

    def json(self) -> Any:
        """Decode body as JSON."""

        return json.loads(self.body_bytes.decode("utf-8", errors="strict"))


class RedeHttpClient:
    """Minimal stdlib-only client for the rede API.

    Authenticates with an API key, or with a TOTP code derived from the
    shared base32 secret at request time.

    Security notes:
    - Does NOT disable TLS verification.
    - The TOTP secret stays local; only the 6-digit code is sent.

    """

    def __init__(
        self,
        base_url: str,
        *,
        api_key: Optional[str] = None,
        totp_secret: Optional[str] = None,
        timeout_sec: float = 30.0,
    ):
        self.base_url = base_url.rstrip("/") + "/"
        self.api_key = api_key
        self.totp_secret = totp_secret
        self.timeout_sec = float(timeout_sec)

    def _auth_headers(self) -> Dict[str, str]:
        headers: Dict[str, str] = {}
        if self.api_key:
            headers["X-Rede-API-Key"] = self.api_key
        elif self.totp_secret:
            code = TotpEngine().code_at(b32decode(self.totp_secret), time.time())
            headers["Authorization"] = AUTH_SCHEME_PREFIX + code
        return headers

    def get(self, path: str, params: Optional[Mapping[str, str]] = None) -> HttpResponse:
        """HTTP GET."""

        url = urljoin(self.base_url, path.lstrip("/"))
        if params:
            url = f"{url}?{urlencode(dict(params))}"
        req = Request(url=url, method="GET", headers=self._auth_headers())
        return _do_request(req, timeout_sec=self.timeout_sec)

    def read(self, image_url: str) -> HttpResponse:
        """GET /exif-data/v1/read for one image URL."""

        return self.get("/exif-data/v1/read", params={"url": image_url})


def _do_request(req: Request, *, timeout_sec: float) -> HttpResponse:
    """Execute a request.

    Security notes:
    - Uses default SSL context (verification ON).
    """

    try:
        ctx = ssl.create_default_context()
        with urlopen(req, timeout=timeout_sec, context=ctx) as resp:
            body = resp.read()
            headers = {k: v for k, v in resp.headers.items()}
            return HttpResponse(status=int(resp.status), headers=headers, body_bytes=body)
    except HTTPError as e:
        body = e.read() if hasattr(e, "read") else b""
        headers = dict(getattr(e, "headers", {}) or {})
        return HttpResponse(
            status=int(getattr(e, "code", 0) or 0), headers=headers, body_bytes=body
        )
    except URLError as e:
        raise RuntimeError(f"network error: {e}") from e
