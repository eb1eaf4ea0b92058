from __future__ import annotations

import logging
import socket
import ssl
from dataclasses import dataclass
from http.client import HTTPException
from typing import Protocol
from urllib.error import HTTPError, URLError
from urllib.parse import quote, urlsplit
from urllib.request import Request, urlopen

log = logging.getLogger("rede.sources")

INVALID_URL_MESSAGE = "A valid URL was not provided."
UNREADABLE_RESPONSE_MESSAGE = "Remote image could not be retrieved."

# RFC 3986 reserved characters plus "%" so existing escapes survive.
_URL_SAFE_CHARS = ":/?#[]@!$&'()*+,;=%~"


def quote_url(url: str) -> str:
    """Percent-encode characters http.client refuses (spaces, controls, non-ASCII)."""

    return quote(url, safe=_URL_SAFE_CHARS)


class FetchError(Exception):
    """Raised when a remote image cannot be retrieved.

    The message is safe to return to API callers.
    """


class ResourceFetcher(Protocol):
    def fetch(self, url: str) -> bytes:
        """Return the response body or raise FetchError."""
        ...


@dataclass(frozen=True, slots=True)
class UrlFetcher:
    """Download remote images with urllib.

    Failure messages:
    - non-200 status: "Remote image returned HTTP {code}."
    - empty body: "Remote image returned an empty body."
    - network errors: the underlying reason
    - dropped connections and malformed responses: a fixed message

    Security notes:
    - Only http/https URLs are followed.
    - Uses default SSL context (verification ON).
    - Body size and wall time are bounded.

    """

    timeout_sec: float = 10.0
    max_bytes: int = 25 * 1024 * 1024
    user_agent: str = "rede/0.1"

    def fetch(self, url: str) -> bytes:
        parts = urlsplit(url or "")
        if parts.scheme.lower() not in {"http", "https"} or not parts.netloc:
            raise FetchError(INVALID_URL_MESSAGE)

        req = Request(url=quote_url(url), method="GET", headers={"User-Agent": self.user_agent})
        try:
            ctx = ssl.create_default_context()
            with urlopen(req, timeout=self.timeout_sec, context=ctx) as resp:
                status = int(resp.status)
                body = resp.read(self.max_bytes + 1) if status == 200 else b""
        except HTTPError as e:
            status = int(getattr(e, "code", 0) or 0)
            body = b""
        except URLError as e:
            log.info("fetch_failed", extra={"host": parts.hostname, "reason": str(e.reason)})
            raise FetchError(str(e.reason)) from e
        except (socket.timeout, TimeoutError) as e:
            log.info("fetch_timeout", extra={"host": parts.hostname})
            raise FetchError("Operation timed out.") from e
        except (HTTPException, OSError, ValueError) as e:
            # Dropped connections, truncated bodies, URLs http.client refuses.
            log.info("fetch_failed", extra={"host": parts.hostname, "reason": type(e).__name__})
            raise FetchError(UNREADABLE_RESPONSE_MESSAGE) from e

        if status != 200:
            raise FetchError(f"Remote image returned HTTP {status}.")
        if not body:
            raise FetchError("Remote image returned an empty body.")
        if len(body) > self.max_bytes:
            raise FetchError(f"Remote image exceeds {self.max_bytes} bytes.")
        return body
