"""HTTP client utilities for talking to the rede API.

Security notes:
- Treat server responses as untrusted input.
- Never print or log the TOTP secret.
"""

from .http import HttpResponse, RedeHttpClient  # noqa: F401
