"""rede API package.

FastAPI service exposing the EXIF lookup behind API-key or TOTP
authentication.
"""

from .server import create_app  # noqa: F401
