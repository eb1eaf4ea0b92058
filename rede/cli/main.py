from __future__ import annotations

import argparse
import json
import os
import sys
import time
from pathlib import Path
from typing import List

from rede.cli.client_cmds import register_client_commands
from rede.core.lookup import (
    EXIF_NOT_FOUND_MESSAGE,
    NOT_AN_IMAGE_MESSAGE,
    ExifLookupService,
    LookupResult,
    sanitize_url,
)
from rede.core.metadata import normalize_metadata
from rede.core.otp import TotpEngine, b32decode, get_or_create_secret, provisioning_uri
from rede.core.sources import PiexifExtractor, UrlFetcher, is_image
from rede.core.storage import InMemoryCache, SQLiteStore


def _print_json(obj: object) -> None:
    """Print JSON to stdout."""
    print(json.dumps(obj, indent=2, sort_keys=True, default=str))


def _default_db() -> str | None:
    return os.environ.get("REDE_DB_PATH", "").strip() or None


def _open_store(db: str | None) -> SQLiteStore | None:
    if not db:
        return None
    store = SQLiteStore(Path(db))
    store.init_schema()
    return store


def cmd_serve(args: argparse.Namespace) -> int:
    """Run the rede API server.

    Security notes:
    - Bind to 127.0.0.1 by default (safer than 0.0.0.0).
    - Without --db the TOTP secret is regenerated on every start.

    """

    try:
        import uvicorn
    except ImportError as e:
        print(f"error: uvicorn is required to serve the API: {e}", file=sys.stderr)
        return 2

    from rede.api.server import create_app

    app = create_app(db_path=args.db)
    uvicorn.run(app, host=args.host, port=int(args.port), log_level=args.log_level)
    return 0


def cmd_read(args: argparse.Namespace) -> int:
    """Look up a remote image locally (no API server, no auth)."""

    store = _open_store(args.db)
    service = ExifLookupService(
        fetcher=UrlFetcher(timeout_sec=float(args.timeout)),
        extractor=PiexifExtractor(),
        cache=store if store is not None else InMemoryCache(),
    )
    result = service.read(sanitize_url(args.url))
    _print_json(result.to_dict())
    return 0 if result.success else 1


def cmd_inspect_file(args: argparse.Namespace) -> int:
    """Extract and normalize EXIF from a local image file."""

    data = Path(args.path).read_bytes()
    if not is_image(data):
        result = LookupResult(success=False, data=NOT_AN_IMAGE_MESSAGE)
    else:
        extracted = PiexifExtractor().extract(data)
        if not extracted.found:
            result = LookupResult(success=False, data=EXIF_NOT_FOUND_MESSAGE)
        elif args.raw:
            result = LookupResult(success=True, data=extracted.record or {})
        else:
            result = LookupResult(success=True, data=normalize_metadata(extracted.record or {}))
    _print_json(result.to_dict())
    return 0 if result.success else 1


def cmd_totp_secret(args: argparse.Namespace) -> int:
    """Print the shared TOTP secret (creating it if needed) and its otpauth URI.

    Security notes:
    - Prints the secret. Run only on the server host.

    """

    store = _open_store(args.db)
    if store is None:
        print("error: --db (or REDE_DB_PATH) is required", file=sys.stderr)
        return 2
    secret = get_or_create_secret(store.secret_store())
    issuer = args.issuer or os.environ.get("REDE_TOTP_ISSUER", "").strip() or "rede"
    _print_json(
        {
            "secret": secret,
            "provisioning_uri": provisioning_uri(b32decode(secret), args.account, issuer=issuer),
        }
    )
    return 0


def cmd_totp_code(args: argparse.Namespace) -> int:
    """Print the TOTP code for the current 30-second step."""

    store = _open_store(args.db)
    if store is None:
        print("error: --db (or REDE_DB_PATH) is required", file=sys.stderr)
        return 2
    secret = b32decode(get_or_create_secret(store.secret_store()))
    now = time.time()
    engine = TotpEngine()
    _print_json({"code": engine.code_at(secret, now), "valid_for": engine.period - int(now) % engine.period})
    return 0


def cmd_db_init(args: argparse.Namespace) -> int:
    """Initialize the SQLite cache/secret store."""

    store = SQLiteStore(Path(args.db))
    store.init_schema()
    _print_json({"ok": True, "db": str(store.db_path)})
    return 0


def cmd_db_purge(args: argparse.Namespace) -> int:
    """Delete expired cache rows (entries written while REDE_CACHE_TTL_SEC was set)."""

    store = _open_store(args.db)
    if store is None:
        print("error: --db (or REDE_DB_PATH) is required", file=sys.stderr)
        return 2
    _print_json({"ok": True, "purged": store.purge_expired()})
    return 0


def build_parser() -> argparse.ArgumentParser:
    """Build the CLI parser."""
    p = argparse.ArgumentParser(prog="rede", description="Remote EXIF Data Endpoint")
    sub = p.add_subparsers(dest="cmd", required=True)

    rp = sub.add_parser("read", help="Fetch a remote image and print its normalized EXIF")
    rp.add_argument("url", help="Image URL (percent-encoding is decoded)")
    rp.add_argument("--db", default=_default_db(), help="Optional SQLite DB used as cache")
    rp.add_argument("--timeout", type=float, default=10.0, help="Fetch timeout in seconds")
    rp.set_defaults(func=cmd_read)

    ip = sub.add_parser("inspect-file", help="Print normalized EXIF of a local image")
    ip.add_argument("path", help="Path to image file")
    ip.add_argument("--raw", action="store_true", help="Print the raw extracted record")
    ip.set_defaults(func=cmd_inspect_file)

    ts = sub.add_parser("totp-secret", help="Show (or create) the TOTP secret and otpauth URI")
    ts.add_argument("--db", default=_default_db(), help="SQLite DB path")
    ts.add_argument("--account", default="api", help="Account label for the otpauth URI")
    ts.add_argument("--issuer", default=None, help="Issuer for the otpauth URI")
    ts.set_defaults(func=cmd_totp_secret)

    tc = sub.add_parser("totp-code", help="Show the current TOTP code")
    tc.add_argument("--db", default=_default_db(), help="SQLite DB path")
    tc.set_defaults(func=cmd_totp_code)

    dbi = sub.add_parser("db-init", help="Initialize a SQLite cache/secret store")
    dbi.add_argument("--db", required=True, help="SQLite DB path")
    dbi.set_defaults(func=cmd_db_init)

    dbp = sub.add_parser("db-purge", help="Delete expired cache rows")
    dbp.add_argument("--db", default=_default_db(), help="SQLite DB path")
    dbp.set_defaults(func=cmd_db_purge)

    # --- API server ---
    sv = sub.add_parser("serve", help="Run the rede FastAPI server")
    sv.add_argument("--host", default="127.0.0.1", help="Bind host (default: 127.0.0.1)")
    sv.add_argument("--port", type=int, default=8080, help="Bind port (default: 8080)")
    sv.add_argument("--db", default=_default_db(), help="SQLite DB path for cache + TOTP secret")
    sv.add_argument("--log-level", default="info", help="Uvicorn log level")
    sv.set_defaults(func=cmd_serve)

    # --- API client ---
    register_client_commands(sub)

    return p


def main(argv: List[str] | None = None) -> int:
    """CLI entry."""
    parser = build_parser()
    args = parser.parse_args(argv)
    return int(args.func(args))


if __name__ == "__main__":
    raise SystemExit(main())
