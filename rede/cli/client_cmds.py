from __future__ import annotations

import argparse
import json
import os
import sys

from rede.client.http import RedeHttpClient


def _print_json(obj: object) -> None:
    """Print JSON to stdout."""
    print(json.dumps(obj, indent=2, sort_keys=True, default=str))


def _client(args: argparse.Namespace) -> RedeHttpClient:
    return RedeHttpClient(
        args.server,
        api_key=args.api_key,
        totp_secret=args.totp_secret,
        timeout_sec=args.timeout,
    )


def cmd_client_health(args: argparse.Namespace) -> int:
    """Call GET /health."""
    r = _client(args).get("/health")
    if r.status >= 400:
        print(r.body_bytes.decode("utf-8", errors="replace"), file=sys.stderr)
        return 2
    _print_json(r.json())
    return 0


def cmd_client_read(args: argparse.Namespace) -> int:
    """Call GET /exif-data/v1/read on a running server.

    Security notes:
    - Treat server response as untrusted.

    """
    r = _client(args).read(args.image_url)
    if r.status >= 400:
        print(r.body_bytes.decode("utf-8", errors="replace"), file=sys.stderr)
        return 2
    payload = r.json()
    _print_json(payload)
    return 0 if payload.get("success") else 1


def register_client_commands(sub: argparse._SubParsersAction) -> None:
    """Register API client subcommands."""

    def _common(p: argparse.ArgumentParser) -> None:
        p.add_argument("--server", default="http://127.0.0.1:8080", help="API base URL")
        p.add_argument(
            "--api-key",
            default=os.environ.get("REDE_API_KEY") or None,
            help="API key (env: REDE_API_KEY)",
        )
        p.add_argument(
            "--totp-secret",
            default=os.environ.get("REDE_TOTP_SECRET") or None,
            help="Base32 TOTP secret used to derive a code (env: REDE_TOTP_SECRET)",
        )
        p.add_argument("--timeout", type=float, default=30.0, help="Request timeout in seconds")

    ch = sub.add_parser("client-health", help="Call GET /health on a running server")
    _common(ch)
    ch.set_defaults(func=cmd_client_health)

    cr = sub.add_parser("client-read", help="Call GET /exif-data/v1/read on a running server")
    cr.add_argument("image_url", help="Remote image URL")
    _common(cr)
    cr.set_defaults(func=cmd_client_read)
