from __future__ import annotations

import logging
import os
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional, Tuple

from fastapi import Depends, FastAPI, Header, HTTPException, Query
from starlette.requests import Request

from rede.api.auth import TOTP_ACTOR, Actor, authenticate, load_auth_config
from rede.api.middleware import LookupAuditMiddleware
from rede.api.models import ApiError, HealthOut, ReadOut
from rede.core.lookup import ExifLookupService, sanitize_url
from rede.core.otp import AUTH_SCHEME_PREFIX, CredentialGate, load_secret_bytes
from rede.core.sources import MetadataExtractor, PiexifExtractor, ResourceFetcher, UrlFetcher
from rede.core.storage import (
    InMemoryCache,
    InMemorySecretStore,
    KeyValueCache,
    SecretStore,
    SQLiteStore,
)

log = logging.getLogger("rede.api")

ROUTE_NAMESPACE = "/exif-data/v1"


@dataclass(frozen=True, slots=True)
class ServiceConfig:
    """Configuration for the API service.

    Security notes:
    - db_path is optional. Without it the cache and the TOTP secret live in
      memory, so the secret changes on every restart.

    """

    db_path: Optional[Path] = None
    fetch_timeout_sec: int = 10
    max_image_bytes: int = 25 * 1024 * 1024
    cache_ttl_sec: int = 0
    exif_enabled: bool = True
    totp_issuer: str = "rede"


def _env_int(name: str, default: int) -> int:
    """Read an integer environment variable.

    Security notes:
    - Env vars are treated as trusted server configuration.

    """

    raw = os.environ.get(name, "").strip()
    if not raw:
        return int(default)
    try:
        return int(raw)
    except ValueError:
        return int(default)


def _env_flag(name: str, default: bool) -> bool:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    return raw in {"1", "true", "TRUE", "yes", "YES"}


def load_service_config(*, db_path: Optional[str] = None) -> ServiceConfig:
    """Resolve ServiceConfig from REDE_* environment variables."""

    return ServiceConfig(
        db_path=Path(db_path) if db_path else None,
        fetch_timeout_sec=_env_int("REDE_FETCH_TIMEOUT_SEC", 10),
        max_image_bytes=_env_int("REDE_MAX_IMAGE_BYTES", 25 * 1024 * 1024),
        cache_ttl_sec=_env_int("REDE_CACHE_TTL_SEC", 0),
        exif_enabled=_env_flag("REDE_EXIF_ENABLED", True),
        totp_issuer=os.environ.get("REDE_TOTP_ISSUER", "").strip() or "rede",
    )


def build_stores(cfg: ServiceConfig) -> Tuple[KeyValueCache, SecretStore]:
    """Create the cache and secret store for a config."""

    if cfg.db_path is not None:
        store = SQLiteStore(cfg.db_path, ttl_seconds=cfg.cache_ttl_sec)
        store.init_schema()
        return store, store.secret_store()
    log.warning("no REDE_DB_PATH configured; TOTP secret is process-local")
    return InMemoryCache(ttl_seconds=cfg.cache_ttl_sec), InMemorySecretStore()


def create_app(
    *,
    db_path: Optional[str] = None,
    fetcher: Optional[ResourceFetcher] = None,
    extractor: Optional[MetadataExtractor] = None,
    cache: Optional[KeyValueCache] = None,
    secret_store: Optional[SecretStore] = None,
    clock: Callable[[], float] = time.time,
) -> FastAPI:
    """Create the FastAPI app.

    Collaborators default to the production implementations; tests inject
    their own fetcher, extractor, stores and clock.

    """

    cfg = load_service_config(db_path=db_path)
    mapping = load_auth_config()

    # Logging: safe defaults (no request bodies, no secrets), host app may reconfigure.
    logging.getLogger("rede").setLevel(os.environ.get("REDE_LOG_LEVEL", "INFO").upper())

    if cache is None or secret_store is None:
        default_cache, default_secrets = build_stores(cfg)
        cache = cache if cache is not None else default_cache
        secret_store = secret_store if secret_store is not None else default_secrets

    service = ExifLookupService(
        fetcher=fetcher
        or UrlFetcher(timeout_sec=float(cfg.fetch_timeout_sec), max_bytes=cfg.max_image_bytes),
        extractor=extractor if extractor is not None else PiexifExtractor(enabled=cfg.exif_enabled),
        cache=cache,
    )
    gate = CredentialGate()

    app = FastAPI(title="rede - Remote EXIF Data Endpoint", version="0.1.0")
    app.state.cfg = cfg
    app.state.service = service
    app.state.secret_store = secret_store

    # Request id + one audit line per request.
    app.add_middleware(LookupAuditMiddleware)

    def require_credentials(
        request: Request,
        authorization: Optional[str] = Header(default=None),
        x_rede_api_key: Optional[str] = Header(default=None),
    ) -> Actor:
        """Authorize by API key (host session) or TOTP Authorization header.

        Security notes:
        - Fail closed (401) with one generic reason for every failure.
        - The TOTP secret is created on the first validation attempt.

        """

        actor = authenticate(x_rede_api_key, mapping)
        secret: Optional[bytes] = None
        if actor is None and authorization:
            secret = load_secret_bytes(secret_store)

        decision = gate.authorize(actor is not None, authorization, secret, clock())
        if not decision.accepted:
            raise HTTPException(
                status_code=decision.status,
                detail=decision.reason,
                headers={"WWW-Authenticate": AUTH_SCHEME_PREFIX.strip()},
            )

        request.state.auth_method = "api_key" if actor is not None else "totp"
        actor = actor or TOTP_ACTOR
        request.state.actor_id = actor.actor_id
        return actor

    @app.get("/health", response_model=HealthOut)
    def health() -> HealthOut:
        return HealthOut(
            ok=True,
            db=str(cfg.db_path) if cfg.db_path else None,
            extractor=bool(service.extractor is not None and service.extractor.available()),
            api_keys_configured=len(mapping),
        )

    @app.get(
        f"{ROUTE_NAMESPACE}/read",
        response_model=ReadOut,
        responses={401: {"model": ApiError}},
    )
    def read_endpoint(
        request: Request,
        actor: Actor = Depends(require_credentials),
        url: str = Query(default=""),
    ) -> ReadOut:
        """Return normalized EXIF metadata for a remote image.

        Always 200 once authorized; failures are reported as
        {"success": false, "data": "<message>"}.

        """

        result = service.read(sanitize_url(url))
        request.state.lookup_success = result.success
        request.state.cache_hit = result.cached
        return ReadOut(success=result.success, data=result.data)

    return app


def app_from_env() -> FastAPI:
    """Factory used by Uvicorn entrypoints.

    Reads:
    - REDE_DB_PATH: optional SQLite database path

    """

    db_path = os.environ.get("REDE_DB_PATH", "").strip() or None
    return create_app(db_path=db_path)
