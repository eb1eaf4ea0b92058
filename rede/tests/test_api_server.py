from __future__ import annotations

import hashlib
import logging

from fastapi.testclient import TestClient

from conftest import FIXED_TIME, TEST_SECRET_B32, FakeFetcher, make_jpeg, reference_totp, TEST_SECRET_BYTES
from rede.core.otp import TOTP_SECRET_NAME
from rede.core.sources import PiexifExtractor
from rede.core.storage import InMemoryCache, InMemorySecretStore

URL = "https://example.com/photo.jpg"
READ = "/exif-data/v1/read"


def _client(monkeypatch, fetcher, *, extractor=None, cache=None, secrets=None):
    monkeypatch.setenv("REDE_API_KEYS", "testkey:alice")
    monkeypatch.delenv("REDE_DB_PATH", raising=False)

    from rede.api.server import create_app

    app = create_app(
        fetcher=fetcher,
        extractor=extractor,
        cache=cache if cache is not None else InMemoryCache(),
        secret_store=secrets if secrets is not None else InMemorySecretStore({TOTP_SECRET_NAME: TEST_SECRET_B32}),
        clock=lambda: FIXED_TIME,
    )
    return TestClient(app)


def test_read_with_api_key_returns_normalized_exif(monkeypatch, jpeg_with_exif):
    """API smoke test: host-session key -> fetch -> extract -> normalize -> cache."""

    cache = InMemoryCache()
    fetcher = FakeFetcher(jpeg_with_exif)
    client = _client(monkeypatch, fetcher, cache=cache)

    r = client.get(READ, params={"url": URL}, headers={"X-Rede-API-Key": "testkey"})
    assert r.status_code == 200
    assert r.headers.get("x-request-id")
    body = r.json()
    assert body["success"] is True
    assert body["data"]["Make"] == "Canon"
    assert body["data"]["GPSDecimalAltitude"] == -50.0
    assert body["data"]["CapturedAt"] == "2024-01-15T14:30:22"
    assert fetcher.calls == [URL]

    key = hashlib.md5(("exif-json:" + URL).encode()).hexdigest()
    assert cache.get(key)["Make"] == "Canon"

    # Second call is served from cache.
    r2 = client.get(READ, params={"url": URL}, headers={"X-Rede-API-Key": "testkey"})
    assert r2.json() == body
    assert fetcher.calls == [URL]


def test_read_with_valid_totp(monkeypatch, jpeg_with_exif):
    client = _client(monkeypatch, FakeFetcher(jpeg_with_exif))
    code = reference_totp(TEST_SECRET_BYTES, FIXED_TIME - 30)

    r = client.get(READ, params={"url": URL}, headers={"Authorization": f"TOTP {code}"})
    assert r.status_code == 200
    assert r.json()["success"] is True


def test_auth_failures_are_generic_401_before_lookup(monkeypatch):
    fetcher = FakeFetcher(error="should not be called")
    client = _client(monkeypatch, fetcher)
    expired = reference_totp(TEST_SECRET_BYTES, FIXED_TIME - 90)

    for headers in (
        {},
        {"Authorization": "Bearer sometoken"},
        {"Authorization": "TOTP"},
        {"Authorization": f"TOTP {expired}"},
        {"X-Rede-API-Key": "wrongkey"},
    ):
        r = client.get(READ, params={"url": URL}, headers=headers)
        assert r.status_code == 401
        assert r.json() == {"detail": "Authentication required."}
        assert r.headers.get("www-authenticate") == "TOTP"

    assert fetcher.calls == []


def test_totp_secret_is_created_lazily(monkeypatch):
    secrets = InMemorySecretStore()
    client = _client(monkeypatch, FakeFetcher(b""), secrets=secrets)

    assert secrets.get(TOTP_SECRET_NAME) is None
    r = client.get(READ, params={"url": URL}, headers={"Authorization": "TOTP 123456"})
    assert r.status_code == 401
    created = secrets.get(TOTP_SECRET_NAME)
    assert created

    client.get(READ, params={"url": URL}, headers={"Authorization": "TOTP 654321"})
    assert secrets.get(TOTP_SECRET_NAME) == created


def test_url_parameter_is_percent_decoded(monkeypatch, jpeg_with_exif):
    fetcher = FakeFetcher(jpeg_with_exif)
    client = _client(monkeypatch, fetcher)

    r = client.get(
        READ,
        params={"url": "https%3A%2F%2Fexample.com%2Fphoto.jpg"},
        headers={"X-Rede-API-Key": "testkey"},
    )
    assert r.status_code == 200
    assert fetcher.calls == [URL]


def test_failure_envelopes(monkeypatch):
    headers = {"X-Rede-API-Key": "testkey"}

    client = _client(monkeypatch, FakeFetcher(error="Remote image returned HTTP 404."))
    assert client.get(READ, params={"url": URL}, headers=headers).json() == {
        "success": False,
        "data": "Remote image returned HTTP 404.",
    }

    client = _client(monkeypatch, FakeFetcher(b"fake-image-data"))
    assert client.get(READ, params={"url": URL}, headers=headers).json() == {
        "success": False,
        "data": "URL does not point to a valid image.",
    }

    client = _client(monkeypatch, FakeFetcher(make_jpeg()))
    assert client.get(READ, params={"url": URL}, headers=headers).json() == {
        "success": False,
        "data": "EXIF Not Found for image",
    }

    client = _client(monkeypatch, FakeFetcher(make_jpeg()), extractor=PiexifExtractor(enabled=False))
    assert client.get(READ, params={"url": URL}, headers=headers).json() == {
        "success": False,
        "data": "exif_read_data function not found!",
    }


def test_missing_url_uses_fetcher_message(monkeypatch):
    from rede.core.sources import UrlFetcher

    client = _client(monkeypatch, UrlFetcher())
    r = client.get(READ, headers={"X-Rede-API-Key": "testkey"})
    assert r.status_code == 200
    assert r.json() == {"success": False, "data": "A valid URL was not provided."}


def test_health_is_public(monkeypatch):
    client = _client(monkeypatch, FakeFetcher(b""))
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json() == {"ok": True, "db": None, "extractor": True, "api_keys_configured": 1}


def test_sqlite_backed_app_persists_cache_and_secret(monkeypatch, tmp_path, jpeg_with_exif):
    monkeypatch.setenv("REDE_API_KEYS", "testkey:alice")

    from rede.api.server import create_app

    db = tmp_path / "rede.db"
    fetcher = FakeFetcher(jpeg_with_exif)
    client = TestClient(create_app(db_path=str(db), fetcher=fetcher, clock=lambda: FIXED_TIME))
    r = client.get(READ, params={"url": URL}, headers={"X-Rede-API-Key": "testkey"})
    assert r.json()["success"] is True

    # A fresh app on the same DB serves the cached record without fetching.
    fetcher2 = FakeFetcher(error="should not be called")
    client2 = TestClient(create_app(db_path=str(db), fetcher=fetcher2, clock=lambda: FIXED_TIME))
    r2 = client2.get(READ, params={"url": URL}, headers={"X-Rede-API-Key": "testkey"})
    assert r2.json() == r.json()
    assert fetcher2.calls == []
    assert client2.get("/health").json()["db"] == str(db)


def _audit_records(caplog, message):
    return [r for r in caplog.records if r.name == "rede.api" and r.getMessage() == message]


def test_audit_log_records_auth_method_and_cache_hit(monkeypatch, caplog, jpeg_with_exif):
    caplog.set_level(logging.INFO, logger="rede.api")
    client = _client(monkeypatch, FakeFetcher(jpeg_with_exif))
    code = reference_totp(TEST_SECRET_BYTES, FIXED_TIME)

    client.get(READ, params={"url": URL}, headers={"X-Rede-API-Key": "testkey", "X-Request-ID": "req-1"})
    client.get(READ, params={"url": URL}, headers={"Authorization": f"TOTP {code}"})

    first, second = _audit_records(caplog, "exif_request")
    assert (first.request_id, first.auth_method, first.actor_id) == ("req-1", "api_key", "alice")
    assert (first.lookup_success, first.cache_hit) == (True, False)
    assert (second.auth_method, second.actor_id) == ("totp", "totp")
    assert (second.lookup_success, second.cache_hit) == (True, True)
    assert all(URL not in r.getMessage() and not hasattr(r, "url") for r in (first, second))


def test_audit_log_warns_on_rejected_credentials(monkeypatch, caplog):
    caplog.set_level(logging.INFO, logger="rede.api")
    client = _client(monkeypatch, FakeFetcher(b""))

    r = client.get(READ, params={"url": URL}, headers={"X-Request-ID": "bad id <script>"})
    assert r.status_code == 401
    rid = r.headers["x-request-id"]
    assert rid != "bad id <script>"

    (rejected,) = _audit_records(caplog, "exif_auth_rejected")
    assert rejected.levelno == logging.WARNING
    assert rejected.request_id == rid
    assert rejected.auth_method is None
    assert rejected.status_code == 401


def test_url_with_encoded_space_reaches_upstream_quoted(monkeypatch, jpeg_with_exif):
    import rede.core.sources.fetcher as fetcher_mod
    from rede.core.sources import UrlFetcher

    seen = []

    class _Resp:
        status = 200

        def read(self, n=-1):
            return jpeg_with_exif

        def __enter__(self):
            return self

        def __exit__(self, *exc):
            return False

    def fake_urlopen(req, timeout=None, context=None):
        seen.append(req.full_url)
        return _Resp()

    monkeypatch.setattr(fetcher_mod, "urlopen", fake_urlopen)
    client = _client(monkeypatch, UrlFetcher())
    r = client.get(
        READ,
        params={"url": "http://127.0.0.1:9/my%20photo.jpg"},
        headers={"X-Rede-API-Key": "testkey"},
    )
    assert r.status_code == 200
    assert r.json()["success"] is True
    assert seen == ["http://127.0.0.1:9/my%20photo.jpg"]


def test_dropped_connection_is_a_failure_envelope(monkeypatch):
    from http.client import RemoteDisconnected

    import rede.core.sources.fetcher as fetcher_mod
    from rede.core.sources import UrlFetcher

    def fake_urlopen(req, timeout=None, context=None):
        raise RemoteDisconnected("Remote end closed connection without response")

    monkeypatch.setattr(fetcher_mod, "urlopen", fake_urlopen)
    client = _client(monkeypatch, UrlFetcher())
    r = client.get(READ, params={"url": URL}, headers={"X-Rede-API-Key": "testkey"})
    assert r.status_code == 200
    assert r.json() == {"success": False, "data": "Remote image could not be retrieved."}
