import json

import rede.client.http as http_mod
from conftest import FIXED_TIME, TEST_SECRET_B32, TEST_SECRET_BYTES, reference_totp
from rede.client import RedeHttpClient


class _Resp:
    def __init__(self, status, body):
        self.status = status
        self.headers = {"content-type": "application/json"}
        self._body = body

    def read(self):
        return self._body

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False


def test_api_key_takes_precedence():
    c = RedeHttpClient("http://localhost:8080", api_key="k1", totp_secret=TEST_SECRET_B32)
    assert c._auth_headers() == {"X-Rede-API-Key": "k1"}


def test_totp_header_is_derived_from_secret(monkeypatch):
    monkeypatch.setattr(http_mod.time, "time", lambda: float(FIXED_TIME))
    c = RedeHttpClient("http://localhost:8080", totp_secret=TEST_SECRET_B32)
    assert c._auth_headers() == {"Authorization": "TOTP " + reference_totp(TEST_SECRET_BYTES, FIXED_TIME)}


def test_no_credentials_sends_no_auth_header():
    assert RedeHttpClient("http://localhost:8080")._auth_headers() == {}


def test_read_builds_encoded_query(monkeypatch):
    seen = {}

    def fake_urlopen(req, timeout=None, context=None):
        seen["url"] = req.full_url
        seen["key"] = req.get_header("X-rede-api-key")
        return _Resp(200, json.dumps({"success": True, "data": {"Make": "Canon"}}).encode())

    monkeypatch.setattr(http_mod, "urlopen", fake_urlopen)
    r = RedeHttpClient("http://localhost:8080/", api_key="k1").read("https://example.com/a b.jpg")
    assert r.status == 200
    assert r.json()["data"] == {"Make": "Canon"}
    assert seen["url"] == "http://localhost:8080/exif-data/v1/read?url=https%3A%2F%2Fexample.com%2Fa+b.jpg"
    assert seen["key"] == "k1"
