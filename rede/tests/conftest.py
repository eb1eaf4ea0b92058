from __future__ import annotations

import hashlib
import hmac
import io
import struct
from typing import Callable, Dict, List, Optional

import piexif
import pytest
from PIL import Image

from rede.core.sources import FetchError

TEST_SECRET_B32 = "JBSWY3DPEHPK3PXP"
TEST_SECRET_BYTES = b"Hello!\xde\xad\xbe\xef"
FIXED_TIME = 1_700_000_000


def reference_totp(secret: bytes, timestamp: float) -> str:
    """Independent RFC 6238 implementation for expected values."""

    counter = int(timestamp // 30)
    digest = hmac.new(secret, struct.pack(">Q", counter), hashlib.sha1).digest()
    offset = digest[19] & 0x0F
    code = (
        ((digest[offset] & 0x7F) << 24)
        | (digest[offset + 1] << 16)
        | (digest[offset + 2] << 8)
        | digest[offset + 3]
    ) % 1_000_000
    return f"{code:06d}"


def make_jpeg(exif: Optional[Dict] = None, size=(8, 6)) -> bytes:
    """Encode a small RGB JPEG, optionally with an EXIF block."""

    buf = io.BytesIO()
    img = Image.new("RGB", size, (200, 30, 30))
    if exif is not None:
        img.save(buf, format="JPEG", exif=piexif.dump(exif))
    else:
        img.save(buf, format="JPEG")
    return buf.getvalue()


def sample_exif() -> Dict:
    return {
        "0th": {
            piexif.ImageIFD.Make: b"Canon",
            piexif.ImageIFD.Model: b"EOS 5D Mark IV",
            piexif.ImageIFD.DateTime: b"2024:01:16 10:00:00",
        },
        "Exif": {
            piexif.ExifIFD.DateTimeOriginal: b"2024:01:15 14:30:22",
            piexif.ExifIFD.FNumber: (28, 10),
            piexif.ExifIFD.ISOSpeedRatings: 400,
        },
        "GPS": {
            piexif.GPSIFD.GPSLatitudeRef: b"N",
            piexif.GPSIFD.GPSLatitude: ((48, 1), (51, 1), (30, 1)),
            piexif.GPSIFD.GPSLongitudeRef: b"E",
            piexif.GPSIFD.GPSLongitude: ((2, 1), (21, 1), (5, 1)),
            piexif.GPSIFD.GPSAltitudeRef: 1,
            piexif.GPSIFD.GPSAltitude: (50, 1),
        },
    }


class FakeFetcher:
    """Returns canned bytes (or raises FetchError) and records requested URLs."""

    def __init__(self, body: bytes = b"", error: Optional[str] = None):
        self.body = body
        self.error = error
        self.calls: List[str] = []

    def fetch(self, url: str) -> bytes:
        self.calls.append(url)
        if self.error is not None:
            raise FetchError(self.error)
        return self.body


@pytest.fixture
def jpeg_with_exif() -> bytes:
    return make_jpeg(sample_exif())


@pytest.fixture
def totp_code() -> Callable[[float], str]:
    return lambda ts: reference_totp(TEST_SECRET_BYTES, ts)
