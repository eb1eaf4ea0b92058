from __future__ import annotations

import io
import logging
from typing import Optional

from PIL import Image, UnidentifiedImageError

log = logging.getLogger("rede.sources")

SNIFF_PREFIX_BYTES = 512


def sniff_image_mime(data: bytes) -> Optional[str]:
    """Detect an image MIME type from common magic headers.

    Security notes:
    - Reads at most SNIFF_PREFIX_BYTES of the body.

    """

    prefix = bytes(data[:SNIFF_PREFIX_BYTES])
    if prefix.startswith(b"\xff\xd8\xff"):
        return "image/jpeg"
    if prefix.startswith(b"\x89PNG\r\n\x1a\n"):
        return "image/png"
    if prefix.startswith(b"GIF87a") or prefix.startswith(b"GIF89a"):
        return "image/gif"
    if prefix.startswith(b"II*\x00") or prefix.startswith(b"MM\x00*"):
        return "image/tiff"
    if prefix[:4] == b"RIFF" and prefix[8:12] == b"WEBP":
        return "image/webp"
    if prefix.startswith(b"BM"):
        return "image/bmp"
    if prefix[4:8] == b"ftyp":
        brand = prefix[8:12]
        if brand in {b"heic", b"heix", b"mif1", b"msf1"}:
            return "image/heic"
        if brand in {b"avif", b"avis"}:
            return "image/avif"
    return None


def is_image(data: bytes) -> bool:
    """Return True if the bytes carry a recognised image header.

    Pillow confirms formats it can decode; HEIC/AVIF are accepted on the
    header alone since Pillow may lack the plugin.

    """

    mime = sniff_image_mime(data)
    if mime is None:
        return False
    if mime in {"image/heic", "image/avif"}:
        return True
    try:
        with Image.open(io.BytesIO(data)) as img:
            return bool(img.format)
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as e:
        log.debug("image_identify_failed", extra={"mime_type": mime, "error": type(e).__name__})
        return False
