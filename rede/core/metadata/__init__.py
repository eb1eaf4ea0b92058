"""EXIF metadata canonicalization.

Turns loosely-typed records produced by the metadata extractor (rational
strings, EXIF timestamps, DMS coordinates, binary noise) into clean records
suitable for JSON responses and caching.

Security notes:
- Never assume source metadata is well-formed or benign.
- Keep transforms deterministic and strictly bounded.
"""

from .gps import dms_to_decimal
from .normalizer import CAPTURE_TIME_FIELDS, normalize_metadata
from .rational import parse_rational
from .sanitizer import sanitize_value

__all__ = [
    "parse_rational",
    "dms_to_decimal",
    "sanitize_value",
    "normalize_metadata",
    "CAPTURE_TIME_FIELDS",
]
