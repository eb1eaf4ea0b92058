from __future__ import annotations

from typing import Any, Dict, Mapping, Optional, Tuple

from .gps import dms_to_decimal
from .rational import parse_rational
from .sanitizer import sanitize_value

# Checked in order; the first string value wins.
CAPTURE_TIME_FIELDS: Tuple[str, ...] = ("DateTimeOriginal", "DateTimeDigitized", "DateTime")


def _decimal_coordinates(raw: Mapping[str, Any]) -> Optional[Tuple[float, float]]:
    lat, lat_ref = raw.get("GPSLatitude"), raw.get("GPSLatitudeRef")
    lon, lon_ref = raw.get("GPSLongitude"), raw.get("GPSLongitudeRef")
    if lat is None or lat_ref is None or lon is None or lon_ref is None:
        return None
    if not isinstance(lat, (list, tuple)) or not isinstance(lon, (list, tuple)):
        return None

    lat_dec = dms_to_decimal(lat, lat_ref)
    lon_dec = dms_to_decimal(lon, lon_ref)
    if lat_dec is None or lon_dec is None:
        return None
    return lat_dec, lon_dec


def _decimal_altitude(raw: Mapping[str, Any]) -> Optional[float]:
    altitude = raw.get("GPSAltitude")
    if not isinstance(altitude, str):
        return None
    value = parse_rational(altitude)
    if value is None:
        return None

    # GPSAltitudeRef 1 means below sea level.
    ref = raw.get("GPSAltitudeRef", 0)
    if ref == 1 or (isinstance(ref, str) and ref.strip() == "1"):
        return -value
    return value


def _captured_at(sanitized: Mapping[str, Any]) -> Optional[str]:
    for field in CAPTURE_TIME_FIELDS:
        value = sanitized.get(field)
        if isinstance(value, str):
            return value
    return None


def normalize_metadata(raw: Mapping[str, Any]) -> Dict[str, Any]:
    """Turn a raw EXIF record into a clean, JSON-safe record.

    Steps:
    1) sanitize every field (see sanitize_value)
    2) derive GPSDecimalLatitude / GPSDecimalLongitude / GPSDecimalAltitude
       from the raw record, so rational strings keep full precision
    3) copy the first available capture timestamp to CapturedAt
    4) drop fields that sanitized to nothing

    Malformed GPS or altitude fields only skip their derived field.
    The input mapping is never mutated.

    Security notes:
    - Deterministic and free of I/O; safe to call on untrusted records.

    """

    sanitized: Dict[str, Any] = {str(k): sanitize_value(v) for k, v in raw.items()}

    derived: Dict[str, Any] = {}
    coords = _decimal_coordinates(raw)
    if coords is not None:
        derived["GPSDecimalLatitude"], derived["GPSDecimalLongitude"] = coords

    altitude = _decimal_altitude(raw)
    if altitude is not None:
        derived["GPSDecimalAltitude"] = altitude

    captured_at = _captured_at(sanitized)
    if captured_at is not None:
        derived["CapturedAt"] = captured_at

    out = {k: v for k, v in sanitized.items() if v is not None}
    out.update(derived)
    return out
