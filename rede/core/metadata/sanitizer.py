from __future__ import annotations

import math
import re
from typing import Any, Mapping

from .rational import parse_rational

_RATIONAL_RE = re.compile(r"^\d+(\.\d+)?/\d+(\.\d+)?$")
_EXIF_DATETIME_RE = re.compile(r"^(\d{4}):(\d{2}):(\d{2}) (\d{2}:\d{2}:\d{2})$")
_CONTROL_RE = re.compile(r"[\x00-\x1f]")


def _sanitize_text(text: str) -> Any:
    # Binary payloads (MakerNote, padded UNDEFINED tags) are never surfaced.
    if _CONTROL_RE.search(text):
        return None

    trimmed = text.strip()
    if trimmed == "":
        return None

    if _RATIONAL_RE.match(trimmed):
        return parse_rational(trimmed)

    m = _EXIF_DATETIME_RE.match(trimmed)
    if m:
        year, month, day, clock = m.groups()
        return f"{year}-{month}-{day}T{clock}"

    return trimmed


def sanitize_value(value: Any) -> Any:
    """Canonicalize one raw metadata value.

    Rules:
    - list/tuple: sanitized element-wise (positions kept, absent elements become None)
    - mapping: sanitized value-wise
    - int: unchanged
    - str: control characters or blank -> None, "N/D" -> float,
      "YYYY:MM:DD HH:MM:SS" -> "YYYY-MM-DDTHH:MM:SS", otherwise trimmed

    Returns None when the value has no canonical form.

    Security notes:
    - Values are attacker-controlled; the transform is bounded by input size.

    """

    if isinstance(value, Mapping):
        return {str(k): sanitize_value(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [sanitize_value(v) for v in value]
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return value if math.isfinite(value) else None
    if isinstance(value, str):
        return _sanitize_text(value)
    return None
