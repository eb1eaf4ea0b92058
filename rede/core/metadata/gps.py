from __future__ import annotations

from typing import Any, Optional, Sequence

from .rational import parse_rational

NEGATIVE_HEMISPHERES = frozenset({"S", "W"})


def dms_to_decimal(dms: Sequence[Any], ref: Any) -> Optional[float]:
    """Convert a degrees/minutes/seconds triple to signed decimal degrees.

    Args:
      dms: three rational strings, e.g. ["48/1", "51/1", "30/1"]
      ref: hemisphere letter N/S/E/W (case-insensitive)

    Returns the value rounded to 6 decimal places, or None if the triple is
    not exactly three parseable parts.

    """

    if isinstance(dms, (str, bytes)) or len(dms) != 3:
        return None

    parts = []
    for raw in dms:
        if isinstance(raw, bool) or not isinstance(raw, (str, int)):
            return None
        value = parse_rational(str(raw))
        if value is None:
            return None
        parts.append(value)

    degrees, minutes, seconds = parts
    decimal = degrees + minutes / 60.0 + seconds / 3600.0

    if isinstance(ref, str) and ref.strip().upper() in NEGATIVE_HEMISPHERES:
        decimal = -decimal

    return round(decimal, 6)
