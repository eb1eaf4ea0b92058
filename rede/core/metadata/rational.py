from __future__ import annotations

import re
from typing import Optional

# Plain decimal numerals only: no nan/inf, no digit separators.
_NUMERAL_RE = re.compile(r"^\s*[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?\s*$")


def _to_float(text: str) -> Optional[float]:
    if not _NUMERAL_RE.match(text):
        return None
    return float(text)


def parse_rational(text: str) -> Optional[float]:
    """Parse an EXIF rational string ("N/D") or a bare numeral into a float.

    Returns None when the text is not numeric or the denominator is zero.
    No rounding is applied; callers decide on precision.

    Security notes:
    - Input comes straight from image metadata and is untrusted.

    """

    if not isinstance(text, str):
        return None
    if "/" not in text:
        return _to_float(text)

    num_raw, den_raw = text.split("/", 1)
    num = _to_float(num_raw)
    den = _to_float(den_raw)
    if num is None or den is None:
        return None
    if den == 0.0:
        return None
    return num / den
