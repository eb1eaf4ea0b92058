from __future__ import annotations

from typing import Dict

ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZ234567"
_LOOKUP: Dict[str, int] = {c: i for i, c in enumerate(ALPHABET)}


def b32encode(data: bytes) -> str:
    """Encode bytes as RFC 4648 base32 text without "=" padding.

    A trailing partial 5-bit group is filled with zero bits on the right.

    """

    out = []
    acc = 0
    bits = 0
    for byte in bytes(data):
        acc = ((acc << 8) | byte) & 0xFFFF
        bits += 8
        while bits >= 5:
            bits -= 5
            out.append(ALPHABET[(acc >> bits) & 0x1F])
    if bits:
        out.append(ALPHABET[(acc << (5 - bits)) & 0x1F])
    return "".join(out)


def b32decode(text: str) -> bytes:
    """Decode base32 text, tolerating lower case, padding and stray characters.

    Characters outside the alphabet are skipped; trailing bits that do not
    complete a byte are discarded.

    Security notes:
    - Never raises on malformed input; a truncated secret simply decodes short.

    """

    out = bytearray()
    acc = 0
    bits = 0
    for ch in (text or "").upper():
        value = _LOOKUP.get(ch)
        if value is None:
            continue
        acc = ((acc << 5) | value) & 0xFFFF
        bits += 5
        if bits >= 8:
            bits -= 8
            out.append((acc >> bits) & 0xFF)
    return bytes(out)
