from __future__ import annotations

import io
import logging
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Protocol

import piexif
from PIL import Image

from .image_type import sniff_image_mime

log = logging.getLogger("rede.sources")

# piexif IFD name -> piexif.TAGS section
_IFD_SECTIONS = (("0th", "Image"), ("Exif", "Exif"), ("GPS", "GPS"), ("Interop", "Interop"))
_RATIONAL_TYPES = frozenset({piexif.TYPES.Rational, piexif.TYPES.SRational})
_TEXT_TYPES = frozenset({piexif.TYPES.Ascii})


@dataclass(frozen=True, slots=True)
class ExtractionResult:
    """Outcome of metadata extraction: a raw record, or not found."""

    record: Optional[Dict[str, Any]] = None

    @property
    def found(self) -> bool:
        return self.record is not None


NOT_FOUND = ExtractionResult()


class MetadataExtractor(Protocol):
    def available(self) -> bool:
        """Return False if the extraction capability is missing at runtime."""
        ...

    def extract(self, data: bytes) -> ExtractionResult:
        """Extract a raw metadata record. Never raises on malformed input."""
        ...


def _decode_text(raw: bytes, *, textual: bool) -> str:
    if textual:
        try:
            return raw.decode("utf-8")
        except UnicodeDecodeError:
            pass
    return raw.decode("latin-1")


def _rational_text(pair: Any) -> str:
    num, den = pair
    return f"{int(num)}/{int(den)}"


def _to_raw_value(value: Any, tag_type: Optional[int]) -> Any:
    """Convert a piexif value into the raw record vocabulary (int, str, list)."""

    if tag_type in _RATIONAL_TYPES and isinstance(value, tuple) and value:
        if isinstance(value[0], tuple):
            return [_rational_text(p) for p in value]
        if len(value) == 2:
            return _rational_text(value)
    if isinstance(value, bytes):
        return _decode_text(value, textual=tag_type in _TEXT_TYPES)
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return repr(value)
    if isinstance(value, (tuple, list)):
        return [_to_raw_value(v, None) for v in value]
    return str(value)


def flatten_exif(exif: Mapping[str, Any]) -> Dict[str, Any]:
    """Flatten piexif IFDs into one name-keyed record.

    Unknown tags are named "UndefinedTag:0xNNNN". Thumbnails and the
    first-image IFD are skipped.

    """

    out: Dict[str, Any] = {}
    for ifd_name, section in _IFD_SECTIONS:
        ifd = exif.get(ifd_name) or {}
        known = piexif.TAGS.get(section, {})
        for tag, value in ifd.items():
            info = known.get(tag)
            name = info["name"] if info else f"UndefinedTag:0x{int(tag):04X}"
            out[name] = _to_raw_value(value, info["type"] if info else None)
    return out


def _check_pixels(img: Image.Image) -> None:
    """Refuse images above Pillow's pixel budget instead of decoding them."""

    limit = Image.MAX_IMAGE_PIXELS
    if limit is not None and img.width * img.height > limit:
        raise Image.DecompressionBombError(
            f"{img.width}x{img.height} exceeds {limit} pixels"
        )


def _exif_block(data: bytes, mime: Optional[str]) -> Optional[bytes]:
    if mime == "image/tiff":
        # piexif reads the TIFF header directly.
        return data
    with Image.open(io.BytesIO(data)) as img:
        _check_pixels(img)
        block = img.info.get("exif")
    return block or None


@dataclass(frozen=True, slots=True)
class PiexifExtractor:
    """Extract EXIF from image bytes (Pillow locates the block, piexif decodes it).

    Output mirrors a flattened exif_read_data() record: tag-name keys plus
    FileSize, MimeType and COMPUTED {Width, Height}.

    Security notes:
    - Any decoder exception collapses to NOT_FOUND; diagnostics are logged
      at DEBUG only.
    - Images over Image.MAX_IMAGE_PIXELS are refused before decoding. No
      process-wide warning filters are touched, so concurrent calls are safe.

    """

    enabled: bool = True
    include_computed: bool = True

    def available(self) -> bool:
        return bool(self.enabled)

    def extract(self, data: bytes) -> ExtractionResult:
        mime = sniff_image_mime(data)
        try:
            block = _exif_block(data, mime)
            if not block:
                return NOT_FOUND
            record = flatten_exif(piexif.load(block))
            if not record:
                return NOT_FOUND
            if self.include_computed:
                record.update(self._file_fields(data, mime))
        except Exception as e:
            # Malformed metadata is reported as "not found", never as a fault.
            log.debug("exif_extract_failed", extra={"mime_type": mime, "error": type(e).__name__})
            return NOT_FOUND
        return ExtractionResult(record=record)

    @staticmethod
    def _file_fields(data: bytes, mime: Optional[str]) -> Dict[str, Any]:
        fields: Dict[str, Any] = {"FileSize": len(data)}
        if mime:
            fields["MimeType"] = mime
        with Image.open(io.BytesIO(data)) as img:
            _check_pixels(img)
            fields["COMPUTED"] = {"Width": int(img.width), "Height": int(img.height)}
        return fields
