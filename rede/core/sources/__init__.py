"""Collaborators that feed the metadata core: fetching, type checks, extraction.

Security notes:
- Remote bytes are untrusted. Only bounded sniffing and decoder calls happen here.
"""

from .extractor import NOT_FOUND, ExtractionResult, MetadataExtractor, PiexifExtractor, flatten_exif
from .fetcher import FetchError, ResourceFetcher, UrlFetcher
from .image_type import is_image, sniff_image_mime

__all__ = [
    "FetchError",
    "ResourceFetcher",
    "UrlFetcher",
    "is_image",
    "sniff_image_mime",
    "ExtractionResult",
    "MetadataExtractor",
    "PiexifExtractor",
    "NOT_FOUND",
    "flatten_exif",
]
