from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional, Union
from urllib.parse import unquote

from rede.core.metadata import normalize_metadata
from rede.core.sources import FetchError, MetadataExtractor, ResourceFetcher, is_image
from rede.core.storage import KeyValueCache, cache_key_for_url

log = logging.getLogger("rede.lookup")

NOT_AN_IMAGE_MESSAGE = "URL does not point to a valid image."
EXIF_NOT_FOUND_MESSAGE = "EXIF Not Found for image"
EXTRACTOR_UNAVAILABLE_MESSAGE = "exif_read_data function not found!"


@dataclass(frozen=True, slots=True)
class LookupResult:
    """Tagged lookup outcome: normalized record on success, message on failure.

    `cached` is diagnostic only and is not part of the response envelope.
    """

    success: bool
    data: Union[Dict[str, Any], str]
    cached: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {"success": self.success, "data": self.data}


def sanitize_url(url: Optional[str]) -> str:
    """Percent-decode the url query parameter and strip whitespace."""

    return unquote(url or "").strip()


@dataclass(slots=True)
class ExifLookupService:
    """Fetch a remote image and return its normalized EXIF record.

    Order: cache -> extractor capability -> fetch -> image check -> extract
    -> normalize -> cache write. Only successful lookups are cached.

    Security notes:
    - Collaborator diagnostics are logged, never returned; responses carry
      only the fixed messages above or the fetcher's own message.

    """

    fetcher: ResourceFetcher
    extractor: Optional[MetadataExtractor]
    cache: KeyValueCache
    image_check: Callable[[bytes], bool] = field(default=is_image)

    def read(self, url: str) -> LookupResult:
        key = cache_key_for_url(url)
        cached = self.cache.get(key)
        if cached is not None:
            log.debug("exif_cache_hit", extra={"cache_key": key})
            return LookupResult(success=True, data=cached, cached=True)

        if self.extractor is None or not self.extractor.available():
            log.warning("exif_extractor_unavailable")
            return LookupResult(success=False, data=EXTRACTOR_UNAVAILABLE_MESSAGE)

        try:
            body = self.fetcher.fetch(url)
        except FetchError as e:
            return LookupResult(success=False, data=str(e))

        if not self.image_check(body):
            return LookupResult(success=False, data=NOT_AN_IMAGE_MESSAGE)

        extracted = self.extractor.extract(body)
        if not extracted.found:
            return LookupResult(success=False, data=EXIF_NOT_FOUND_MESSAGE)

        normalized = normalize_metadata(extracted.record or {})
        self.cache.set(key, normalized)
        log.info(
            "exif_lookup_ok",
            extra={"cache_key": key, "field_count": len(normalized), "size_bytes": len(body)},
        )
        return LookupResult(success=True, data=normalized)
