from __future__ import annotations

from typing import Any, Dict, Optional, Union

from pydantic import BaseModel


class ApiError(BaseModel):
    """Error payload for transport-level failures (e.g. 401)."""

    detail: str


class ReadOut(BaseModel):
    """Lookup envelope: normalized record on success, a message otherwise."""

    success: bool
    data: Union[Dict[str, Any], str]


class HealthOut(BaseModel):
    ok: bool
    db: Optional[str] = None
    extractor: bool
    api_keys_configured: int = 0
