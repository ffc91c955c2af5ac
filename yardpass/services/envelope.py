"""
Response and error envelopes returned by orchestrated operations.
"""

from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class ErrorEnvelope(BaseModel):
    """Uniform error shape."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    code: str
    message: str
    details: Any = None
    timestamp: str = Field(default_factory=_now_iso)
    context: str | None = None
    operation: str | None = None


class ResponseMeta(BaseModel):
    """Pagination and count metadata. Extra keys are kept."""

    model_config = ConfigDict(frozen=True, extra="allow")

    total: int | None = None
    page: int | None = None
    limit: int | None = None
    has_more: bool | None = None
    cursor: str | None = None


class ResponseEnvelope(BaseModel):
    """Result of one orchestrated operation: data or error, plus meta."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    data: Any = None
    error: ErrorEnvelope | None = None
    meta: ResponseMeta = Field(default_factory=ResponseMeta)
    timestamp: str = Field(default_factory=_now_iso)
    from_cache: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None


def format_response(
    data: Any,
    meta: ResponseMeta | dict[str, Any] | None = None,
    from_cache: bool = False,
) -> ResponseEnvelope:
    """Wrap data in a ResponseEnvelope."""
    if isinstance(meta, dict):
        meta = ResponseMeta(**meta)
    return ResponseEnvelope(
        data=data,
        meta=meta or ResponseMeta(),
        from_cache=from_cache,
    )
