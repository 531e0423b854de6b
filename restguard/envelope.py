"""
Response envelope models.

Every response body, success or failure, is an :class:`Envelope` with the same
four top-level keys: ``success``, ``data``, ``error`` and ``meta``.
"""

from datetime import datetime, timezone
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field


def utc_timestamp(moment: Optional[datetime] = None) -> str:
    """ISO-8601 UTC timestamp with millisecond precision, e.g. ``2024-01-01T00:00:00.000Z``."""
    moment = moment or datetime.now(timezone.utc)
    return moment.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class Meta(BaseModel):
    """Per-response metadata."""

    model_config = ConfigDict(populate_by_name=True)

    timestamp: str = Field(..., description="Time the response was produced (ISO-8601, UTC)")
    request_id: str = Field(..., alias="requestId", description="Identifier shared by logs and response")


class FieldError(BaseModel):
    """A single failed field from schema validation."""

    field: str
    message: str


class ErrorBody(BaseModel):
    """Error part of a failed envelope.

    ``details`` is a list of :class:`FieldError` for validation failures, a
    small mapping for other kinds (e.g. ``{"retryAfter": 3}``), or null.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "code": "VALIDATION_ERROR",
                "message": "Validation failed",
                "details": [{"field": "password", "message": "String should have at least 6 characters"}],
            }
        }
    )

    code: str = Field(..., description="Error kind")
    message: str = Field(..., description="Human-readable, client-safe message")
    details: Optional[Any] = Field(None, description="Structured detail for the error kind")


class Envelope(BaseModel):
    """The single wire shape of every response."""

    success: bool
    data: Any = None
    error: Optional[ErrorBody] = None
    meta: Meta

    @classmethod
    def ok(cls, data: Any, request_id: str, timestamp: Optional[str] = None) -> "Envelope":
        return cls(success=True, data=data, error=None, meta=Meta(timestamp=timestamp or utc_timestamp(), request_id=request_id))

    @classmethod
    def failure(
        cls,
        code: str,
        message: str,
        request_id: str,
        details: Any = None,
        timestamp: Optional[str] = None,
    ) -> "Envelope":
        if isinstance(details, list) and details and all(isinstance(d, dict) and "field" in d for d in details):
            details = [FieldError(**d) for d in details]
        return cls(
            success=False,
            data=None,
            error=ErrorBody(code=code, message=message, details=details),
            meta=Meta(timestamp=timestamp or utc_timestamp(), request_id=request_id),
        )

    def to_json(self) -> bytes:
        """Serialize with wire (camelCase) field names."""
        return self.model_dump_json(by_alias=True).encode("utf-8")


ENVELOPE_KEYS: List[str] = ["success", "data", "error", "meta"]
