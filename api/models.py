"""
API request and response models for wwwbase JSON endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py and
records/models.py, which own the internal domain representation. Route
handlers map between the two.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict

from records.models import Record

# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------


class RecordResponse(BaseModel):
    """A record as seen by the requesting identity."""

    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    content: str
    public: bool
    owner: str
    editable: bool = False

    @classmethod
    def from_record(cls, record: Record, editable: bool = False) -> "RecordResponse":
        return cls(
            id=record.id,
            name=record.name,
            content=record.content,
            public=record.public,
            owner=record.owner,
            editable=editable,
        )


class RecordListResponse(BaseModel):
    """Response for GET /api/v1/records."""

    model_config = ConfigDict(frozen=True)

    connected: bool
    nick: Optional[str] = None
    records: list[RecordResponse]


# ---------------------------------------------------------------------------
# Errors / health
# ---------------------------------------------------------------------------


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str]
