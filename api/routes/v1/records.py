"""
api/routes/v1/records.py -- JSON view of the records visible to the caller.

Routes:
  GET /api/v1/records  -- records the session's identity may see (public only
                          when anonymous)

The caller is identified exactly like the HTML pages: the session cookie goes
through the auth gate, so an authenticated call rotates the token and the
response carries the updated cookie. Clients must keep their cookie jar.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from api.models import RecordListResponse, RecordResponse
from auth.dependencies import get_identity
from auth.models import User
from records.access import AccessPolicy

router = APIRouter()


@router.get("/records", response_model=RecordListResponse)
def list_records(request: Request, user: User | None = Depends(get_identity)) -> RecordListResponse:
    """List visible records in insertion order, flagging those the caller may edit."""
    policy: AccessPolicy = request.app.state.records
    records = policy.list_visible(user)
    return RecordListResponse(
        connected=user is not None,
        nick=user.nick if user else None,
        records=[
            RecordResponse.from_record(r, editable=user is not None and policy.owns(user.id, r.id)) for r in records
        ],
    )
