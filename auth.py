"""Caller identity for the HTTP layer.

Authentication itself happens upstream (an auth proxy or the session-cookie
layer). Once it has verified the caller it forwards the identity in headers:

    X-User-Id          - stable user id (required when AUTH_ENABLED=true)
    X-User-Email       - optional
    X-User-First-Name  - optional
    X-User-Last-Name   - optional

With auth disabled (local dev / single-user mode) every request acts as
``settings.local_user_id``. Either way the user row is upserted so session
listings and the CSV export can show the owner's name.
"""
from __future__ import annotations

from typing import Annotated, Optional

import structlog
from fastapi import Depends, Header, HTTPException, status

import schemas
from settings import Settings, get_settings
from storage import Storage, get_storage

logger = structlog.get_logger(__name__)


def get_current_user(
    settings: Annotated[Settings, Depends(get_settings)],
    storage: Annotated[Storage, Depends(get_storage)],
    x_user_id: Annotated[Optional[str], Header()] = None,
    x_user_email: Annotated[Optional[str], Header()] = None,
    x_user_first_name: Annotated[Optional[str], Header()] = None,
    x_user_last_name: Annotated[Optional[str], Header()] = None,
) -> schemas.User:
    if not settings.auth_enabled:
        user_id = x_user_id or settings.local_user_id
    elif not x_user_id:
        logger.warning("Rejected request without caller identity")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
    else:
        user_id = x_user_id

    profile = {
        field: value
        for field, value in (
            ("email", x_user_email),
            ("first_name", x_user_first_name),
            ("last_name", x_user_last_name),
        )
        if value is not None
    }
    existing = storage.get_user(user_id)
    if existing is not None and not profile:
        return existing
    # Only the headers actually sent are refreshed; the rest of the profile is kept
    return storage.upsert_user(schemas.User(id=user_id, **profile))
