"""Shared-key guard for server-to-server sync triggers."""

from __future__ import annotations

import hmac

from fastapi import HTTPException, Request

from .config import settings


def _extract_key(request: Request) -> str:
    auth = request.headers.get("authorization", "")
    if auth.lower().startswith("bearer "):
        return auth[7:].strip()
    return request.headers.get("x-sync-key", "").strip()


def require_sync_key(request: Request) -> None:
    """Enforce the sync key when one is configured."""
    expected = settings.sync_api_key.strip()
    if not expected:
        return

    provided = _extract_key(request)
    if not provided or not hmac.compare_digest(provided, expected):
        raise HTTPException(status_code=401, detail="Invalid sync key")
