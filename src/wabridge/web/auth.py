"""API key authentication for the bridge HTTP API.

Supports Header (X-API-Key) and query param (?api_key=xxx).
When no api_key is configured, authentication is skipped.
"""

from __future__ import annotations

import logging
import secrets
from typing import Optional

from fastapi import HTTPException, Request, status

logger = logging.getLogger(__name__)

_warned_no_key = False


def _get_configured_api_key(request: Request) -> str:
    """Return the api_key stored on the app, or empty string if not set."""
    return str(getattr(request.app.state, "api_key", "") or "")


def _extract_api_key(request: Request) -> Optional[str]:
    """Extract API key from header or query parameter."""
    key = request.headers.get("x-api-key")
    if key:
        return key
    key = request.query_params.get("api_key")
    if key:
        return key
    return None


async def verify_api_key(request: Request) -> None:
    """FastAPI dependency: verify API key for HTTP routes."""
    global _warned_no_key
    configured_key = _get_configured_api_key(request)
    if not configured_key:
        if not _warned_no_key:
            logger.warning("Web API key is not configured; all requests are allowed. "
                           "Set wabridge.web.api_key in config.yaml to enable authentication.")
            _warned_no_key = True
        return

    provided_key = _extract_api_key(request)
    if not provided_key or not secrets.compare_digest(provided_key, configured_key):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or missing API key",
        )
