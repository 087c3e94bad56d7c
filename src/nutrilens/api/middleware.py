"""API key check for the /api/v1 routes.

Mobile clients send the key either as ``Authorization: Bearer <key>`` or in
an ``X-API-Key`` header. The Bearer token wins when both are present.
"""

from __future__ import annotations

import logging
import secrets
from typing import TYPE_CHECKING, Annotated

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import APIKeyHeader, HTTPAuthorizationCredentials, HTTPBearer

if TYPE_CHECKING:
    from nutrilens.config import Settings

logger = logging.getLogger(__name__)

API_KEY_HEADER = "X-API-Key"

_bearer_scheme = HTTPBearer(auto_error=False)
_header_scheme = APIKeyHeader(name=API_KEY_HEADER, auto_error=False)


def _supplied_key(
    credentials: HTTPAuthorizationCredentials | None,
    header_key: str | None,
) -> str | None:
    if credentials is not None:
        return credentials.credentials
    return header_key or None


async def verify_api_key(
    request: Request,
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(_bearer_scheme)],
    header_key: Annotated[str | None, Depends(_header_scheme)],
) -> None:
    """Reject the request unless it carries NUTRILENS_API_KEY.

    Without a configured key every request passes.
    """
    settings: Settings = request.app.state.settings
    if settings.api_key is None:
        return

    supplied = _supplied_key(credentials, header_key)
    if supplied is None:
        logger.warning("Rejected %s %s: no API key", request.method, request.url.path)
    elif not secrets.compare_digest(supplied.encode(), settings.api_key.encode()):
        logger.warning("Rejected %s %s: wrong API key", request.method, request.url.path)
    else:
        return

    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=f"Invalid or missing API key (send 'Authorization: Bearer <key>' or '{API_KEY_HEADER}')",
        headers={"WWW-Authenticate": "Bearer"},
    )
