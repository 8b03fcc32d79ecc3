"""Bearer-token guard for the call-data endpoints.

Transcripts, call summaries, dialogue sessions and the runtime config API
expose caller names and phone numbers, so they sit behind ``ADMIN_API_KEY``:

  key configured, token matches      → allowed
  key configured, token wrong/absent → 401
  no key, DEBUG=true                 → allowed (local testing)
  no key, DEBUG=false                → 403
"""

from __future__ import annotations

import logging

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from receptionist.config import settings

log = logging.getLogger("receptionist.auth")

_bearer_scheme = HTTPBearer(auto_error=False)


async def require_admin_token(
    credentials: HTTPAuthorizationCredentials | None = Depends(_bearer_scheme),
) -> None:
    """Dependency for routes that read call transcripts, sessions or runtime toggles."""
    key = settings.admin_api_key

    if not key:
        if settings.debug:
            return
        log.warning("Call-data request refused: ADMIN_API_KEY is not configured")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Call data is locked. Set ADMIN_API_KEY to read transcripts and sessions.",
        )

    if credentials is None or credentials.credentials != key:
        log.warning(
            "Call-data request refused: %s bearer token",
            "missing" if credentials is None else "invalid",
        )
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="A valid admin bearer token is required for call data.",
            headers={"WWW-Authenticate": "Bearer"},
        )
