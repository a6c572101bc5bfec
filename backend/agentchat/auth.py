"""Authentication utilities for Supabase JWT validation."""

from __future__ import annotations

import logging
import os
from functools import lru_cache
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from supabase import Client, create_client

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)


@lru_cache
def get_supabase_client() -> Optional[Client]:
    """Create the Supabase client once, or return None when it is not configured."""
    url = os.getenv("SUPABASE_URL")
    service_key = os.getenv("SUPABASE_SERVICE_KEY")
    if not (url and service_key):
        logger.warning("SUPABASE_URL or SUPABASE_SERVICE_KEY not set. Authentication will not work.")
        return None
    return create_client(url, service_key)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> str:
    """
    Validate the bearer token with Supabase and return the user ID.

    The user ID is the owner ID that scopes agents and API connections.

    Raises:
        HTTPException: If auth is not configured, or the token is missing or invalid
    """
    client = get_supabase_client()
    if client is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Authentication service not configured.",
        )
    if not credentials:
        raise _unauthorized("Missing authentication token")

    try:
        user_response = client.auth.get_user(credentials.credentials)
    except Exception as e:
        logger.error(f"Token validation error: {e}")
        raise _unauthorized("Token validation failed") from e

    user = user_response.user if user_response else None
    if not user or not user.id:
        raise _unauthorized("Invalid authentication token")
    return user.id
