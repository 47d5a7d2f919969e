"""
Authentication Dependencies for the question bank admin API

Token verification lives upstream. This module only provides:
- An admin gate (shared bearer token, when ADMIN_API_TOKEN is set)
- Caller identity pass-through for "created by" attribution

Usage:
    @router.post("/jobs")
    def create(admin: AdminIdentity = Depends(get_admin_user)):
        ...
"""

import hmac
import logging
import os
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Header, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

logger = logging.getLogger(__name__)

# HTTP Bearer scheme for extracting tokens
security = HTTPBearer(auto_error=False)


@dataclass
class AdminIdentity:
    user_id: Optional[str] = None


def get_admin_token() -> Optional[str]:
    return os.getenv("ADMIN_API_TOKEN") or None


def get_caller_id(x_user_id: Optional[str] = Header(None)) -> Optional[str]:
    """Caller identity set by the upstream auth layer. Not verified here."""
    if x_user_id and x_user_id.strip():
        return x_user_id.strip()
    return None


async def get_admin_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    caller_id: Optional[str] = Depends(get_caller_id),
) -> AdminIdentity:
    """
    FastAPI dependency to require admin privileges.

    When ADMIN_API_TOKEN is unset the gate is open (local development).

    Raises:
        HTTPException: 401 if the token is missing, 403 if it does not match
    """
    expected = get_admin_token()
    if expected is None:
        return AdminIdentity(user_id=caller_id)

    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    # SECURITY: constant-time comparison
    if not hmac.compare_digest(credentials.credentials.encode(), expected.encode()):
        logger.warning(f"Rejected admin request with invalid token (user_id={caller_id})")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin privileges required",
        )

    return AdminIdentity(user_id=caller_id)
