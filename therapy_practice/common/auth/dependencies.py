"""
Authentication dependencies for the practice backend.

This module provides FastAPI dependencies for identifying the calling
therapist. Sign-in is handled by the identity provider in front of this
service; the bearer token it forwards is the therapist id.
"""

from fastapi import Header, HTTPException, status
from typing import Optional

from therapy_practice.common.logger import app_logger

logger = app_logger.getChild("auth")


def get_current_therapist_id(authorization: Optional[str] = Header(None)) -> str:
    """
    Get the current therapist ID from the authorization header.

    Args:
        authorization: Authorization header value

    Returns:
        Therapist ID string

    Raises:
        HTTPException: If authentication fails
    """
    if not authorization:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing authorization header"
        )

    try:
        # Extract token from "Bearer <token>"
        scheme, token = authorization.split()
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authorization header format"
        )

    if scheme.lower() != "bearer":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication scheme"
        )

    logger.debug("Authenticated request", extra={"data": {"therapist_id": token}})
    return token
