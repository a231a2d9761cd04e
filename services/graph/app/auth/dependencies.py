"""
Graph service — auth-specific FastAPI dependencies.

Routes import from here, not from shared directly.
"""
from __future__ import annotations

from fastapi import Depends, HTTPException, status

from shared.auth.dependencies import get_current_user_required
from shared.models.user import CurrentUser

get_current_user = get_current_user_required


def require_admin(
    current_user: CurrentUser = Depends(get_current_user),
) -> CurrentUser:
    if not current_user.is_staff:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Administrator access required.",
        )
    return current_user


def require_service(
    current_user: CurrentUser = Depends(get_current_user),
) -> CurrentUser:
    """403 unless the token was minted for another backend service."""
    if not current_user.is_service:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Service credentials required.",
        )
    return current_user
