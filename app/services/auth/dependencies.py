"""FastAPI dependencies for authentication."""
from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from app.database import get_db
from app.models.user import User
from app.services.auth import get_auth_provider
from app.services.auth.local_provider import bearer_token


async def get_current_user(
    request: Request,
    db: Session = Depends(get_db)
) -> User:
    """
    Get the currently authenticated user.

    Raises 401 if not authenticated. Browser requests are turned into a
    redirect to the login page by the app-level exception handler.
    """
    auth_provider = get_auth_provider()
    user = await auth_provider.get_user_from_request(db, request)

    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated"
        )

    return user


async def get_optional_user(
    request: Request,
    db: Session = Depends(get_db)
) -> Optional[User]:
    """
    Get the current user if authenticated, None otherwise.

    Use for pages that work differently for logged in vs logged out users.
    """
    auth_provider = get_auth_provider()
    return await auth_provider.get_user_from_request(db, request)


async def get_bearer_user(
    request: Request,
    db: Session = Depends(get_db)
) -> User:
    """
    Authenticate strictly via "Authorization: Bearer <session token>".

    Used by the function-style JSON endpoints, which are called cross-origin
    and never see the session cookie.
    """
    token = bearer_token(request)
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing authorization header"
        )

    user = await get_auth_provider().get_user_from_token(db, token)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token"
        )

    return user
