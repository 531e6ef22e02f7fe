"""Abstract base class for authentication providers."""
from abc import ABC, abstractmethod
from typing import Optional

from fastapi import Request
from sqlalchemy.orm import Session as DBSession

from app.models.user import User


class AuthProvider(ABC):
    """
    Abstract authentication provider interface.

    Routes only talk to this interface, so the account backend can be
    swapped without touching them.
    """

    @abstractmethod
    async def authenticate(self, db: DBSession, email: str, password: str) -> Optional[User]:
        """
        Authenticate user with email and password.

        Returns User if credentials are valid, None otherwise.
        """
        pass

    @abstractmethod
    async def create_user(self, db: DBSession, email: str, password: str) -> User:
        """Create a new owner account and return it."""
        pass

    @abstractmethod
    async def get_user_from_token(self, db: DBSession, token: str) -> Optional[User]:
        """Resolve a session token to its user, if the session is still valid."""
        pass

    @abstractmethod
    async def get_user_from_request(self, db: DBSession, request: Request) -> Optional[User]:
        """
        Extract and validate user from request (session cookie or bearer token).

        Returns User if authenticated, None otherwise.
        """
        pass

    @abstractmethod
    async def create_session(self, db: DBSession, user: User, request: Request) -> str:
        """
        Create a new session for the user.

        Returns the session token to be stored in cookie.
        """
        pass

    @abstractmethod
    async def revoke_session(self, db: DBSession, token: str) -> bool:
        """
        Revoke/invalidate a session by its token.

        Returns True if session was revoked, False if not found.
        """
        pass
