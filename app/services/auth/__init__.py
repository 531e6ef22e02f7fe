"""
Authentication service package.

Provides pluggable authentication; the local provider stores bcrypt password
hashes and database-backed sessions.

Usage:
    from app.services.auth import get_auth_provider
    from app.services.auth.dependencies import get_current_user

    # In routes:
    @router.get("/protected")
    async def protected_route(user: User = Depends(get_current_user)):
        ...
"""
from app.services.auth.base import AuthProvider
from app.services.auth.local_provider import local_auth_provider


def get_auth_provider() -> AuthProvider:
    """Factory function to get the configured auth provider."""
    return local_auth_provider


__all__ = [
    "AuthProvider",
    "get_auth_provider",
    "local_auth_provider",
]
