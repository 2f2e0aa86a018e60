"""
FastAPI dependencies for authentication.
"""
from typing import Annotated, Optional
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from app.core.database.store import EntityStore
from app.core.dependencies import get_store
from app.core.errors import ForbiddenError, UnauthorizedError
from app.features.users.auth import read_token_claims, token_subject
from app.features.users.models import User


security = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(security)],
    store: Annotated[EntityStore, Depends(get_store)]
) -> User:
    """
    Get the current authenticated user from the bearer token.
    
    This dependency:
    1. Extracts JWT from Authorization header
    2. Reads the user ID from its claims
    3. Looks up the user in the local database
    
    Usage:
        @router.get("/me")
        async def get_me(user: User = Depends(get_current_user)):
            return user
    """
    if credentials is None:
        raise UnauthorizedError("Authentication required")
    
    user_id = token_subject(read_token_claims(credentials.credentials))
    if not user_id:
        raise UnauthorizedError("Invalid token payload")
    
    user = await store.find_by_id(User, user_id)
    if user is None:
        raise UnauthorizedError("User not found")
    
    if not user.is_active:
        raise ForbiddenError("User account is deactivated")
    
    return user


def get_authorization_header(request) -> str:
    """
    Extract authorization header for rate limiting.
    Used with slowapi Limiter.
    """
    auth = request.headers.get("Authorization", "")
    return auth or "anonymous"
