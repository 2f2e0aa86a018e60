"""
Helpers shared by the HTTP tests.
"""
import jwt


def make_token(user_id: str, **claims) -> str:
    """Bearer token carrying the user ID. The service does not check signatures."""
    return jwt.encode({"sub": user_id, **claims}, "test-secret", algorithm="HS256")


def auth_headers(user_id: str) -> dict:
    return {"Authorization": f"Bearer {make_token(user_id)}"}
