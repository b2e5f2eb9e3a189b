import hashlib
from typing import Optional

TOKEN_PREFIX = "dev-token-for-"


def get_password_hash(password: str) -> str:
    """
    Development-only password hashing.
    Good enough for seeded demo accounts, not for real credentials.
    """
    return hashlib.sha256(password.encode("utf-8")).hexdigest()


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return get_password_hash(plain_password) == hashed_password


def create_access_token(user_id: int) -> str:
    """Placeholder bearer token carrying the user id."""
    return f"{TOKEN_PREFIX}{user_id}"


def decode_access_token(token: str) -> Optional[int]:
    """
    Returns the user id of a token issued by create_access_token, else None.
    """
    if not token or not token.startswith(TOKEN_PREFIX):
        return None
    try:
        return int(token[len(TOKEN_PREFIX):])
    except ValueError:
        return None
