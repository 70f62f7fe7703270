"""
Password hashing (bcrypt) and access tokens (JWT via python-jose).
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import bcrypt
from jose import JWTError, jwt

BCRYPT_MAX_BYTES = 72


class InvalidAccessToken(ValueError):
    """Raised when a bearer token cannot be decoded or has expired."""


def _password_bytes(password: str) -> bytes:
    # bcrypt only considers the first 72 bytes and newer releases refuse longer input.
    return (password or "").encode("utf-8")[:BCRYPT_MAX_BYTES]


# PUBLIC_INTERFACE
def hash_password(password: str) -> str:
    return bcrypt.hashpw(_password_bytes(password), bcrypt.gensalt()).decode("utf-8")


# PUBLIC_INTERFACE
def verify_password(plain_password: str, password_hash: str) -> bool:
    if not password_hash:
        return False
    try:
        return bcrypt.checkpw(_password_bytes(plain_password), password_hash.encode("utf-8"))
    except ValueError:
        return False


# PUBLIC_INTERFACE
def create_access_token(
    user_id: int,
    secret_key: str,
    algorithm: str = "HS256",
    expires_minutes: int = 60 * 24,
    extra: Optional[Dict[str, Any]] = None,
) -> str:
    """
    Issue a signed JWT for a user.
    "sub" must be a string, so the numeric id is stringified.
    """
    now = datetime.now(timezone.utc)
    payload: Dict[str, Any] = {
        "sub": str(user_id),
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(minutes=expires_minutes)).timestamp()),
    }
    if extra:
        payload.update(extra)
    return jwt.encode(payload, secret_key, algorithm=algorithm)


# PUBLIC_INTERFACE
def decode_access_token(token: str, secret_key: str, algorithm: str = "HS256") -> Dict[str, Any]:
    """Return the JWT payload or raise InvalidAccessToken."""
    try:
        return jwt.decode(token, secret_key, algorithms=[algorithm])
    except JWTError as exc:
        raise InvalidAccessToken(str(exc)) from exc
