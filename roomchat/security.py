"""Password hashing and session token helpers."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError
from jose import JWTError, jwt

from roomchat.errors import Unauthorized

ALGORITHM = "HS256"

PASSWORD_HASHER = PasswordHasher()


def hash_password(password: str) -> str:
    return PASSWORD_HASHER.hash(password)


def verify_password(hashed: str, password: str) -> bool:
    try:
        return PASSWORD_HASHER.verify(hashed, password)
    except (VerificationError, InvalidHashError):
        return False


def create_access_token(user_id: int, email: str, secret: str, ttl_days: int = 7) -> str:
    expires = datetime.now(timezone.utc) + timedelta(days=ttl_days)
    payload = {"id": user_id, "email": email, "exp": expires}
    return jwt.encode(payload, secret, algorithm=ALGORITHM)


def decode_access_token(token: str, secret: str) -> dict:
    """Return the token claims, raising Unauthorized for bad or expired tokens."""
    try:
        claims = jwt.decode(token, secret, algorithms=[ALGORITHM])
    except JWTError as err:
        raise Unauthorized("Invalid token") from err
    if not isinstance(claims.get("id"), int):
        raise Unauthorized("Invalid token")
    return claims
