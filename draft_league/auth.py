"""
Admin auth: one shared admin password, exchanged for a bearer JWT.
The password is only ever compared against its hash.
"""
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from functools import lru_cache
from typing import Any

from passlib.context import CryptContext
from jose import JWTError, jwt

from draft_league.config import ACCESS_TOKEN_EXPIRE_MINUTES, ADMIN_PASSWORD, SECRET_KEY

# pbkdf2_sha256 needs no native backend
pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")
ALGORITHM = "HS256"
ADMIN_ROLE = "admin"


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain: str, hashed: str) -> bool:
    if not hashed:
        return False
    return pwd_context.verify(plain, hashed)


@lru_cache(maxsize=1)
def _admin_password_hash() -> str:
    return hash_password(ADMIN_PASSWORD)


def authenticate_admin(password: str) -> bool:
    return verify_password(password, _admin_password_hash())


def create_access_token(subject: str, role: str = ADMIN_ROLE) -> str:
    expire = datetime.now(timezone.utc) + timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
    to_encode = {"sub": subject, "role": role, "exp": expire}
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def decode_token(token: str) -> dict[str, Any] | None:
    """Claims of a valid token, or None when the token is invalid or expired."""
    try:
        return jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError:
        return None


def is_admin_token(token: str) -> bool:
    claims = decode_token(token)
    return claims is not None and claims.get("role") == ADMIN_ROLE
