import time
from typing import Optional

import jwt
from passlib.context import CryptContext

from .config import get_settings

# bcrypt work factor 10; bcrypt only reads the first 72 bytes of a secret
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=10)

ALGORITHM = "HS256"
EXP_SECONDS = 60 * 60 * 24 * 7  # 7 days


def create_access_token(user_id: str, expires_delta: Optional[int] = None) -> str:
    now = int(time.time())
    exp = now + (expires_delta if expires_delta is not None else EXP_SECONDS)
    payload = {"sub": str(user_id), "iat": now, "exp": exp}
    return jwt.encode(payload, get_settings().jwt_secret, algorithm=ALGORITHM)


def decode_access_token(token: str) -> dict:
    """Return the verified claims; raises ``jwt.PyJWTError`` on a bad or expired token."""
    return jwt.decode(
        token,
        get_settings().jwt_secret,
        algorithms=[ALGORITHM],
        options={"require": ["sub", "exp"]},
    )


def parse_bearer(authorization: Optional[str]) -> str:
    """Extract the token from an ``Authorization: Bearer <token>`` header value.

    Raises ValueError with a client-safe message when the header is missing or malformed.
    """
    if not authorization:
        raise ValueError("Missing Authorization header")
    parts = authorization.split(" ")
    if len(parts) != 2 or parts[0] != "Bearer" or not parts[1]:
        raise ValueError("Invalid Authorization header")
    return parts[1]


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain: str, hashed: str) -> bool:
    return pwd_context.verify(plain, hashed)
