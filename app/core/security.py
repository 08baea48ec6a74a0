# app/core/security.py

from datetime import datetime, timedelta
from typing import Optional, Union

from jose import JWTError, jwt

from app.core.config import settings


def create_access_token(data: dict, expires_delta: Union[timedelta, None] = None) -> str:
    """
    Sign a JWT for the given claims.

    Session issuance belongs to the identity service; this lives here so
    that service (and the test-suite) mint tokens the same way we read them.
    """
    to_encode = data.copy()
    if expires_delta:
        expire = datetime.utcnow() + expires_delta
    else:
        expire = datetime.utcnow() + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)

    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_user_id(token: str) -> Optional[int]:
    # returns None for anything we can't trust: bad signature, expired, no/odd sub
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError:
        return None

    sub = payload.get("sub")
    if sub is None:
        return None
    try:
        return int(sub)
    except (TypeError, ValueError):
        return None
