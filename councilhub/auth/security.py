from datetime import timedelta
from typing import Any, Dict, Optional

import bcrypt
from jose import jwt

from councilhub.settings import settings
from councilhub.utils import utcnow

SECRET_KEY = settings.jwt_secret
ALGORITHM = settings.jwt_algorithm

# bcrypt only reads the first 72 bytes and refuses longer input
MAX_PASSWORD_BYTES = 72


def _password_bytes(password: str) -> bytes:
    return password.encode("utf-8")[:MAX_PASSWORD_BYTES]


def get_password_hash(password: str) -> str:
    return bcrypt.hashpw(_password_bytes(password), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    try:
        return bcrypt.checkpw(_password_bytes(plain_password), hashed_password.encode("utf-8"))
    except ValueError:
        return False


def _encode(data: Dict[str, Any], expires_delta: timedelta, token_type: str) -> str:
    to_encode = data.copy()
    to_encode.update({"exp": utcnow() + expires_delta, "type": token_type})
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def create_access_token(data: Dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
    return _encode(
        data,
        expires_delta or timedelta(minutes=settings.access_token_expire_minutes),
        "access",
    )


def create_refresh_token(data: Dict[str, Any]) -> str:
    return _encode(data, timedelta(days=settings.refresh_token_expire_days), "refresh")
