import asyncio
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import bcrypt
import jwt
from jwt.exceptions import ExpiredSignatureError, PyJWTError

from carespot.core.config import settings
from carespot.core.exceptions import TokenExpired, TokenInvalid

def get_password_hash(password: str) -> str:
    salt = bcrypt.gensalt(rounds=settings.BCRYPT_ROUNDS)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")

def verify_password(plain_password: str, password_hash: Optional[str]) -> bool:
    if not password_hash:
        return False
    try:
        return bcrypt.checkpw(plain_password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # stored value is not a bcrypt hash
        return False

async def hash_password(password: str) -> str:
    """``get_password_hash`` in a worker thread, off the event loop."""
    return await asyncio.to_thread(get_password_hash, password)

async def check_password(plain_password: str, password_hash: Optional[str]) -> bool:
    return await asyncio.to_thread(verify_password, plain_password, password_hash)

def create_access_token(data: Dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
    to_encode = data.copy()
    now = datetime.now(timezone.utc)
    expire = now + (expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": expire, "iat": now})
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)

def decode_access_token(token: str) -> Dict[str, Any]:
    """Return the claims of a signed token or raise TokenExpired / TokenInvalid."""
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except ExpiredSignatureError:
        raise TokenExpired()
    except PyJWTError:
        raise TokenInvalid()
    if not payload.get("sub"):
        raise TokenInvalid("Token has no subject")
    return payload
