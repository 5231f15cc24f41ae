"""
Authentication

Single-admin login with a bcrypt password hash and HS256 JWT bearer tokens.

Usage:
    from .auth import get_current_user

    @app.get("/api/private")
    async def private(username: str = Depends(get_current_user)):
        ...
"""

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
import jwt
from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from .config import LOGIN_FAILURE_DELAY, require_env

logger = logging.getLogger(__name__)

TOKEN_ALGORITHM = "HS256"
TOKEN_LIFETIME = timedelta(hours=8)
TOKEN_LIFETIME_LABEL = "8h"

security = HTTPBearer(auto_error=False)


class AuthError(HTTPException):
    """Authentication error."""
    def __init__(self, detail: str = "Unauthorized"):
        super().__init__(status_code=401, detail=detail)


def issue_token(username: str, now: Optional[datetime] = None) -> str:
    now = now or datetime.now(timezone.utc)
    payload = {
        "sub": username,
        "iat": int(now.timestamp()),
        "exp": int((now + TOKEN_LIFETIME).timestamp()),
    }
    return jwt.encode(payload, require_env("JWT_SECRET"), algorithm=TOKEN_ALGORITHM)


def decode_token(token: str) -> dict:
    """Verify a bearer token and return its claims."""
    try:
        return jwt.decode(token, require_env("JWT_SECRET"), algorithms=[TOKEN_ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise AuthError("Unauthorized: Token expired")
    except jwt.InvalidTokenError:
        raise AuthError("Unauthorized: Invalid token")


def check_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        logger.error("ADMIN_PASSWORD_HASH is not a valid bcrypt hash")
        return False


async def authenticate(username: str, password: str) -> bool:
    """
    Check credentials against the configured admin account.

    The password is only checked when the username matches. Failed attempts
    are answered after LOGIN_FAILURE_DELAY seconds.
    """
    admin_user = require_env("ADMIN_USERNAME")
    admin_hash = require_env("ADMIN_PASSWORD_HASH")

    user_ok = str(username).strip() == admin_user.strip()
    pass_ok = user_ok and await asyncio.to_thread(check_password, str(password), admin_hash)

    if not pass_ok:
        logger.warning(f"Failed login attempt for user '{username}'")
        await asyncio.sleep(LOGIN_FAILURE_DELAY)
    return pass_ok


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> str:
    """Resolve the username of the bearer token, or fail with 401."""
    if credentials is None or credentials.scheme.lower() != "bearer" or not credentials.credentials:
        raise AuthError("Unauthorized: Missing or invalid token")

    payload = decode_token(credentials.credentials)
    username = str(payload.get("sub") or "").strip()
    if not username:
        raise AuthError("Unauthorized")
    return username
