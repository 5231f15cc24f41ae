import asyncio
from datetime import datetime, timedelta, timezone

import jwt
import pytest

from conftest import ADMIN_PASSWORD, ADMIN_USERNAME
from troubleshooter.auth import AuthError, authenticate, check_password, decode_token, issue_token


def test_issued_token_round_trips():
    token = issue_token("admin")
    payload = decode_token(token)
    assert payload["sub"] == "admin"
    assert payload["exp"] - payload["iat"] == 8 * 3600


def test_expired_token_is_rejected():
    token = issue_token("admin", now=datetime.now(timezone.utc) - timedelta(hours=9))
    with pytest.raises(AuthError) as excinfo:
        decode_token(token)
    assert excinfo.value.status_code == 401
    assert excinfo.value.detail == "Unauthorized: Token expired"


def test_token_signed_with_other_secret_is_rejected():
    token = jwt.encode({"sub": "admin"}, "another-secret-that-is-long-enough-for-hs256", algorithm="HS256")
    with pytest.raises(AuthError) as excinfo:
        decode_token(token)
    assert excinfo.value.detail == "Unauthorized: Invalid token"


def test_check_password_with_invalid_hash():
    assert check_password("anything", "not-a-bcrypt-hash") is False


def test_authenticate():
    assert asyncio.run(authenticate(ADMIN_USERNAME, ADMIN_PASSWORD)) is True
    assert asyncio.run(authenticate(f"  {ADMIN_USERNAME} ", ADMIN_PASSWORD)) is True
    assert asyncio.run(authenticate(ADMIN_USERNAME, "wrong")) is False
    assert asyncio.run(authenticate("intruder", ADMIN_PASSWORD)) is False
