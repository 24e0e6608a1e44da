"""Utilities for issuing session JWTs and hashing account passwords."""

from __future__ import annotations

import time
import uuid
from typing import Any

import bcrypt
import jwt

from ..config import get_settings


def issue_session_token(*, subject: str, session_id: str | None = None) -> tuple[str, str, int]:
    """Create a signed JWT representing a signed-in identity.

    Parameters
    ----------
    subject:
        Identity uid to embed in the token `sub` claim.
    session_id:
        Identifier of the server-side session row, stored in the `sid` claim so
        the session can be revoked before the token expires. Generated when
        omitted.

    Returns
    -------
    tuple[str, str, int]
        The encoded JWT, the session id and the token TTL (in seconds).
    """

    settings = get_settings()
    now = int(time.time())
    expires_in = settings.jwt_ttl_seconds
    sid = session_id or str(uuid.uuid4())
    payload: dict[str, Any] = {
        "iss": settings.jwt_issuer,
        "sub": subject,
        "sid": sid,
        "iat": now,
        "exp": now + expires_in,
    }

    token = jwt.encode(payload, settings.jwt_secret, algorithm="HS256")
    return token, sid, expires_in


def decode_session_token(token: str) -> dict[str, Any]:
    """Decode and verify a session JWT returning its payload.

    Raises
    ------
    jwt.PyJWTError
        Propagated when the token is invalid, expired, or signed by another issuer.
    """

    settings = get_settings()
    return jwt.decode(
        token,
        settings.jwt_secret,
        algorithms=["HS256"],
        issuer=settings.jwt_issuer,
    )


# bcrypt only uses the first 72 bytes and newer releases reject longer input.
_BCRYPT_MAX_BYTES = 72


def _password_bytes(password: str) -> bytes:
    return password.encode("utf-8")[:_BCRYPT_MAX_BYTES]


def hash_password(password: str) -> str:
    """Return the bcrypt hash for a password as a UTF-8 string."""
    return bcrypt.hashpw(_password_bytes(password), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """Return ``True`` when the password matches the stored bcrypt hash."""
    return bcrypt.checkpw(_password_bytes(password), password_hash.encode("utf-8"))
