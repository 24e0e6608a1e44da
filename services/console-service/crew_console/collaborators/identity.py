"""Identity collaborator: credentials, sessions and display names."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Protocol

import jwt
import psycopg
from psycopg.rows import tuple_row
from psycopg_pool import ConnectionPool

from ..config import get_settings
from ..errors import AuthError
from ..security.tokens import decode_session_token, hash_password, issue_session_token, verify_password

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class IdentitySession:
    """Signed-in identity as seen by the rest of the console."""

    uid: str
    session_id: str
    token: str
    display_name: str | None = None
    expires_in: int | None = None


class IdentityProvider(Protocol):
    def create_account(self, contact: str, secret: str) -> str: ...

    def authenticate(self, contact: str, secret: str) -> IdentitySession: ...

    def set_display_name(self, uid: str, name: str) -> None: ...

    def destroy_session(self, session: IdentitySession) -> None: ...

    def resolve_session(self, token: str) -> IdentitySession | None: ...

    def delete_account(self, uid: str) -> None: ...


class PostgresIdentityProvider:
    """Identity records and revocable sessions stored in Postgres."""

    def __init__(self, pool: ConnectionPool) -> None:
        self._pool = pool

    def create_account(self, contact: str, secret: str) -> str:
        """Register a new identity and return its uid."""
        settings = get_settings()
        if len(secret) < settings.min_password_length:
            raise AuthError(
                f"Password should be at least {settings.min_password_length} characters",
                reason="weak_password",
            )
        uid = str(uuid.uuid4())
        try:
            with self._pool.connection() as conn:
                with conn.cursor(row_factory=tuple_row) as cur:
                    cur.execute(
                        """
                        INSERT INTO identities (uid, contact, password_hash, created_at)
                        VALUES (%s, %s, %s, %s)
                        ON CONFLICT (contact) DO NOTHING
                        RETURNING uid
                        """,
                        (uid, contact.lower(), hash_password(secret), datetime.now(timezone.utc)),
                    )
                    row = cur.fetchone()
                    conn.commit()
        except psycopg.Error as exc:
            raise AuthError("identity service unavailable", reason="unavailable") from exc
        if row is None:
            raise AuthError("account already exists", reason="duplicate")
        return row[0]

    def authenticate(self, contact: str, secret: str) -> IdentitySession:
        """Verify credentials and open a new session."""
        try:
            with self._pool.connection() as conn:
                with conn.cursor(row_factory=tuple_row) as cur:
                    cur.execute(
                        """
                        SELECT uid, password_hash, display_name
                        FROM identities
                        WHERE contact = %s
                        """,
                        (contact.lower(),),
                    )
                    row = cur.fetchone()
                    if row is None or not verify_password(secret, row[1]):
                        raise AuthError("invalid username or password", reason="credentials")

                    token, session_id, expires_in = issue_session_token(subject=row[0])
                    now = datetime.now(timezone.utc)
                    cur.execute(
                        """
                        INSERT INTO identity_sessions (session_id, uid, created_at, expires_at)
                        VALUES (%s, %s, %s, %s)
                        """,
                        (session_id, row[0], now, now + timedelta(seconds=expires_in)),
                    )
                    conn.commit()
        except psycopg.Error as exc:
            raise AuthError("identity service unavailable", reason="unavailable") from exc
        return IdentitySession(
            uid=row[0],
            session_id=session_id,
            token=token,
            display_name=row[2],
            expires_in=expires_in,
        )

    def set_display_name(self, uid: str, name: str) -> None:
        try:
            with self._pool.connection() as conn:
                with conn.cursor() as cur:
                    cur.execute(
                        "UPDATE identities SET display_name = %s WHERE uid = %s",
                        (name, uid),
                    )
                    conn.commit()
        except psycopg.Error as exc:
            raise AuthError("identity service unavailable", reason="unavailable") from exc

    def destroy_session(self, session: IdentitySession) -> None:
        """Revoke the session so its token no longer resolves."""
        try:
            with self._pool.connection() as conn:
                with conn.cursor() as cur:
                    cur.execute(
                        """
                        UPDATE identity_sessions
                        SET revoked_at = NOW()
                        WHERE session_id = %s AND revoked_at IS NULL
                        """,
                        (session.session_id,),
                    )
                    conn.commit()
        except psycopg.Error as exc:
            raise AuthError("identity service unavailable", reason="unavailable") from exc

    def resolve_session(self, token: str) -> IdentitySession | None:
        """Return the live session behind a token, or ``None`` when it is invalid or revoked."""
        try:
            claims = decode_session_token(token)
        except jwt.PyJWTError as exc:
            logger.info("rejected session token: %s", exc)
            return None

        try:
            with self._pool.connection() as conn:
                with conn.cursor(row_factory=tuple_row) as cur:
                    cur.execute(
                        """
                        SELECT s.uid, i.display_name
                        FROM identity_sessions s
                        JOIN identities i ON i.uid = s.uid
                        WHERE s.session_id = %s AND s.revoked_at IS NULL AND s.expires_at > NOW()
                        """,
                        (claims.get("sid"),),
                    )
                    row = cur.fetchone()
        except psycopg.Error as exc:
            raise AuthError("identity service unavailable", reason="unavailable") from exc
        if row is None or row[0] != claims.get("sub"):
            return None
        return IdentitySession(uid=row[0], session_id=claims["sid"], token=token, display_name=row[1])

    def delete_account(self, uid: str) -> None:
        """Remove an identity and its sessions."""
        try:
            with self._pool.connection() as conn:
                with conn.cursor() as cur:
                    cur.execute("DELETE FROM identity_sessions WHERE uid = %s", (uid,))
                    cur.execute("DELETE FROM identities WHERE uid = %s", (uid,))
                    conn.commit()
        except psycopg.Error as exc:
            raise AuthError("identity service unavailable", reason="unavailable") from exc
