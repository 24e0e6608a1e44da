from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Sequence

import jwt
import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from crew_console.api import routes
from crew_console.collaborators.documents import Document, Predicate
from crew_console.collaborators.identity import IdentitySession
from crew_console.config import get_settings
from crew_console.domain.roles import Role
from crew_console.errors import AuthError, QueryError, WriteError
from crew_console.notifications import Notifier
from crew_console.repository import AccountRepository
from crew_console.security.tokens import decode_session_token, issue_session_token
from crew_console.session import SessionContext, SessionProvider


class FakeIdentityProvider:
    """In-memory identity collaborator mimicking the Postgres-backed behaviour."""

    def __init__(self) -> None:
        self.identities: dict[str, dict[str, Any]] = {}
        self.sessions: dict[str, str] = {}
        self.revoked: set[str] = set()
        self.calls: list[str] = []
        self.fail_logout = False

    def create_account(self, contact: str, secret: str) -> str:
        self.calls.append("create_account")
        if len(secret) < get_settings().min_password_length:
            raise AuthError("Password should be at least 6 characters", reason="weak_password")
        if any(record["contact"] == contact.lower() for record in self.identities.values()):
            raise AuthError("account already exists", reason="duplicate")
        uid = str(uuid.uuid4())
        self.identities[uid] = {"contact": contact.lower(), "secret": secret, "display_name": None}
        return uid

    def authenticate(self, contact: str, secret: str) -> IdentitySession:
        self.calls.append("authenticate")
        for uid, record in self.identities.items():
            if record["contact"] == contact.lower() and record["secret"] == secret:
                token, session_id, expires_in = issue_session_token(subject=uid)
                self.sessions[session_id] = uid
                return IdentitySession(
                    uid=uid,
                    session_id=session_id,
                    token=token,
                    display_name=record["display_name"],
                    expires_in=expires_in,
                )
        raise AuthError("invalid username or password", reason="credentials")

    def set_display_name(self, uid: str, name: str) -> None:
        self.calls.append("set_display_name")
        self.identities[uid]["display_name"] = name

    def destroy_session(self, session: IdentitySession) -> None:
        self.calls.append("destroy_session")
        if self.fail_logout:
            raise AuthError("identity service unavailable", reason="unavailable")
        self.revoked.add(session.session_id)

    def resolve_session(self, token: str) -> IdentitySession | None:
        try:
            claims = decode_session_token(token)
        except jwt.PyJWTError:
            return None
        sid = claims["sid"]
        uid = self.sessions.get(sid)
        if uid is None or sid in self.revoked or uid not in self.identities:
            return None
        return IdentitySession(uid=uid, session_id=sid, token=token)

    def delete_account(self, uid: str) -> None:
        self.calls.append("delete_account")
        self.identities.pop(uid, None)


class FakeDocumentStore:
    """In-memory document store; ``created_at`` advances one second per new document."""

    def __init__(self) -> None:
        self.documents: dict[tuple[str, str], Document] = {}
        self.calls: list[str] = []
        self.fail_queries = False
        self.fail_writes = False
        self.fail_updates = False
        self.on_query = None
        self._clock = datetime(2024, 1, 1, tzinfo=timezone.utc)

    def read_document(self, collection: str, doc_id: str) -> Document | None:
        self.calls.append("read_document")
        document = self.documents.get((collection, doc_id))
        if document is None:
            return None
        return Document(collection, doc_id, dict(document.fields), document.created_at)

    def write_document(self, collection: str, doc_id: str, fields: dict[str, Any]) -> Document:
        self.calls.append("write_document")
        if self.fail_writes:
            raise WriteError(f"failed to write {collection}/{doc_id}")
        existing = self.documents.get((collection, doc_id))
        if existing is None:
            self._clock += timedelta(seconds=1)
            created_at = self._clock
        else:
            created_at = existing.created_at
        document = Document(collection, doc_id, dict(fields), created_at)
        self.documents[(collection, doc_id)] = document
        return Document(collection, doc_id, dict(fields), created_at)

    def update_fields(self, collection: str, doc_id: str, fields: dict[str, Any]) -> None:
        self.calls.append("update_fields")
        if self.fail_updates:
            raise WriteError(f"failed to update {collection}/{doc_id}")
        document = self.documents.get((collection, doc_id))
        if document is None:
            raise WriteError(f"{collection}/{doc_id} not found", not_found=True)
        document.fields.update(fields)

    def scoped_query(self, collection: str, predicates: Sequence[Predicate]) -> list[Document]:
        self.calls.append("scoped_query")
        if self.fail_queries:
            raise QueryError(f"scoped query on {collection} failed")
        results = [
            Document(doc.collection, doc.doc_id, dict(doc.fields), doc.created_at)
            for (name, _), doc in self.documents.items()
            if name == collection and all(doc.fields.get(key) == value for key, value in predicates)
        ]
        if self.on_query is not None:
            self.on_query()
        return results


@pytest.fixture
def identity() -> FakeIdentityProvider:
    return FakeIdentityProvider()


@pytest.fixture
def store() -> FakeDocumentStore:
    return FakeDocumentStore()


@pytest.fixture
def accounts(store) -> AccountRepository:
    return AccountRepository(store)


@pytest.fixture
def notifier() -> Notifier:
    return Notifier()


@pytest.fixture
def context() -> SessionContext:
    return SessionContext()


@pytest.fixture
def sessions(context, identity, accounts, notifier) -> SessionProvider:
    return SessionProvider(context, identity, accounts, notifier)


@pytest.fixture
def master_admin(sessions):
    """A registered and signed-in top-level administrator."""
    account = sessions.register("boss", "secret-pass", "Boss", Role.MASTER_ADMIN)
    sessions.login("boss", "secret-pass")
    return account


@pytest.fixture
def api_client(identity, store):
    """Provide a FastAPI test client with isolated collaborators."""
    app = FastAPI()
    app.include_router(routes.router)
    app.include_router(routes.fallback_router)
    app.state.identity = identity
    app.state.document_store = store

    original_limiter = routes.rate_limiter
    routes.rate_limiter = routes.LoginAttemptLimiter(max_attempts=3, window_seconds=60)

    with TestClient(app) as client:
        yield client

    routes.rate_limiter = original_limiter
