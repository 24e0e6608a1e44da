"""Account profiles stored in the ``users`` document collection."""

from __future__ import annotations

from typing import Any

from .collaborators.documents import DocumentStore
from .domain.account import Account
from .domain.roles import Role
from .errors import WriteError

USERS_COLLECTION = "users"

# Fields a profile may change after creation.
MUTABLE_FIELDS = frozenset({"isActive"})


class AccountRepository:
    """Profile reads and writes scoped to the document store's ``users`` collection."""

    def __init__(self, store: DocumentStore) -> None:
        self._store = store

    def get_profile(self, uid: str) -> Account | None:
        """Fetch the profile document for an identity or return ``None``."""
        document = self._store.read_document(USERS_COLLECTION, uid)
        if document is None:
            return None
        return Account.from_fields(document.doc_id, document.fields, document.created_at)

    def create_profile(self, account: Account) -> Account:
        """Persist a new profile keyed by the account uid."""
        document = self._store.write_document(USERS_COLLECTION, account.uid, account.to_fields())
        return Account.from_fields(document.doc_id, document.fields, document.created_at)

    def list_owned(self, role: Role, owner_uid: str) -> list[Account]:
        """Return accounts of ``role`` created by ``owner_uid``."""
        documents = self._store.scoped_query(
            USERS_COLLECTION,
            [("role", role.value), ("createdBy", owner_uid)],
        )
        return [Account.from_fields(doc.doc_id, doc.fields, doc.created_at) for doc in documents]

    def update_profile(self, uid: str, changes: dict[str, Any]) -> None:
        """Apply a partial update restricted to lifecycle-mutable fields."""
        immutable = set(changes) - MUTABLE_FIELDS
        if immutable:
            raise WriteError(f"fields cannot be changed after creation: {', '.join(sorted(immutable))}")
        self._store.update_fields(USERS_COLLECTION, uid, changes)

    def set_active(self, uid: str, is_active: bool) -> None:
        self.update_profile(uid, {"isActive": is_active})
