from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from .roles import Role, parse_role


@dataclass(slots=True)
class Account:
    """Profile of a console user, stored as a document keyed by the identity uid."""

    uid: str
    username: str
    email: str
    display_name: str
    role: Role | None
    is_active: bool = True
    created_by: str | None = None
    created_at: datetime | None = None

    @classmethod
    def from_fields(
        cls, uid: str, fields: dict[str, Any], created_at: datetime | None = None
    ) -> Account:
        """Build an account from stored document fields, tolerating missing keys."""
        return cls(
            uid=fields.get("uid") or uid,
            username=fields.get("username", ""),
            email=fields.get("email", ""),
            display_name=fields.get("displayName") or "",
            role=parse_role(fields.get("role")),
            is_active=bool(fields.get("isActive", False)),
            created_by=fields.get("createdBy"),
            created_at=created_at,
        )

    def to_fields(self) -> dict[str, Any]:
        """Return the document fields persisted for this account."""
        fields: dict[str, Any] = {
            "uid": self.uid,
            "username": self.username,
            "email": self.email,
            "displayName": self.display_name,
            "role": self.role.value if self.role else None,
            "isActive": self.is_active,
        }
        if self.created_by is not None:
            fields["createdBy"] = self.created_by
        return fields
