"""Closed role hierarchy for console accounts."""

from __future__ import annotations

from enum import Enum


class Role(str, Enum):
    """Account tier. Each tier creates and manages the tier below it."""

    MASTER_ADMIN = "masterAdmin"
    AGENT = "agent"
    PLAYER = "player"

    @property
    def parent(self) -> Role | None:
        """Role allowed to create accounts of this role, ``None`` for the root."""
        return _PARENTS[self]

    @property
    def child(self) -> Role | None:
        """Role this tier creates and manages, ``None`` for the leaf."""
        return _CHILDREN.get(self)

    @property
    def label(self) -> str:
        return _LABELS[self]


_PARENTS: dict[Role, Role | None] = {
    Role.MASTER_ADMIN: None,
    Role.AGENT: Role.MASTER_ADMIN,
    Role.PLAYER: Role.AGENT,
}

_CHILDREN: dict[Role, Role] = {
    parent: child for child, parent in _PARENTS.items() if parent is not None
}

_LABELS: dict[Role, str] = {
    Role.MASTER_ADMIN: "Master Admin",
    Role.AGENT: "Agent",
    Role.PLAYER: "Player",
}


def parse_role(value: object) -> Role | None:
    """Return the ``Role`` for a stored value or ``None`` when it is missing or unknown."""
    if isinstance(value, Role):
        return value
    try:
        return Role(value)
    except ValueError:
        return None
