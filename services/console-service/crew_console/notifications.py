"""User-facing notices (toasts) posted by the session provider and views."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class NoticeVariant(str, Enum):
    default = "default"
    destructive = "destructive"


@dataclass(slots=True)
class Notice:
    title: str
    description: str
    variant: NoticeVariant = NoticeVariant.default


@dataclass(slots=True)
class Notifier:
    """Collects notices for the current request; routes return them with the payload."""

    notices: list[Notice] = field(default_factory=list)

    def success(self, title: str, description: str) -> None:
        self.notices.append(Notice(title, description))

    def failure(self, title: str, description: str) -> None:
        self.notices.append(Notice(title, description, NoticeVariant.destructive))

    def drain(self) -> list[Notice]:
        """Return and clear the pending notices."""
        pending, self.notices = self.notices, []
        return pending
