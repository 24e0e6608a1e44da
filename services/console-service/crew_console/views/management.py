"""Management views: search and activate/deactivate owned accounts."""

from __future__ import annotations

import logging
from dataclasses import replace

from ..domain.account import Account
from ..domain.roles import Role
from ..errors import QueryError, WriteError
from ..notifications import Notifier
from ..repository import AccountRepository
from ..session import SessionContext
from .base import ScopedView

logger = logging.getLogger(__name__)


def matches(account: Account, term: str) -> bool:
    """Case-insensitive substring match on display name or contact address."""
    needle = term.lower()
    return needle in account.display_name.lower() or needle in account.email.lower()


class ManagementView(ScopedView):
    def __init__(
        self,
        context: SessionContext,
        accounts: AccountRepository,
        notifier: Notifier,
    ) -> None:
        super().__init__(context, accounts)
        self._notifier = notifier
        self.records: list[Account] = []

    @property
    def _plural(self) -> str:
        return f"{self.managed_role.label.lower()}s"

    def fetch(self) -> list[Account]:
        """Fetch the owned accounts into local state; a failed query raises ``QueryError``."""
        profile = self._context.profile
        if profile is None:
            return self.records
        try:
            records = self._accounts.list_owned(self.managed_role, profile.uid)
        except QueryError:
            logger.exception("error fetching %s for %s", self._plural, profile.uid)
            self._notifier.failure("Error", f"Failed to load {self._plural}")
            raise
        if self.mounted:
            self.records = records
        return self.records

    def load(self) -> list[Account]:
        """Like `fetch`, but a failed query keeps the previous records."""
        try:
            return self.fetch()
        except QueryError:
            return self.records

    def filtered(self, term: str = "") -> list[Account]:
        """Records whose name or contact contains ``term``; all records for an empty term."""
        if not term:
            return list(self.records)
        return [record for record in self.records if matches(record, term)]

    def toggle(self, uid: str) -> Account:
        """Flip ``isActive`` on one owned record; local state changes only after the write succeeds."""
        label = self.managed_role.label
        index = next((i for i, record in enumerate(self.records) if record.uid == uid), None)
        if index is None:
            self._notifier.failure("Error", f"Failed to update {label.lower()} status")
            raise WriteError(f"{label.lower()} {uid} not found", not_found=True)

        record = self.records[index]
        new_state = not record.is_active
        try:
            self._accounts.set_active(record.uid, new_state)
        except WriteError:
            logger.exception("error updating %s status for %s", label.lower(), uid)
            self._notifier.failure("Error", f"Failed to update {label.lower()} status")
            raise

        updated = replace(record, is_active=new_state)
        self.records[index] = updated
        self._notifier.success(
            f"{label} Updated",
            f"{record.display_name} is now {'active' if new_state else 'inactive'}",
        )
        return updated


class ManageAgents(ManagementView):
    managed_role = Role.AGENT


class ManagePlayers(ManagementView):
    managed_role = Role.PLAYER
