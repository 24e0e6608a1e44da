"""Dashboard views: counts and recent accounts for the tier a user manages."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from ..config import get_settings
from ..domain.account import Account
from ..domain.roles import Role
from ..errors import QueryError
from ..repository import AccountRepository
from ..session import SessionContext
from .base import ScopedView

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class DashboardStats:
    total: int = 0
    active: int = 0
    recent: list[Account] = field(default_factory=list)

    @property
    def inactive(self) -> int:
        return self.total - self.active


def most_recent(accounts: list[Account], limit: int) -> list[Account]:
    """Newest first by ``created_at``; undated accounts follow in store order."""
    dated = sorted(
        (account for account in accounts if account.created_at is not None),
        key=lambda account: account.created_at,
        reverse=True,
    )
    undated = [account for account in accounts if account.created_at is None]
    return (dated + undated)[:limit]


class DashboardView(ScopedView):
    def __init__(
        self,
        context: SessionContext,
        accounts: AccountRepository,
        *,
        recent_limit: int | None = None,
    ) -> None:
        super().__init__(context, accounts)
        self._recent_limit = recent_limit if recent_limit is not None else get_settings().recent_limit
        self.stats = DashboardStats()

    def load(self) -> DashboardStats:
        """Refresh the stats from one scoped query; failures keep the previous stats."""
        profile = self._context.profile
        if profile is None:
            return self.stats
        try:
            accounts = self._accounts.list_owned(self.managed_role, profile.uid)
        except QueryError:
            logger.exception("error fetching %s data for %s", self.managed_role.value, profile.uid)
            return self.stats
        if not self.mounted:
            return self.stats

        self.stats = DashboardStats(
            total=len(accounts),
            active=sum(1 for account in accounts if account.is_active),
            recent=most_recent(accounts, self._recent_limit),
        )
        return self.stats


class MasterAdminDashboard(DashboardView):
    managed_role = Role.AGENT


class AgentDashboard(DashboardView):
    managed_role = Role.PLAYER
