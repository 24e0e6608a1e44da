from __future__ import annotations

from ..domain.roles import Role
from ..repository import AccountRepository
from ..session import SessionContext


class ScopedView:
    """A page listing accounts of ``managed_role`` owned by the signed-in user."""

    managed_role: Role

    def __init__(self, context: SessionContext, accounts: AccountRepository) -> None:
        self._context = context
        self._accounts = accounts
        self._mounted = True

    @property
    def mounted(self) -> bool:
        return self._mounted

    def unmount(self) -> None:
        """Detach the view; results of loads still in flight are dropped."""
        self._mounted = False
