"""Session state and the provider that owns sign-in, registration and sign-out."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable

from .collaborators.identity import IdentityProvider, IdentitySession
from .config import get_settings
from .domain.account import Account
from .domain.roles import Role
from .errors import AuthError, ConsoleError, QueryError
from .notifications import Notifier
from .repository import AccountRepository

logger = logging.getLogger(__name__)

SessionListener = Callable[["SessionContext"], None]


@dataclass(slots=True)
class SessionContext:
    """Current identity and resolved profile, handed to every view.

    Only :class:`SessionProvider` mutates it. ``loading`` stays ``True`` until
    the first resolution finishes.
    """

    user: IdentitySession | None = None
    profile: Account | None = None
    loading: bool = True
    listeners: list[SessionListener] = field(default_factory=list)

    @property
    def uid(self) -> str | None:
        return self.user.uid if self.user else None

    @property
    def role(self) -> Role | None:
        return self.profile.role if self.profile else None

    def subscribe(self, listener: SessionListener) -> Callable[[], None]:
        """Register a change listener and return a callable that removes it."""
        self.listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self.listeners:
                self.listeners.remove(listener)

        return unsubscribe


class SessionProvider:
    """Wraps the identity collaborator and profile store behind login/register/logout."""

    def __init__(
        self,
        context: SessionContext,
        identity: IdentityProvider,
        accounts: AccountRepository,
        notifier: Notifier,
    ) -> None:
        self._context = context
        self._identity = identity
        self._accounts = accounts
        self._notifier = notifier

    @property
    def context(self) -> SessionContext:
        return self._context

    @staticmethod
    def contact_for(username: str) -> str:
        """Map a username to the synthetic contact address used by the identity collaborator."""
        return f"{username}@{get_settings().contact_domain}"

    def restore(self, token: str | None) -> SessionContext:
        """Resolve an existing session from a token; anonymous when it does not resolve."""
        self._context.loading = True
        try:
            user = self._identity.resolve_session(token) if token else None
            profile = self._load_profile(user.uid) if user else None
            self._apply(user, profile)
        finally:
            self._context.loading = False
        return self._context

    def login(self, username: str, password: str) -> IdentitySession:
        """Authenticate a username/password pair and make it the current session."""
        self._context.loading = True
        try:
            user = self._identity.authenticate(self.contact_for(username), password)
            profile = self._load_profile(user.uid)
            if profile is not None and not profile.is_active:
                self._identity.destroy_session(user)
                raise AuthError("account is deactivated", reason="inactive")
            self._apply(user, profile)
            self._notifier.success("Login successful", "Welcome back!")
            return user
        except AuthError as exc:
            logger.warning("login failed for %s: %s", username, exc)
            self._notifier.failure("Login failed", str(exc))
            raise
        finally:
            self._context.loading = False

    def register(
        self,
        username: str,
        password: str,
        name: str,
        role: Role,
        created_by: str | None = None,
    ) -> Account:
        """Create an identity and its profile document.

        The creator, when given, must hold the role directly above ``role``.
        If the profile write fails after the identity was created, the identity
        is deleted again so no login is left without a profile.
        """
        self._context.loading = True
        try:
            self._check_creator(role, created_by)
            uid = self._identity.create_account(self.contact_for(username), password)
            try:
                self._identity.set_display_name(uid, name)
                account = self._accounts.create_profile(
                    Account(
                        uid=uid,
                        username=username,
                        email=self.contact_for(username),
                        display_name=name,
                        role=role,
                        is_active=True,
                        created_by=created_by,
                    )
                )
            except ConsoleError as exc:
                self._discard_identity(uid)
                if isinstance(exc, AuthError):
                    raise
                raise AuthError(f"failed to store profile: {exc}", reason="unavailable") from exc
        except AuthError as exc:
            logger.warning("registration of %s failed: %s", username, exc)
            self._notifier.failure("Registration failed", str(exc))
            raise
        finally:
            self._context.loading = False

        self._notifier.success("Account created", "Your account has been created successfully")
        return account

    def logout(self) -> None:
        """Destroy the current session and clear the context."""
        self._context.loading = True
        try:
            if self._context.user is not None:
                self._identity.destroy_session(self._context.user)
            self._apply(None, None)
            self._notifier.success("Logged out", "You have been logged out successfully")
        except AuthError as exc:
            logger.warning("logout failed: %s", exc)
            self._notifier.failure("Logout failed", str(exc))
            raise
        finally:
            self._context.loading = False

    def _check_creator(self, role: Role, created_by: str | None) -> None:
        parent = role.parent
        if parent is None:
            if created_by is not None:
                raise AuthError(f"{role.label} accounts cannot have a creator", reason="forbidden")
            return
        if created_by is None:
            raise AuthError(f"{role.label} accounts must be created by a {parent.label}", reason="forbidden")
        try:
            creator = self._accounts.get_profile(created_by)
        except QueryError as exc:
            raise AuthError("could not verify the creating account", reason="unavailable") from exc
        if creator is None or creator.role is not parent:
            raise AuthError(f"only a {parent.label} can create {role.label} accounts", reason="forbidden")

    def _discard_identity(self, uid: str) -> None:
        try:
            self._identity.delete_account(uid)
        except AuthError:
            logger.exception("could not remove identity %s after failed registration", uid)

    def _load_profile(self, uid: str) -> Account | None:
        try:
            return self._accounts.get_profile(uid)
        except QueryError:
            logger.exception("error fetching profile for %s", uid)
            return None

    def _apply(self, user: IdentitySession | None, profile: Account | None) -> None:
        self._context.user = user
        self._context.profile = profile
        for listener in list(self._context.listeners):
            listener(self._context)
