"""Creation views: forms that register an account one tier below the current user."""

from __future__ import annotations

from ..domain.account import Account
from ..domain.contracts import AccountForm
from ..domain.roles import Role
from ..errors import AuthError, ValidationError
from ..navigation import management_path
from ..notifications import Notifier
from ..session import SessionContext, SessionProvider


class CreationView:
    created_role: Role

    def __init__(self, context: SessionContext, sessions: SessionProvider, notifier: Notifier) -> None:
        self._context = context
        self._sessions = sessions
        self._notifier = notifier
        self.created: Account | None = None

    @property
    def success_path(self) -> str:
        return management_path(self.created_role)

    def submit(self, form: AccountForm) -> str:
        """Validate and register the account; return the path to navigate to on success."""
        label = self.created_role.label
        try:
            form.validate()
        except ValidationError as exc:
            self._notifier.failure("Validation Error", str(exc))
            raise

        profile = self._context.profile
        if profile is None:
            message = f"You must be logged in to create {_article(label)} {label.lower()}"
            self._notifier.failure("Error", message)
            raise AuthError(message, reason="credentials")

        self.created = self._sessions.register(
            form.username,
            form.password,
            form.name,
            self.created_role,
            profile.uid,
        )
        self._notifier.success(
            f"{label} Created",
            f"The {label.lower()} account has been created successfully",
        )
        return self.success_path


def _article(word: str) -> str:
    return "an" if word[:1].lower() in "aeiou" else "a"


class CreateAgent(CreationView):
    created_role = Role.AGENT


class CreatePlayer(CreationView):
    created_role = Role.PLAYER
