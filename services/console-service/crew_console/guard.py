"""Role check applied to every authenticated route."""

from __future__ import annotations

from enum import Enum
from typing import Iterable

from .domain.roles import Role
from .session import SessionContext


class GuardDecision(str, Enum):
    render = "render"
    redirect_login = "redirect_login"
    loading = "loading"


def evaluate(context: SessionContext, required_roles: Iterable[Role]) -> GuardDecision:
    """Decide whether the protected content may render for this session.

    This is a convenience check for the console's own routes; ownership of the
    records a view touches is enforced again by the views themselves.
    """
    if context.loading:
        return GuardDecision.loading
    if context.user is None or context.profile is None:
        return GuardDecision.redirect_login
    role = context.profile.role
    if role is None or role not in set(required_roles):
        return GuardDecision.redirect_login
    return GuardDecision.render
