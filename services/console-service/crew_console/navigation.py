"""Route table, per-role navigation and landing redirects."""

from __future__ import annotations

from dataclasses import dataclass

from .domain.roles import Role

LOGIN_PATH = "/login"


@dataclass(frozen=True, slots=True)
class Route:
    path: str
    view: str
    roles: frozenset[Role] = frozenset()

    @property
    def protected(self) -> bool:
        return bool(self.roles)


@dataclass(frozen=True, slots=True)
class NavItem:
    href: str
    title: str


_ADMIN = frozenset({Role.MASTER_ADMIN})
_AGENT = frozenset({Role.AGENT})

ROUTES: dict[str, Route] = {
    route.path: route
    for route in (
        Route("/", "landing"),
        Route("/login", "login"),
        Route("/register", "register"),
        Route("/master-admin", "master-admin-dashboard", _ADMIN),
        Route("/create-agent", "create-agent", _ADMIN),
        Route("/manage-agents", "manage-agents", _ADMIN),
        Route("/agent", "agent-dashboard", _AGENT),
        Route("/create-player", "create-player", _AGENT),
        Route("/manage-players", "manage-players", _AGENT),
    )
}

NOT_FOUND = Route("*", "not-found")

# Dashboard, creation and management paths for each tier that manages another.
_SECTIONS: dict[Role, tuple[str, str, str]] = {
    Role.MASTER_ADMIN: ("/master-admin", "/create-agent", "/manage-agents"),
    Role.AGENT: ("/agent", "/create-player", "/manage-players"),
}


def resolve(path: str) -> Route:
    """Return the route registered for ``path`` or the wildcard fallback."""
    return ROUTES.get(path.rstrip("/") or "/", NOT_FOUND)


def home_path(role: Role | None) -> str | None:
    """Dashboard path for a role; players have none."""
    section = _SECTIONS.get(role) if role else None
    return section[0] if section else None


def management_path(role: Role) -> str:
    """Path of the view listing accounts of ``role``."""
    parent = role.parent
    if parent is None or parent not in _SECTIONS:
        raise ValueError(f"no management view for {role.value}")
    return _SECTIONS[parent][2]


def nav_items(role: Role | None) -> list[NavItem]:
    """Sidebar entries of the dashboard layout for a role."""
    section = _SECTIONS.get(role) if role else None
    if section is None or role is None or role.child is None:
        return []
    dashboard, create, manage = section
    label = role.child.label
    return [
        NavItem(dashboard, "Dashboard"),
        NavItem(create, f"Create {label}"),
        NavItem(manage, f"Manage {label}s"),
    ]
