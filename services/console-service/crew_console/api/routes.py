"""HTTP route definitions for the crew console."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable

import redis
from fastapi import APIRouter, Depends, Header, HTTPException, Query, Request, status
from fastapi.responses import RedirectResponse
from pydantic import BaseModel

from ..config import get_settings
from ..domain.account import Account
from ..domain.contracts import AccountForm
from ..domain.roles import Role
from ..errors import AuthError, ConsoleError, QueryError, ValidationError, WriteError
from ..guard import GuardDecision, evaluate
from ..navigation import LOGIN_PATH, ROUTES, home_path, nav_items, resolve
from ..notifications import Notice, Notifier
from ..repository import AccountRepository
from ..security.rate_limiter import LoginAttemptLimiter
from ..security.redis_rate_limiter import RedisLoginAttemptLimiter
from ..session import SessionContext, SessionProvider
from ..views import (
    AgentDashboard,
    CreateAgent,
    CreatePlayer,
    CreationView,
    DashboardView,
    ManageAgents,
    ManagePlayers,
    ManagementView,
    MasterAdminDashboard,
)

logger = logging.getLogger(__name__)

router = APIRouter()
fallback_router = APIRouter()


class NoticeResponse(BaseModel):
    title: str
    description: str
    variant: str

    @classmethod
    def from_domain(cls, notice: Notice) -> "NoticeResponse":
        return cls(title=notice.title, description=notice.description, variant=notice.variant.value)


class AccountResponse(BaseModel):
    """Serialised representation of an `Account` profile."""

    uid: str
    username: str
    email: str
    display_name: str
    role: str | None
    is_active: bool
    status: str
    created_by: str | None = None
    created_at: datetime | None = None

    @classmethod
    def from_domain(cls, account: Account) -> "AccountResponse":
        """Build a response model from the domain profile."""
        return cls(
            uid=account.uid,
            username=account.username,
            email=account.email,
            display_name=account.display_name,
            role=account.role.value if account.role else None,
            is_active=account.is_active,
            status="Active" if account.is_active else "Inactive",
            created_by=account.created_by,
            created_at=account.created_at,
        )


class NavItemResponse(BaseModel):
    href: str
    title: str


class LayoutResponse(BaseModel):
    """Header and sidebar data shared by every authenticated page."""

    display_name: str
    role: str
    nav: list[NavItemResponse]


class DashboardResponse(BaseModel):
    layout: LayoutResponse
    total: int
    active: int
    inactive: int
    recent: list[AccountResponse]
    notices: list[NoticeResponse] = []


class ManagementResponse(BaseModel):
    layout: LayoutResponse
    search: str
    total: int
    items: list[AccountResponse]
    notices: list[NoticeResponse] = []


class ToggleResponse(BaseModel):
    account: AccountResponse
    notices: list[NoticeResponse] = []


class CreationFormResponse(BaseModel):
    layout: LayoutResponse
    role: str
    form_fields: list[str]
    password_hint: str


class AccountFormRequest(BaseModel):
    """Payload of the registration and creation forms."""

    name: str = ""
    username: str = ""
    password: str = ""
    confirm_password: str = ""

    def to_form(self) -> AccountForm:
        return AccountForm(
            name=self.name.strip(),
            username=self.username.strip(),
            password=self.password,
            confirm_password=self.confirm_password,
        )


class CreateAccountResponse(BaseModel):
    account: AccountResponse
    redirect_to: str
    notices: list[NoticeResponse] = []


class LoginRequest(BaseModel):
    username: str
    password: str


class LoginResponse(BaseModel):
    """Session token returned after a successful sign-in."""

    access_token: str
    token_type: str = "bearer"
    expires_in: int | None = None
    redirect_to: str
    notices: list[NoticeResponse] = []


class PageResponse(BaseModel):
    view: str
    authenticated: bool = False
    redirect_to: str | None = None
    notices: list[NoticeResponse] = []


settings = get_settings()


def _build_rate_limiter() -> LoginAttemptLimiter | RedisLoginAttemptLimiter:
    """Instantiate the configured sign-in limiter, preferring Redis when available."""
    if settings.rate_limit_backend == "redis" and settings.redis_url:
        try:
            client = redis.from_url(settings.redis_url)
            # ensure connectivity early to fail fast and fall back
            client.ping()
            logger.info("login limiter configured for redis backend at %s", settings.redis_url)
            return RedisLoginAttemptLimiter(
                client,
                max_attempts=settings.login_rate_limit_requests,
                window_seconds=settings.login_rate_limit_window_seconds,
            )
        except redis.RedisError as exc:  # pragma: no cover - needs a broken redis
            logger.warning("redis login limiter unavailable, falling back to in-memory: %s", exc)

    logger.info("login limiter using in-memory backend")
    return LoginAttemptLimiter(
        max_attempts=settings.login_rate_limit_requests,
        window_seconds=settings.login_rate_limit_window_seconds,
    )


rate_limiter = _build_rate_limiter()


@dataclass(slots=True)
class RequestScope:
    """Per-request session context and the objects views are built from."""

    context: SessionContext
    sessions: SessionProvider
    accounts: AccountRepository
    notifier: Notifier

    def notices(self) -> list[NoticeResponse]:
        return [NoticeResponse.from_domain(notice) for notice in self.notifier.drain()]

    def layout(self) -> LayoutResponse:
        profile = self.context.profile
        if profile is None or profile.role is None:
            raise _login_redirect()
        return LayoutResponse(
            display_name=profile.display_name,
            role=profile.role.value,
            nav=[NavItemResponse(href=item.href, title=item.title) for item in nav_items(profile.role)],
        )


def _bearer_token(authorization: str | None) -> str | None:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def get_scope(
    request: Request,
    authorization: str | None = Header(default=None),
) -> RequestScope:
    """Resolve the caller's session from the bearer token into a fresh `SessionContext`."""
    accounts = AccountRepository(request.app.state.document_store)
    notifier = Notifier()
    context = SessionContext()
    sessions = SessionProvider(context, request.app.state.identity, accounts, notifier)
    try:
        sessions.restore(_bearer_token(authorization))
    except AuthError as exc:
        raise _http_error(exc, notifier) from exc
    return RequestScope(context=context, sessions=sessions, accounts=accounts, notifier=notifier)


def _login_redirect() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_303_SEE_OTHER,
        detail="login required",
        headers={"Location": LOGIN_PATH},
    )


def require_route(path: str) -> Callable[..., RequestScope]:
    """Dependency factory applying the route guard with the roles registered for ``path``."""
    route = ROUTES[path]

    def _guard(scope: RequestScope = Depends(get_scope)) -> RequestScope:
        decision = evaluate(scope.context, route.roles)
        if decision is GuardDecision.loading:
            raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="loading")
        if decision is GuardDecision.redirect_login:
            raise _login_redirect()
        return scope

    return _guard


@router.get("/", response_model=PageResponse)
def landing(scope: RequestScope = Depends(get_scope)):
    """Send signed-in admins and agents to their dashboard; everyone else sees the landing page."""
    target = home_path(scope.context.role) if scope.context.user else None
    if target:
        return RedirectResponse(target, status_code=status.HTTP_303_SEE_OTHER)
    return PageResponse(view="landing", authenticated=scope.context.user is not None)


@router.get("/login", response_model=PageResponse)
def login_page(scope: RequestScope = Depends(get_scope)) -> PageResponse:
    return PageResponse(
        view="login",
        authenticated=scope.context.user is not None,
        redirect_to=home_path(scope.context.role),
    )


@router.post("/login", response_model=LoginResponse)
def login(payload: LoginRequest, scope: RequestScope = Depends(get_scope)) -> LoginResponse:
    """Sign in with a username and password."""
    rate_key = payload.username.strip().lower()
    if not rate_limiter.allow(rate_key):
        raise HTTPException(status_code=status.HTTP_429_TOO_MANY_REQUESTS, detail="rate limited")
    try:
        session = scope.sessions.login(payload.username.strip(), payload.password)
    except AuthError as exc:
        raise _http_error(exc, scope.notifier) from exc
    rate_limiter.reset(rate_key)
    return LoginResponse(
        access_token=session.token,
        expires_in=session.expires_in,
        redirect_to=home_path(scope.context.role) or "/",
        notices=scope.notices(),
    )


@router.get("/register", response_model=PageResponse)
def register_page() -> PageResponse:
    return PageResponse(view="register")


@router.post("/register", response_model=CreateAccountResponse, status_code=status.HTTP_201_CREATED)
def register(payload: AccountFormRequest, scope: RequestScope = Depends(get_scope)) -> CreateAccountResponse:
    """Self-registration of a top-level administrator."""
    form = payload.to_form()
    try:
        form.validate()
    except ValidationError as exc:
        scope.notifier.failure("Validation Error", str(exc))
        raise _http_error(exc, scope.notifier) from exc
    try:
        account = scope.sessions.register(form.username, form.password, form.name, Role.MASTER_ADMIN)
    except ConsoleError as exc:
        raise _http_error(exc, scope.notifier) from exc
    return CreateAccountResponse(
        account=AccountResponse.from_domain(account),
        redirect_to=LOGIN_PATH,
        notices=scope.notices(),
    )


@router.post("/logout", response_model=PageResponse)
def logout(scope: RequestScope = Depends(get_scope)) -> PageResponse:
    try:
        scope.sessions.logout()
    except AuthError as exc:
        raise _http_error(exc, scope.notifier) from exc
    return PageResponse(view="login", redirect_to=LOGIN_PATH, notices=scope.notices())


def _dashboard(scope: RequestScope, view: DashboardView) -> DashboardResponse:
    stats = view.load()
    return DashboardResponse(
        layout=scope.layout(),
        total=stats.total,
        active=stats.active,
        inactive=stats.inactive,
        recent=[AccountResponse.from_domain(account) for account in stats.recent],
        notices=scope.notices(),
    )


@router.get("/master-admin", response_model=DashboardResponse)
def master_admin_dashboard(scope: RequestScope = Depends(require_route("/master-admin"))) -> DashboardResponse:
    return _dashboard(scope, MasterAdminDashboard(scope.context, scope.accounts))


@router.get("/agent", response_model=DashboardResponse)
def agent_dashboard(scope: RequestScope = Depends(require_route("/agent"))) -> DashboardResponse:
    return _dashboard(scope, AgentDashboard(scope.context, scope.accounts))


def _manage(scope: RequestScope, view: ManagementView, search: str) -> ManagementResponse:
    view.load()
    items = view.filtered(search)
    return ManagementResponse(
        layout=scope.layout(),
        search=search,
        total=len(view.records),
        items=[AccountResponse.from_domain(account) for account in items],
        notices=scope.notices(),
    )


def _toggle(scope: RequestScope, view: ManagementView, uid: str) -> ToggleResponse:
    try:
        view.fetch()
        account = view.toggle(uid)
    except ConsoleError as exc:
        raise _http_error(exc, scope.notifier) from exc
    return ToggleResponse(account=AccountResponse.from_domain(account), notices=scope.notices())


@router.get("/manage-agents", response_model=ManagementResponse)
def manage_agents(
    q: str = Query(default=""),
    scope: RequestScope = Depends(require_route("/manage-agents")),
) -> ManagementResponse:
    return _manage(scope, ManageAgents(scope.context, scope.accounts, scope.notifier), q)


@router.post("/manage-agents/{uid}/toggle", response_model=ToggleResponse)
def toggle_agent(uid: str, scope: RequestScope = Depends(require_route("/manage-agents"))) -> ToggleResponse:
    return _toggle(scope, ManageAgents(scope.context, scope.accounts, scope.notifier), uid)


@router.get("/manage-players", response_model=ManagementResponse)
def manage_players(
    q: str = Query(default=""),
    scope: RequestScope = Depends(require_route("/manage-players")),
) -> ManagementResponse:
    return _manage(scope, ManagePlayers(scope.context, scope.accounts, scope.notifier), q)


@router.post("/manage-players/{uid}/toggle", response_model=ToggleResponse)
def toggle_player(uid: str, scope: RequestScope = Depends(require_route("/manage-players"))) -> ToggleResponse:
    return _toggle(scope, ManagePlayers(scope.context, scope.accounts, scope.notifier), uid)


def _creation_form(scope: RequestScope, view: CreationView) -> CreationFormResponse:
    return CreationFormResponse(
        layout=scope.layout(),
        role=view.created_role.value,
        form_fields=["name", "username", "password", "confirm_password"],
        password_hint=f"Password must be at least {settings.min_password_length} characters",
    )


def _create(scope: RequestScope, view: CreationView, payload: AccountFormRequest) -> CreateAccountResponse:
    try:
        redirect_to = view.submit(payload.to_form())
    except ConsoleError as exc:
        raise _http_error(exc, scope.notifier) from exc
    if view.created is None:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="account was not created")
    return CreateAccountResponse(
        account=AccountResponse.from_domain(view.created),
        redirect_to=redirect_to,
        notices=scope.notices(),
    )


@router.get("/create-agent", response_model=CreationFormResponse)
def create_agent_form(scope: RequestScope = Depends(require_route("/create-agent"))) -> CreationFormResponse:
    return _creation_form(scope, CreateAgent(scope.context, scope.sessions, scope.notifier))


@router.post("/create-agent", response_model=CreateAccountResponse, status_code=status.HTTP_201_CREATED)
def create_agent(
    payload: AccountFormRequest,
    scope: RequestScope = Depends(require_route("/create-agent")),
) -> CreateAccountResponse:
    return _create(scope, CreateAgent(scope.context, scope.sessions, scope.notifier), payload)


@router.get("/create-player", response_model=CreationFormResponse)
def create_player_form(scope: RequestScope = Depends(require_route("/create-player"))) -> CreationFormResponse:
    return _creation_form(scope, CreatePlayer(scope.context, scope.sessions, scope.notifier))


@router.post("/create-player", response_model=CreateAccountResponse, status_code=status.HTTP_201_CREATED)
def create_player(
    payload: AccountFormRequest,
    scope: RequestScope = Depends(require_route("/create-player")),
) -> CreateAccountResponse:
    return _create(scope, CreatePlayer(scope.context, scope.sessions, scope.notifier), payload)


@fallback_router.get("/{path:path}", response_model=PageResponse, status_code=status.HTTP_404_NOT_FOUND)
def not_found(path: str) -> PageResponse:
    """Wildcard route for paths missing from the route table."""
    return PageResponse(view=resolve(f"/{path}").view)


_AUTH_STATUS = {
    "credentials": status.HTTP_401_UNAUTHORIZED,
    "inactive": status.HTTP_401_UNAUTHORIZED,
    "duplicate": status.HTTP_409_CONFLICT,
    "forbidden": status.HTTP_403_FORBIDDEN,
    "unavailable": status.HTTP_503_SERVICE_UNAVAILABLE,
}


def _http_error(exc: ConsoleError, notifier: Notifier | None = None) -> HTTPException:
    """Map a console error to an HTTP error whose detail carries the pending notices."""
    notices = notifier.drain() if notifier is not None else []
    status_code = status.HTTP_400_BAD_REQUEST
    if isinstance(exc, ValidationError):
        status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    elif isinstance(exc, AuthError):
        status_code = _AUTH_STATUS.get(exc.reason, status.HTTP_400_BAD_REQUEST)
    elif isinstance(exc, WriteError):
        status_code = status.HTTP_404_NOT_FOUND if exc.not_found else status.HTTP_502_BAD_GATEWAY
    elif isinstance(exc, QueryError):
        status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    detail = {
        "message": str(exc),
        "notices": [NoticeResponse.from_domain(notice).model_dump() for notice in notices],
    }
    return HTTPException(status_code=status_code, detail=detail)
