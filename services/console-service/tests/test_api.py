from __future__ import annotations

import pytest
from fastapi import HTTPException
from fastapi.testclient import TestClient

from crew_console.api import routes
from crew_console.main import app
from crew_console.notifications import Notifier
from crew_console.repository import USERS_COLLECTION, AccountRepository
from crew_console.session import SessionContext


def _form(name: str, username: str, password: str = "secret-pass", confirm: str | None = None) -> dict:
    return {
        "name": name,
        "username": username,
        "password": password,
        "confirm_password": password if confirm is None else confirm,
    }


def _login(client, username: str, password: str = "secret-pass") -> dict[str, str]:
    response = client.post("/login", json={"username": username, "password": password})
    assert response.status_code == 200, response.text
    return {"Authorization": f"Bearer {response.json()['access_token']}"}


def _admin(client) -> dict[str, str]:
    assert client.post("/register", json=_form("Boss", "boss")).status_code == 201
    return _login(client, "boss")


def test_unauthenticated_visit_redirects_to_login(api_client):
    response = api_client.get("/manage-agents", follow_redirects=False)
    assert response.status_code == 303
    assert response.headers["location"] == "/login"


def test_invalid_token_redirects_to_login(api_client):
    response = api_client.get(
        "/master-admin", headers={"Authorization": "Bearer garbage"}, follow_redirects=False
    )
    assert response.status_code == 303


def test_register_and_login_returns_dashboard_redirect(api_client):
    created = api_client.post("/register", json=_form("Boss", "boss"))
    assert created.status_code == 201
    body = created.json()
    assert body["account"]["role"] == "masterAdmin"
    assert body["redirect_to"] == "/login"
    assert body["notices"][0]["title"] == "Account created"

    login = api_client.post("/login", json={"username": "boss", "password": "secret-pass"})
    assert login.status_code == 200
    assert login.json()["redirect_to"] == "/master-admin"
    assert login.json()["token_type"] == "bearer"


def test_register_rejects_mismatched_confirmation(api_client, identity, store):
    response = api_client.post("/register", json=_form("Boss", "boss", confirm="other-pass"))
    assert response.status_code == 422
    assert response.json()["detail"]["message"] == "Passwords do not match"
    assert identity.calls == []
    assert store.calls == []


def test_register_duplicate_username_conflicts(api_client):
    api_client.post("/register", json=_form("Boss", "boss"))
    response = api_client.post("/register", json=_form("Boss again", "boss"))
    assert response.status_code == 409


def test_login_with_bad_password_is_unauthorized(api_client):
    api_client.post("/register", json=_form("Boss", "boss"))
    response = api_client.post("/login", json={"username": "boss", "password": "nope-nope"})
    assert response.status_code == 401


def test_login_respects_rate_limits(api_client):
    api_client.post("/register", json=_form("Boss", "boss"))
    payload = {"username": "boss", "password": "wrong-pass"}

    statuses = [api_client.post("/login", json=payload).status_code for _ in range(4)]
    assert statuses == [401, 401, 401, 429]


def test_successful_login_resets_attempts(api_client):
    api_client.post("/register", json=_form("Boss", "boss"))
    bad = {"username": "boss", "password": "wrong-pass"}
    api_client.post("/login", json=bad)
    api_client.post("/login", json=bad)
    _login(api_client, "boss")

    statuses = [api_client.post("/login", json=bad).status_code for _ in range(3)]
    assert statuses == [401, 401, 401]


def test_create_agent_then_manage_agents_lists_it(api_client):
    headers = _admin(api_client)

    form = api_client.get("/create-agent", headers=headers)
    assert form.status_code == 200
    assert form.json()["role"] == "agent"
    assert [item["href"] for item in form.json()["layout"]["nav"]] == [
        "/master-admin",
        "/create-agent",
        "/manage-agents",
    ]

    created = api_client.post("/create-agent", json=_form("Alice", "agent1"), headers=headers)
    assert created.status_code == 201
    assert created.json()["redirect_to"] == "/manage-agents"

    listing = api_client.get("/manage-agents", headers=headers).json()
    assert listing["total"] == 1
    (alice,) = listing["items"]
    assert alice["display_name"] == "Alice"
    assert alice["status"] == "Active"
    assert alice["role"] == "agent"
    assert alice["created_by"] == created.json()["account"]["created_by"] is not None
    assert listing["layout"]["display_name"] == "Boss"


def test_manage_agents_search(api_client):
    headers = _admin(api_client)
    api_client.post("/create-agent", json=_form("Alice", "agent1"), headers=headers)
    api_client.post("/create-agent", json=_form("Bob", "agent2"), headers=headers)

    response = api_client.get("/manage-agents", params={"q": "ALI"}, headers=headers).json()
    assert response["total"] == 2
    assert [item["display_name"] for item in response["items"]] == ["Alice"]


def test_toggle_agent_and_refetch(api_client):
    headers = _admin(api_client)
    uid = api_client.post("/create-agent", json=_form("Alice", "agent1"), headers=headers).json()["account"]["uid"]

    toggled = api_client.post(f"/manage-agents/{uid}/toggle", headers=headers)
    assert toggled.status_code == 200
    assert toggled.json()["account"]["status"] == "Inactive"
    assert toggled.json()["notices"][-1]["title"] == "Agent Updated"

    listing = api_client.get("/manage-agents", headers=headers).json()
    assert listing["items"][0]["status"] == "Inactive"

    dashboard = api_client.get("/master-admin", headers=headers).json()
    assert (dashboard["total"], dashboard["active"], dashboard["inactive"]) == (1, 0, 1)


def test_toggle_unknown_agent_is_not_found(api_client):
    headers = _admin(api_client)
    response = api_client.post("/manage-agents/missing/toggle", headers=headers)
    assert response.status_code == 404


def test_agent_flow_and_role_separation(api_client, store):
    admin = _admin(api_client)
    api_client.post("/create-agent", json=_form("Alice", "agent1"), headers=admin)
    agent = _login(api_client, "agent1")

    assert api_client.get("/manage-agents", headers=agent, follow_redirects=False).status_code == 303
    assert api_client.get("/manage-players", headers=admin, follow_redirects=False).status_code == 303

    created = api_client.post("/create-player", json=_form("Pat", "player1"), headers=agent)
    assert created.status_code == 201
    assert created.json()["redirect_to"] == "/manage-players"

    dashboard = api_client.get("/agent", headers=agent).json()
    assert dashboard["total"] == 1
    assert dashboard["recent"][0]["display_name"] == "Pat"

    uid = created.json()["account"]["uid"]
    assert store.documents[(USERS_COLLECTION, uid)].fields["role"] == "player"


def test_deactivated_agent_cannot_sign_in(api_client):
    admin = _admin(api_client)
    uid = api_client.post("/create-agent", json=_form("Alice", "agent1"), headers=admin).json()["account"]["uid"]
    api_client.post(f"/manage-agents/{uid}/toggle", headers=admin)

    response = api_client.post("/login", json={"username": "agent1", "password": "secret-pass"})
    assert response.status_code == 401
    assert response.json()["detail"]["message"] == "account is deactivated"


def test_create_agent_validation_error(api_client, identity):
    headers = _admin(api_client)
    identity.calls.clear()
    response = api_client.post("/create-agent", json=_form("Alice", "agent1", confirm="x"), headers=headers)
    assert response.status_code == 422
    assert identity.calls == []


def test_landing_redirects_signed_in_users(api_client):
    anonymous = api_client.get("/")
    assert anonymous.status_code == 200
    assert anonymous.json()["view"] == "landing"

    headers = _admin(api_client)
    response = api_client.get("/", headers=headers, follow_redirects=False)
    assert response.status_code == 303
    assert response.headers["location"] == "/master-admin"


def test_logout_revokes_token(api_client):
    headers = _admin(api_client)
    response = api_client.post("/logout", headers=headers)
    assert response.status_code == 200
    assert response.json()["notices"][-1]["title"] == "Logged out"

    after = api_client.get("/master-admin", headers=headers, follow_redirects=False)
    assert after.status_code == 303


def test_unknown_path_is_not_found(api_client):
    response = api_client.get("/does/not/exist")
    assert response.status_code == 404
    assert response.json()["view"] == "not-found"


def test_service_app_exposes_health_metrics_and_fallback():
    client = TestClient(app)
    assert client.get("/healthz").json() == {"status": "ok"}
    assert client.get("/metrics").status_code == 200
    assert client.get("/nowhere").status_code == 404


def test_failed_login_returns_destructive_notice(api_client):
    api_client.post("/register", json=_form("Boss", "boss"))
    response = api_client.post("/login", json={"username": "boss", "password": "nope-nope"})
    assert response.status_code == 401
    detail = response.json()["detail"]
    assert detail["message"] == "invalid username or password"
    (notice,) = detail["notices"]
    assert notice["title"] == "Login failed"
    assert notice["variant"] == "destructive"


def test_failed_toggle_returns_destructive_notice(api_client, store):
    headers = _admin(api_client)
    uid = api_client.post("/create-agent", json=_form("Alice", "agent1"), headers=headers).json()["account"]["uid"]

    store.fail_updates = True
    response = api_client.post(f"/manage-agents/{uid}/toggle", headers=headers)
    assert response.status_code == 502
    notices = response.json()["detail"]["notices"]
    assert notices[-1]["description"] == "Failed to update agent status"
    assert notices[-1]["variant"] == "destructive"


def test_toggle_during_store_outage_is_unavailable_not_missing(api_client, store):
    headers = _admin(api_client)
    uid = api_client.post("/create-agent", json=_form("Alice", "agent1"), headers=headers).json()["account"]["uid"]

    store.fail_queries = True
    response = api_client.post(f"/manage-agents/{uid}/toggle", headers=headers)
    assert response.status_code == 503
    assert response.json()["detail"]["notices"][-1]["description"] == "Failed to load agents"
    assert "update_fields" not in store.calls


def test_register_validation_error_posts_notice(api_client):
    response = api_client.post("/register", json=_form("", "boss"))
    assert response.status_code == 422
    detail = response.json()["detail"]
    assert detail["message"] == "Please fill in all fields"
    assert [notice["title"] for notice in detail["notices"]] == ["Validation Error"]


def test_create_agent_validation_error_posts_notice(api_client):
    headers = _admin(api_client)
    response = api_client.post("/create-agent", json=_form("Alice", "agent1", confirm="x"), headers=headers)
    assert response.json()["detail"]["notices"][-1]["title"] == "Validation Error"


def test_layout_without_profile_redirects_to_login(store):
    scope = routes.RequestScope(
        context=SessionContext(),
        sessions=None,
        accounts=AccountRepository(store),
        notifier=Notifier(),
    )
    with pytest.raises(HTTPException) as excinfo:
        scope.layout()
    assert excinfo.value.status_code == 303
    assert excinfo.value.headers["Location"] == "/login"
