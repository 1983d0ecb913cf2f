from fastapi.testclient import TestClient
from stratix.main import app
from stratix.core.rate_limit import rate_limiter

client = TestClient(app)

ANONYMOUS = {"x-test-anonymous": "1"}


def test_anonymous_requests_are_unauthorized():
    for method, path in [
        ("post", "/api/onboarding/start"),
        ("get", "/api/onboarding/status"),
        ("get", "/api/admin/users"),
        ("get", "/api/admin/invitations"),
        ("get", "/api/admin/dashboard"),
    ]:
        response = client.request(method, path, headers=ANONYMOUS, json={} if method == "post" else None)
        assert response.status_code == 401, path
        assert response.json() == {"success": False, "error": "Unauthorized"}


def test_user_without_profile_is_forbidden_from_admin():
    response = client.get("/api/admin/users", headers={"x-test-user-id": "user_new"})

    assert response.status_code == 403
    assert response.json()["error"] == "User profile not found"


def test_employee_is_forbidden_from_admin():
    response = client.get("/api/admin/users", headers={"x-test-user-id": "user_2"})

    assert response.status_code == 403
    assert response.json()["error"] == "Admin or Manager access required"


def test_manager_cannot_use_admin_only_routes():
    headers = {"x-test-user-id": "user_1"}

    assert client.get("/api/admin/dashboard", headers=headers).status_code == 403
    response = client.post("/api/admin/users", headers=headers, json={"action": "activate", "userIds": ["user_2"]})
    assert response.status_code == 403
    assert response.json()["error"] == "Admin access required"


def test_profileless_user_can_onboard():
    response = client.post("/api/onboarding/start", json={}, headers={"x-test-user-id": "user_new"})

    assert response.status_code == 200


def test_session_start_is_rate_limited():
    for _ in range(10):
        assert client.post("/api/onboarding/start", json={}).status_code == 200

    response = client.post("/api/onboarding/start", json={})

    assert response.status_code == 429
    body = response.json()
    assert body["error"] == "Rate limit exceeded"
    assert body["details"]["category"] == "session"


def test_rate_limit_is_per_user():
    for _ in range(10):
        client.post("/api/onboarding/start", json={})

    response = client.post("/api/onboarding/start", json={}, headers={"x-test-user-id": "user_1"})

    assert response.status_code == 200


def test_rate_limit_counts_per_route_not_per_url(monkeypatch):
    monkeypatch.setitem(rate_limiter.limits, "standard", 2)

    assert client.get("/api/onboarding/session/session_a").status_code == 404
    assert client.get("/api/onboarding/session/session_b").status_code == 404

    response = client.get("/api/onboarding/session/session_c")

    assert response.status_code == 429
    assert response.json()["details"]["category"] == "standard"
