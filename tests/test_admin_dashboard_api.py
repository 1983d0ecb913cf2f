from fastapi.testclient import TestClient
from stratix.main import app

client = TestClient(app)


def test_dashboard_overview():
    response = client.get("/api/admin/dashboard")

    assert response.status_code == 200
    body = response.json()
    assert body["message"] == "Admin dashboard data retrieved successfully"
    data = body["data"]
    assert data["overview"]["userStats"]["total"] == 6
    assert data["overview"]["companyStats"]["total"] == 2
    assert data["overview"]["systemHealth"]["status"] == "healthy"
    assert data["sectionErrors"] == {}
    assert data["metadata"]["refreshInterval"] == 30


def test_dashboard_reflects_invitations():
    client.post("/api/admin/invitations", json={"email": "x@acme.mx", "companyId": "company_1", "roleType": "empleado"})

    data = client.get("/api/admin/dashboard").json()["data"]

    assert data["overview"]["invitationStats"]["sent"] == 1
    assert data["activity"]["recentActions"]


def test_resolve_alert_action():
    response = client.post("/api/admin/dashboard", json={"action": "resolve_alert", "parameters": {"alertId": "alert_001"}})

    assert response.status_code == 200
    assert response.json()["message"] == "Security alert alert_001 resolved"

    alerts = client.get("/api/admin/dashboard").json()["data"]["activity"]["securityAlerts"]
    assert [alert["id"] for alert in alerts] == ["alert_002"]


def test_resolve_alert_without_id():
    response = client.post("/api/admin/dashboard", json={"action": "resolve_alert"})

    assert response.status_code == 400
    assert response.json()["error"] == "Alert ID is required"


def test_unknown_action():
    response = client.post("/api/admin/dashboard", json={"action": "format_disk"})

    assert response.status_code == 400
    assert response.json()["error"] == "Unknown action"


def test_cleanup_sessions_action():
    response = client.post("/api/admin/dashboard", json={"action": "cleanup_sessions"})

    assert response.status_code == 200
    assert response.json()["data"]["cleaned"] == 0
