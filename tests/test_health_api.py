from fastapi.testclient import TestClient
from stratix.main import app

client = TestClient(app)


def test_root():
    response = client.get("/")

    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_health_endpoints():
    assert client.get("/healthz").json() == {"status": "ok"}
    assert client.get("/api/health").json() == {"status": "ok"}


def test_database_check():
    response = client.get("/api/test-db")

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["message"] == "Database connection successful"
    assert body["data"]["dialect"] == "sqlite"


def test_unknown_route_uses_error_envelope():
    response = client.get("/api/nothing-here")

    assert response.status_code == 404
    assert response.json()["success"] is False
