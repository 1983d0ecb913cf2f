from fastapi.testclient import TestClient
from stratix.main import app

client = TestClient(app)

INVITATION = {"email": "nuevo@acme.mx", "companyId": "company_1", "roleType": "empleado"}


def create_invitation(payload=None):
    response = client.post("/api/admin/invitations", json=payload or INVITATION)
    assert response.status_code == 200
    return response.json()["data"]


def test_create_invitation():
    response = client.post("/api/admin/invitations", json=INVITATION)

    assert response.status_code == 200
    body = response.json()
    assert body["message"] == "Invitation created successfully"
    assert body["data"]["status"] == "sent"
    assert body["data"]["companyName"] == "Acme México"


def test_duplicate_pending_invitation_returns_409():
    first = create_invitation()

    response = client.post("/api/admin/invitations", json=INVITATION)

    assert response.status_code == 409
    body = response.json()
    assert body["success"] is False
    assert body["details"]["invitationId"] == first["id"]


def test_invalid_invitation_data():
    response = client.post("/api/admin/invitations", json={"email": "no-email", "companyId": "company_1"})

    assert response.status_code == 400
    body = response.json()
    assert body["error"] == "Invalid invitation data"
    assert {issue["path"][0] for issue in body["details"]["issues"]} == {"email", "roleType"}


def test_batch_invitations():
    create_invitation({**INVITATION, "email": "dup@acme.mx"})

    response = client.post("/api/admin/invitations", json={
        "companyId": "company_1",
        "defaultRole": "empleado",
        "invitations": [{"email": "a@acme.mx"}, {"email": "dup@acme.mx"}],
    })

    assert response.status_code == 200
    body = response.json()
    assert body["message"] == "Batch invitation created: 1/2 successful"
    assert body["data"]["failures"][0]["email"] == "dup@acme.mx"


def test_list_update_and_cancel():
    created = create_invitation()

    listed = client.get("/api/admin/invitations?status=sent").json()["data"]
    assert [item["id"] for item in listed["invitations"]] == [created["id"]]

    response = client.put("/api/admin/invitations", json={"invitationId": created["id"], "roleType": "gerente"})
    assert response.status_code == 200
    assert response.json()["data"]["roleType"] == "gerente"

    response = client.request("DELETE", "/api/admin/invitations", json={"invitationIds": [created["id"]], "reason": "Error"})
    assert response.status_code == 200
    assert response.json()["message"] == "Cancelled 1/1 invitations"

    listed = client.get("/api/admin/invitations").json()["data"]
    assert listed["statistics"]["cancelled"] == 1


def test_accept_invitation_creates_profile():
    created = create_invitation()

    response = client.post(
        "/api/admin/invitations/accept",
        headers={"x-test-user-id": "user_new"},
        json={"invitationCode": created["invitationCode"]},
    )

    assert response.status_code == 200
    assert response.json()["data"]["companyId"] == "company_1"

    # The new employee now has a profile but still no admin access
    response = client.get("/api/admin/users", headers={"x-test-user-id": "user_new"})
    assert response.status_code == 403
    assert response.json()["error"] == "Admin or Manager access required"


def test_accept_with_other_email_is_forbidden():
    created = create_invitation()

    response = client.post(
        "/api/admin/invitations/accept",
        headers={"x-test-user-id": "user_3"},
        json={"invitationCode": created["invitationCode"]},
    )

    assert response.status_code == 403


def test_manager_cannot_invite():
    response = client.post("/api/admin/invitations", headers={"x-test-user-id": "user_1"}, json=INVITATION)

    assert response.status_code == 403
