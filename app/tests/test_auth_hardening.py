def _put_entry(client, headers):
    return client.put(
        "/time_entries",
        json={"project_id": "p-1", "year": 2026, "month": 3, "day": 2, "type": "BO", "hours": "8"},
        headers=headers,
    )


def test_missing_authorization_header_401(client):
    assert _put_entry(client, {}).status_code == 401


def test_wrong_scheme_401(client, admin_headers):
    token = admin_headers["Authorization"].split(" ", 1)[1]
    assert _put_entry(client, {"Authorization": f"Basic {token}"}).status_code == 401


def test_garbled_bearer_token_401(client):
    assert _put_entry(client, {"Authorization": "Bearer not-a-real-token"}).status_code == 401


def test_unknown_role_cannot_get_a_token(client):
    resp = client.post("/auth/token", json={"user_id": "u-1", "role": "ACCOUNTANT"})
    assert resp.status_code == 400
    assert "Unknown role" in resp.text


def test_project_manager_cannot_create_projects(client, manager_headers):
    resp = client.post(
        "/projects",
        json={"project_number": "P-9", "designation": "x", "type": "AT"},
        headers=manager_headers,
    )
    assert resp.status_code == 403
    assert "Insufficient role" in resp.text


def test_unknown_project_is_404(client, admin_headers):
    resp = _put_entry(client, admin_headers)
    assert resp.status_code == 404
    assert resp.json()["kind"] == "NOT_FOUND"
