from vorniq.models.models import AuditLog


def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json() == {"status": "ok"}


def test_public_config_exposes_app_name(client):
    r = client.get("/api/config")
    assert r.status_code == 200
    body = r.json()
    assert body["app_name"] == "Vorniq"
    assert "payment_key_id" in body


def test_login_returns_token_and_records_audit(client, admin_user, db):
    r = client.post("/api/auth/login", json={"email": admin_user.email, "password": "secret123"})
    assert r.status_code == 200
    token = r.json()["access_token"]

    me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert me.status_code == 200
    assert me.json()["email"] == admin_user.email
    assert me.json()["role_name"] == "Admin"
    assert "crm.customers.view" in me.json()["permissions"]

    db.expire_all()
    assert db.query(AuditLog).filter(AuditLog.action == "login").count() == 1


def test_login_rejects_bad_password(client, admin_user):
    r = client.post("/api/auth/login", json={"email": admin_user.email, "password": "wrong"})
    assert r.status_code == 401


def test_protected_route_requires_token(client):
    assert client.get("/api/crm/customers").status_code == 401
    r = client.get("/api/crm/customers", headers={"Authorization": "Bearer not-a-token"})
    assert r.status_code == 401


def test_change_password(client, admin_user, auth_headers):
    r = client.post("/api/auth/change-password", headers=auth_headers,
                    json={"current_password": "secret123", "new_password": "newsecret1"})
    assert r.status_code == 200
    r = client.post("/api/auth/login", json={"email": admin_user.email, "password": "newsecret1"})
    assert r.status_code == 200


def test_api_responses_are_not_cached(client, auth_headers):
    r = client.get("/api/crm/stats", headers=auth_headers)
    assert r.headers["Cache-Control"] == "no-cache, no-store, must-revalidate"
