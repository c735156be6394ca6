from vorniq.models.models import Permission, Role


def _role_id(db, name):
    return db.query(Role).filter(Role.name == name).one().id


def test_default_roles_are_seeded(client, auth_headers):
    roles = {r["name"]: r for r in client.get("/api/roles", headers=auth_headers).json()}
    assert {"Admin", "Sales Manager", "HR Manager", "Accountant", "Viewer"} <= set(roles)
    assert roles["Admin"]["user_count"] == 1
    assert roles["Viewer"]["permission_count"] == 1


def test_module_access_follows_role_permissions(client, make_headers):
    viewer = make_headers("vera", "Viewer")
    assert client.get("/api/dashboard/kpis", headers=viewer).status_code == 200
    assert client.get("/api/crm/customers", headers=viewer).status_code == 403
    assert client.get("/api/roles", headers=viewer).status_code == 403

    sales = make_headers("sally", "Sales Manager")
    assert client.get("/api/crm/customers", headers=sales).status_code == 200
    assert client.get("/api/hrm/employees", headers=sales).status_code == 403


def test_inactive_role_loses_module_access(client, auth_headers, make_headers, db):
    accountant = make_headers("arun", "Accountant")
    assert client.get("/api/accounting/stats", headers=accountant).status_code == 200

    role_id = _role_id(db, "Accountant")
    toggled = client.post(f"/api/roles/{role_id}/toggle", headers=auth_headers).json()
    assert toggled["is_active"] is False
    assert client.get("/api/accounting/stats", headers=accountant).status_code == 403


def test_admin_cannot_deactivate_own_role(client, auth_headers, db):
    r = client.post(f"/api/roles/{_role_id(db, 'Admin')}/toggle", headers=auth_headers)
    assert r.status_code == 400


def test_admin_role_survives_update(client, auth_headers, admin_user, db):
    admin_role_id = _role_id(db, "Admin")

    renamed = client.put(f"/api/roles/{admin_role_id}", headers=auth_headers, json={"name": "Administrators"})
    assert renamed.status_code == 400
    deactivated = client.put(f"/api/roles/{admin_role_id}", headers=auth_headers, json={"is_active": False})
    assert deactivated.status_code == 400
    demoted = client.put(f"/api/roles/users/{admin_user.id}", headers=auth_headers,
                         json={"role_id": _role_id(db, "Viewer")})
    assert demoted.status_code == 400

    described = client.put(f"/api/roles/{admin_role_id}", headers=auth_headers, json={"description": "Everything"})
    assert described.status_code == 200
    assert client.get("/api/roles", headers=auth_headers).status_code == 200


def test_role_with_users_cannot_be_deleted(client, auth_headers, make_headers, db):
    make_headers("hana", "HR Manager")
    role_id = _role_id(db, "HR Manager")

    r = client.delete(f"/api/roles/{role_id}", headers=auth_headers)
    assert r.status_code == 400
    assert r.json()["detail"] == "Cannot delete role with assigned users"

    empty = client.post("/api/roles", headers=auth_headers, json={"name": "Auditor"}).json()
    r = client.delete(f"/api/roles/{empty['id']}", headers=auth_headers)
    assert r.json() == {"ok": True, "deleted": empty["id"]}


def test_duplicate_role_name_is_rejected(client, auth_headers):
    r = client.post("/api/roles", headers=auth_headers, json={"name": "viewer"})
    assert r.status_code == 400


def test_assign_permissions_grants_module(client, auth_headers, make_headers, db):
    role = client.post("/api/roles", headers=auth_headers, json={"name": "Warehouse"}).json()
    perm_id = db.query(Permission).filter(Permission.name == "sim.stock.view").one().id

    r = client.put(f"/api/roles/{role['id']}/permissions", headers=auth_headers, json={"permission_ids": [perm_id]})
    assert r.status_code == 200
    assert [p["name"] for p in r.json()] == ["sim.stock.view"]

    bad = client.put(f"/api/roles/{role['id']}/permissions", headers=auth_headers, json={"permission_ids": [99999]})
    assert bad.status_code == 400

    worker = make_headers("wes", "Warehouse")
    assert client.get("/api/sim/products", headers=worker).status_code == 200


def test_user_management_rules(client, auth_headers, admin_user, db):
    created = client.post("/api/roles/users", headers=auth_headers, json={
        "username": "nina", "email": "nina@vorniq.test", "password": "longenough",
        "role_id": _role_id(db, "Viewer"),
    })
    assert created.status_code == 200, created.text
    assert created.json()["role_name"] == "Viewer"

    dup = client.post("/api/roles/users", headers=auth_headers,
                      json={"username": "nina", "email": "other@vorniq.test", "password": "longenough"})
    assert dup.status_code == 400

    short = client.post("/api/roles/users", headers=auth_headers,
                        json={"username": "omar", "email": "omar@vorniq.test", "password": "123"})
    assert short.status_code == 400

    assert client.delete(f"/api/roles/users/{admin_user.id}", headers=auth_headers).status_code == 400
    assert client.put(f"/api/roles/users/{admin_user.id}", headers=auth_headers,
                      json={"is_active": False}).status_code == 400

    login = client.post("/api/auth/login", json={"email": "nina@vorniq.test", "password": "longenough"})
    assert login.status_code == 200


def test_writes_are_audited(client, auth_headers):
    client.post("/api/roles", headers=auth_headers, json={"name": "Support"})
    client.post("/api/roles/permissions", headers=auth_headers,
                json={"module": "crm", "resource": "tickets", "action": "view"})

    logs = client.get("/api/roles/audit-logs?category=access_control", headers=auth_headers).json()
    assert {(l["action"], l["resource"]) for l in logs} == {("create", "roles"), ("create", "permissions")}
    assert all(l["user"] == "admin@vorniq.test" for l in logs)

    stats = client.get("/api/roles/audit-logs/stats", headers=auth_headers).json()
    assert stats["total"] == 2
    assert stats["by_severity"]["medium"] == 2

    assert client.get("/api/roles/audit-logs?date_range=decade", headers=auth_headers).status_code == 400
