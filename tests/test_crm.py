from datetime import date, timedelta


def _create_lead(client, headers, **data):
    r = client.post("/api/crm/leads", headers=headers, json=data)
    assert r.status_code == 200, r.text
    return r.json()


def test_lead_stage_filter_returns_only_matching_rows(client, auth_headers):
    acme = _create_lead(client, auth_headers, name="Acme", stage="new", value=1000)
    _create_lead(client, auth_headers, name="Beta", stage="qualified", value=2000)

    r = client.get("/api/crm/leads?stage=new", headers=auth_headers)
    assert r.status_code == 200
    assert [l["id"] for l in r.json()] == [acme["id"]]


def test_lead_search_and_stage_filters_combine(client, auth_headers):
    _create_lead(client, auth_headers, name="Acme Corp", company="Acme", stage="new")
    _create_lead(client, auth_headers, name="Acme Labs", company="Acme", stage="proposal")
    _create_lead(client, auth_headers, name="Zeta", company="Zeta", stage="new")

    r = client.get("/api/crm/leads", headers=auth_headers, params={"search": "acme", "stage": "new"})
    assert [l["name"] for l in r.json()] == ["Acme Corp"]


def test_unknown_stage_is_rejected(client, auth_headers):
    r = client.post("/api/crm/leads", headers=auth_headers, json={"name": "X", "stage": "won"})
    assert r.status_code == 400
    assert "closed_won" in r.json()["detail"]

    r = client.get("/api/crm/leads?stage=bogus", headers=auth_headers)
    assert r.status_code == 400


def test_create_customer_then_list_adds_exactly_one_row(client, auth_headers):
    before = client.get("/api/crm/customers", headers=auth_headers).json()

    r = client.post("/api/crm/customers", headers=auth_headers,
                    json={"name": "Globex", "email": "info@globex.example", "source": "website"})
    assert r.status_code == 200
    created = r.json()

    after = client.get("/api/crm/customers", headers=auth_headers).json()
    assert len(after) == len(before) + 1
    row = next(c for c in after if c["id"] == created["id"])
    assert row["name"] == "Globex"
    assert row["email"] == "info@globex.example"


def test_customer_requires_name(client, auth_headers):
    r = client.post("/api/crm/customers", headers=auth_headers, json={"email": "x@example.com"})
    assert r.status_code == 400


def test_delete_customer_then_list_excludes_it(client, auth_headers):
    created = client.post("/api/crm/customers", headers=auth_headers, json={"name": "Initech"}).json()

    r = client.delete(f"/api/crm/customers/{created['id']}", headers=auth_headers)
    assert r.json() == {"ok": True, "deleted": created["id"]}

    ids = [c["id"] for c in client.get("/api/crm/customers", headers=auth_headers).json()]
    assert created["id"] not in ids
    assert client.get(f"/api/crm/customers/{created['id']}", headers=auth_headers).status_code == 404


def test_update_lead_only_touches_given_fields(client, auth_headers):
    lead = _create_lead(client, auth_headers, name="Hooli", email="a@hooli.example", value=500)
    r = client.put(f"/api/crm/leads/{lead['id']}", headers=auth_headers, json={"stage": "contacted"})
    assert r.status_code == 200
    body = r.json()
    assert body["stage"] == "contacted"
    assert body["email"] == "a@hooli.example"
    assert body["value"] == 500


def test_stats_and_funnel(client, auth_headers):
    _create_lead(client, auth_headers, name="A", stage="new", value=100)
    _create_lead(client, auth_headers, name="B", stage="closed_won", value=300)
    _create_lead(client, auth_headers, name="C", stage="closed_lost", value=50)
    _create_lead(client, auth_headers, name="D", stage="new", value=200)
    client.post("/api/crm/follow-ups", headers=auth_headers,
                json={"title": "Call A", "due_date": (date.today() + timedelta(days=1)).isoformat()})
    client.post("/api/crm/follow-ups", headers=auth_headers,
                json={"title": "Old", "due_date": (date.today() - timedelta(days=3)).isoformat()})

    stats = client.get("/api/crm/stats", headers=auth_headers).json()
    assert stats["active_leads"] == 2
    assert stats["conversion_rate"] == 25
    assert stats["pending_followups"] == 1

    funnel = client.get("/api/crm/funnel", headers=auth_headers).json()
    assert funnel[0] == {"stage": "new", "count": 2, "value": 300.0}
    assert [f["stage"] for f in funnel] == ["new", "closed_won", "closed_lost"]


def test_follow_up_complete(client, auth_headers):
    lead = _create_lead(client, auth_headers, name="Lead")
    fu = client.post("/api/crm/follow-ups", headers=auth_headers,
                     json={"title": "Demo", "lead_id": lead["id"], "due_date": date.today().isoformat(),
                           "priority": "high"}).json()
    assert fu["status"] == "pending"
    assert fu["lead_name"] == "Lead"

    done = client.post(f"/api/crm/follow-ups/{fu['id']}/complete", headers=auth_headers, json={}).json()
    assert done["status"] == "completed"
    assert done["completed_at"] is not None

    pending = client.get("/api/crm/follow-ups?status=pending", headers=auth_headers).json()
    assert pending == []


def test_communication_requires_a_target(client, auth_headers):
    r = client.post("/api/crm/communications", headers=auth_headers, json={"type": "email", "subject": "Hi"})
    assert r.status_code == 400

    customer = client.post("/api/crm/customers", headers=auth_headers, json={"name": "Umbrella"}).json()
    r = client.post("/api/crm/communications", headers=auth_headers,
                    json={"type": "call", "customer_id": customer["id"], "direction": "incoming"})
    assert r.status_code == 200
    assert r.json()["direction"] == "incoming"


def test_recent_activities_are_capped_at_ten(client, auth_headers):
    for i in range(7):
        _create_lead(client, auth_headers, name=f"Lead {i}")
        client.post("/api/crm/customers", headers=auth_headers, json={"name": f"Customer {i}"})

    activities = client.get("/api/crm/recent-activities", headers=auth_headers).json()
    assert len(activities) == 10
    assert {a["type"] for a in activities} == {"lead", "customer"}
