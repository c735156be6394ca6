def test_demo_request_is_public(client):
    r = client.post("/api/demo-requests", json={
        "name": "Maya", "email": "maya@acme.com", "company": "Acme",
        "services": ["crm", "accounting"],
    })
    assert r.status_code == 200, r.text
    assert r.json()["services"] == "crm, accounting"


def test_demo_request_validates_email(client):
    r = client.post("/api/demo-requests", json={"name": "Maya", "email": "not-an-email"})
    assert r.status_code == 422


def test_listing_demo_requests_needs_admin(client, auth_headers, make_headers):
    client.post("/api/demo-requests", json={"name": "Maya", "email": "maya@acme.com"})

    assert client.get("/api/demo-requests").status_code == 401
    assert client.get("/api/demo-requests", headers=make_headers("vic", "Viewer")).status_code == 403

    listed = client.get("/api/demo-requests", headers=auth_headers).json()
    assert [d["email"] for d in listed] == ["maya@acme.com"]
