from datetime import date


def _create_product(client, headers, sku="SKU-1", **extra):
    data = {"name": f"Product {sku}", "sku": sku, "price": 100, "cost_price": 60,
            "stock_quantity": 20, "min_stock_level": 5, "max_stock_level": 50, **extra}
    r = client.post("/api/sim/products", headers=headers, json=data)
    assert r.status_code == 200, r.text
    return r.json()


def test_create_product_records_opening_stock(client, auth_headers):
    product = _create_product(client, auth_headers)
    assert product["stock_status"] == "in_stock"

    detail = client.get(f"/api/sim/products/{product['id']}", headers=auth_headers).json()
    assert len(detail["movements"]) == 1
    assert detail["movements"][0]["movement_type"] == "in"
    assert detail["movements"][0]["quantity"] == 20


def test_duplicate_sku_is_rejected(client, auth_headers):
    _create_product(client, auth_headers)
    r = client.post("/api/sim/products", headers=auth_headers, json={"name": "Copy", "sku": "SKU-1"})
    assert r.status_code == 400


def test_deleted_product_is_hidden_but_kept(client, auth_headers):
    product = _create_product(client, auth_headers)
    r = client.delete(f"/api/sim/products/{product['id']}", headers=auth_headers)
    assert r.json() == {"ok": True, "deleted": product["id"]}

    listed = client.get("/api/sim/products", headers=auth_headers).json()
    assert product["id"] not in [p["id"] for p in listed]

    everything = client.get("/api/sim/products?include_inactive=true", headers=auth_headers).json()
    hidden = next(p for p in everything if p["id"] == product["id"])
    assert hidden["is_active"] is False


def test_stock_adjust_records_movement(client, auth_headers):
    product = _create_product(client, auth_headers)
    r = client.post("/api/sim/stock/adjust", headers=auth_headers,
                    json={"product_id": product["id"], "adjustment": -8, "notes": "Damaged"})
    assert r.status_code == 200, r.text
    assert r.json()["stock_quantity"] == 12

    movements = client.get(f"/api/sim/stock-movements?product_id={product['id']}&movement_type=adjustment",
                           headers=auth_headers).json()
    assert len(movements) == 1
    assert movements[0]["quantity"] == -8
    assert movements[0]["notes"] == "Damaged"


def test_stock_cannot_go_negative(client, auth_headers):
    product = _create_product(client, auth_headers, stock_quantity=3)
    r = client.post("/api/sim/stock/adjust", headers=auth_headers,
                    json={"product_id": product["id"], "adjustment": -4})
    assert r.status_code == 400

    r = client.post("/api/sim/stock-movements", headers=auth_headers,
                    json={"product_id": product["id"], "movement_type": "out", "quantity": 5})
    assert r.status_code == 400

    detail = client.get(f"/api/sim/products/{product['id']}", headers=auth_headers).json()
    assert detail["stock_quantity"] == 3
    assert len(detail["movements"]) == 1


def test_outbound_movement_raises_low_stock_alert(client, auth_headers):
    product = _create_product(client, auth_headers)
    r = client.post("/api/sim/stock-movements", headers=auth_headers,
                    json={"product_id": product["id"], "movement_type": "out", "quantity": 16})
    assert r.status_code == 200, r.text

    alerts = client.get("/api/sim/stock-alerts", headers=auth_headers).json()
    assert len(alerts) == 1
    assert alerts[0]["alert_type"] == "low_stock"
    assert alerts[0]["current_stock"] == 4
    assert alerts[0]["severity"] == "warning"

    client.post("/api/sim/stock-movements", headers=auth_headers,
                json={"product_id": product["id"], "movement_type": "in", "quantity": 10})
    assert client.get("/api/sim/stock-alerts", headers=auth_headers).json() == []


def test_deleting_movement_restores_stock(client, auth_headers):
    product = _create_product(client, auth_headers)
    out = client.post("/api/sim/stock-movements", headers=auth_headers,
                      json={"product_id": product["id"], "movement_type": "out", "quantity": 16}).json()
    opening = client.get(f"/api/sim/stock-movements?product_id={product['id']}&movement_type=in",
                         headers=auth_headers).json()[0]
    assert len(client.get("/api/sim/stock-alerts", headers=auth_headers).json()) == 1

    r = client.delete(f"/api/sim/stock-movements/{opening['id']}", headers=auth_headers)
    assert r.status_code == 400

    r = client.delete(f"/api/sim/stock-movements/{out['id']}", headers=auth_headers)
    assert r.json() == {"ok": True, "deleted": out["id"]}

    detail = client.get(f"/api/sim/products/{product['id']}", headers=auth_headers).json()
    assert detail["stock_quantity"] == 20
    assert [m["quantity"] for m in detail["movements"]] == [20]
    assert client.get("/api/sim/stock-alerts", headers=auth_headers).json() == []


def test_dismissed_alert_leaves_active_list(client, auth_headers):
    _create_product(client, auth_headers, stock_quantity=0)
    alerts = client.get("/api/sim/stock-alerts", headers=auth_headers).json()
    assert alerts[0]["alert_type"] == "out_of_stock"
    assert alerts[0]["severity"] == "critical"

    client.delete(f"/api/sim/stock-alerts/{alerts[0]['id']}", headers=auth_headers)
    assert client.get("/api/sim/stock-alerts", headers=auth_headers).json() == []


def test_invoice_payment_status_follows_paid_amount(client, auth_headers):
    r = client.post("/api/sim/invoices", headers=auth_headers, json={
        "invoice_number": "INV-1", "customer_name": "Acme",
        "subtotal": 1000, "tax_amount": 180, "discount_amount": 80,
    })
    assert r.status_code == 200, r.text
    invoice = r.json()
    assert invoice["total_amount"] == 1100.0
    assert invoice["payment_status"] == "pending"

    partial = client.put(f"/api/sim/invoices/{invoice['id']}", headers=auth_headers, json={"paid_amount": 500}).json()
    assert partial["payment_status"] == "partial"
    assert partial["balance_due"] == 600.0

    paid = client.put(f"/api/sim/invoices/{invoice['id']}", headers=auth_headers, json={"paid_amount": 1100}).json()
    assert paid["payment_status"] == "paid"

    raised = client.put(f"/api/sim/invoices/{invoice['id']}", headers=auth_headers, json={"total_amount": 1500}).json()
    assert raised["payment_status"] == "partial"
    assert raised["balance_due"] == 400.0
    paid_only = client.get("/api/sim/invoices?payment_status=paid", headers=auth_headers).json()
    assert paid_only == []

    dup = client.post("/api/sim/invoices", headers=auth_headers, json={"invoice_number": "INV-1"})
    assert dup.status_code == 400


def test_stats(client, auth_headers):
    _create_product(client, auth_headers, "A")
    _create_product(client, auth_headers, "B", stock_quantity=2)
    _create_product(client, auth_headers, "C", stock_quantity=0)
    client.post("/api/sim/invoices", headers=auth_headers, json={
        "invoice_number": "INV-9", "subtotal": 400, "paid_amount": 400, "invoice_date": date.today().isoformat(),
    })

    stats = client.get("/api/sim/stats", headers=auth_headers).json()
    assert stats["total_products"] == 3
    assert stats["low_stock_count"] == 1
    assert stats["monthly_revenue"] == 400.0
    assert stats["pending_orders_count"] == 0
