from datetime import date, timedelta

from vorniq.models.models import AuditLog, BankTransaction, Expense


def _txn(client, headers, type, amount, category=None, day=None, **extra):
    data = {"type": type, "amount": amount, "category": category,
            "date": (day or date.today()).isoformat(), **extra}
    r = client.post("/api/accounting/transactions", headers=headers, json=data)
    assert r.status_code == 200, r.text
    return r.json()


def _account(client, headers, balance=10000):
    r = client.post("/api/accounting/bank-accounts", headers=headers,
                    json={"name": "Operating", "bank_name": "Test Bank", "current_balance": balance})
    assert r.status_code == 200, r.text
    return r.json()


def _bank_txn(client, headers, account_id, amount, type="debit", day="2024-01-05"):
    r = client.post(f"/api/accounting/bank-accounts/{account_id}/transactions", headers=headers,
                    json={"date": day, "amount": amount, "type": type, "description": "Statement line"})
    assert r.status_code == 200, r.text
    return r.json()


def test_stats_sum_received_income_and_approved_expenses(client, auth_headers):
    _txn(client, auth_headers, "income", 500, "Sales")
    _txn(client, auth_headers, "income", 300, "Services")
    _txn(client, auth_headers, "income", 200, "Sales", status="pending")
    _txn(client, auth_headers, "expense", 150, "Rent")
    _txn(client, auth_headers, "expense", 90, "Travel", status="rejected")

    stats = client.get("/api/accounting/stats", headers=auth_headers).json()
    assert stats["total_income"] == 800.0
    assert stats["total_expenses"] == 150.0
    assert stats["net_profit"] == 650.0


def test_transaction_type_filter_and_validation(client, auth_headers):
    _txn(client, auth_headers, "income", 500, "Sales")
    _txn(client, auth_headers, "expense", 150, "Rent")

    income = client.get("/api/accounting/transactions?type=income", headers=auth_headers).json()
    assert [(t["source"], t["kind"], t["type"]) for t in income] == [("revenue", "income", "credit")]

    assert client.get("/api/accounting/transactions?type=transfer", headers=auth_headers).status_code == 400
    r = client.post("/api/accounting/transactions", headers=auth_headers,
                    json={"type": "income", "amount": -5, "date": "2024-01-01"})
    assert r.status_code == 400


def test_revenue_and_expense_with_same_id_are_distinct(client, auth_headers):
    rev = _txn(client, auth_headers, "income", 500, "Sales")
    exp = _txn(client, auth_headers, "expense", 150, "Rent")
    assert rev["id"] == exp["id"]

    r = client.put(f"/api/accounting/transactions/expense/{exp['id']}", headers=auth_headers,
                   json={"description": "Office rent"})
    assert r.json()["description"] == "Office rent"

    r = client.delete(f"/api/accounting/transactions/revenue/{rev['id']}", headers=auth_headers)
    assert r.json() == {"ok": True, "deleted": rev["id"], "source": "revenue"}

    remaining = client.get("/api/accounting/transactions", headers=auth_headers).json()
    assert [(t["source"], t["id"]) for t in remaining] == [("expense", exp["id"])]

    assert client.delete("/api/accounting/transactions/loan/1", headers=auth_headers).status_code == 400


def test_bank_transaction_moves_current_balance(client, auth_headers):
    account = _account(client, auth_headers, 1000)
    _bank_txn(client, auth_headers, account["id"], 250, "credit")
    _bank_txn(client, auth_headers, account["id"], 100, "debit")

    accounts = client.get("/api/accounting/bank-accounts", headers=auth_headers).json()
    assert accounts[0]["current_balance"] == 1150.0


def test_deleting_bank_transaction_reverses_balance(client, auth_headers):
    account = _account(client, auth_headers, 1000)
    debit = _bank_txn(client, auth_headers, account["id"], 300, "debit")
    credit = _bank_txn(client, auth_headers, account["id"], 50, "credit")

    assert client.delete(f"/api/accounting/bank-transactions/{debit['id']}", headers=auth_headers).status_code == 200
    accounts = client.get("/api/accounting/bank-accounts", headers=auth_headers).json()
    assert accounts[0]["current_balance"] == 1050.0

    client.delete(f"/api/accounting/bank-transactions/{credit['id']}", headers=auth_headers)
    accounts = client.get("/api/accounting/bank-accounts", headers=auth_headers).json()
    assert accounts[0]["current_balance"] == 1000.0


def test_reconciliation_suggests_first_entry_within_tolerance(client, auth_headers):
    account = _account(client, auth_headers)
    bank = _bank_txn(client, auth_headers, account["id"], 1000)
    near = _txn(client, auth_headers, "expense", 1050, "Supplies", day=date(2024, 1, 3))
    _txn(client, auth_headers, "expense", 1200, "Supplies", day=date(2024, 1, 4))
    _txn(client, auth_headers, "income", 1000, "Sales", day=date(2024, 1, 2))

    view = client.get(f"/api/accounting/reconciliation/{account['id']}", headers=auth_headers).json()
    assert view["unreconciled_bank_count"] == 1
    assert view["unreconciled_book_count"] == 3
    assert view["suggestions"] == [{
        "bank_transaction_id": bank["id"],
        "bank_amount": 1000.0,
        "book_source": "expense",
        "book_id": near["id"],
        "book_amount": 1050.0,
        "difference": 50.0,
        "type": "debit",
    }]


def test_match_marks_both_sides_and_audits(client, auth_headers, db):
    account = _account(client, auth_headers)
    bank = _bank_txn(client, auth_headers, account["id"], 1000)
    book = _txn(client, auth_headers, "expense", 1000, "Supplies")

    r = client.post("/api/accounting/reconciliation/match", headers=auth_headers,
                    json={"bank_transaction_id": bank["id"], "book_source": "expense", "book_id": book["id"]})
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["bank_transaction"]["is_reconciled"] is True
    assert body["bank_transaction"]["matched_book_source"] == "expense"
    assert body["book_transaction"]["matched_bank_transaction_id"] == bank["id"]

    db.expire_all()
    assert db.query(AuditLog).filter(AuditLog.action == "reconcile").count() == 1

    again = client.post("/api/accounting/reconciliation/match", headers=auth_headers,
                        json={"bank_transaction_id": bank["id"], "book_source": "expense", "book_id": book["id"]})
    assert again.status_code == 400

    view = client.get(f"/api/accounting/reconciliation/{account['id']}", headers=auth_headers).json()
    assert view["unreconciled_bank_count"] == 0
    assert view["suggestions"] == []


def test_match_rejects_mismatched_types_without_side_effects(client, auth_headers, db):
    account = _account(client, auth_headers)
    bank = _bank_txn(client, auth_headers, account["id"], 1000, "debit")
    income = _txn(client, auth_headers, "income", 1000, "Sales")

    r = client.post("/api/accounting/reconciliation/match", headers=auth_headers,
                    json={"bank_transaction_id": bank["id"], "book_source": "revenue", "book_id": income["id"]})
    assert r.status_code == 400

    db.expire_all()
    assert db.get(BankTransaction, bank["id"]).is_reconciled is False
    assert db.query(AuditLog).filter(AuditLog.action == "reconcile").count() == 0


def test_unmatch_and_reconciled_amount_lock(client, auth_headers, db):
    account = _account(client, auth_headers)
    bank = _bank_txn(client, auth_headers, account["id"], 400)
    book = _txn(client, auth_headers, "expense", 400, "Utilities")
    client.post("/api/accounting/reconciliation/match", headers=auth_headers,
                json={"bank_transaction_id": bank["id"], "book_source": "expense", "book_id": book["id"]})

    locked = client.put(f"/api/accounting/transactions/expense/{book['id']}", headers=auth_headers, json={"amount": 410})
    assert locked.status_code == 400

    r = client.post("/api/accounting/reconciliation/unmatch", headers=auth_headers,
                    json={"bank_transaction_id": bank["id"]})
    assert r.status_code == 200
    assert r.json()["is_reconciled"] is False

    db.expire_all()
    expense = db.get(Expense, book["id"])
    assert expense.is_reconciled is False
    assert expense.matched_bank_transaction_id is None

    again = client.post("/api/accounting/reconciliation/unmatch", headers=auth_headers,
                        json={"bank_transaction_id": bank["id"]})
    assert again.status_code == 400


def test_complete_reconciliation_snapshots_balance(client, auth_headers):
    account = _account(client, auth_headers, 500)
    _bank_txn(client, auth_headers, account["id"], 200, "credit")

    done = client.post(f"/api/accounting/reconciliation/{account['id']}/complete", headers=auth_headers).json()
    assert done["reconciled_balance"] == 700.0
    assert done["last_reconciled"] == date.today().isoformat()


def test_profit_loss_this_month(client, auth_headers):
    _txn(client, auth_headers, "income", 1000, "Sales")
    _txn(client, auth_headers, "income", 500, None)
    _txn(client, auth_headers, "expense", 300, "Rent")
    _txn(client, auth_headers, "expense", 50, "Rent", day=date.today() - timedelta(days=400))

    report = client.get("/api/accounting/profit-loss", headers=auth_headers).json()
    assert report["income"] == {"Sales": 1000.0, "Other Income": 500.0}
    assert report["expenses"] == {"Rent": 300.0}
    assert report["net_profit"] == 1200.0
    assert report["profit_margin"] == 80.0

    assert client.get("/api/accounting/profit-loss?period=decade", headers=auth_headers).status_code == 400


def test_tax_calculation_by_rate_and_setting(client, auth_headers):
    r = client.post("/api/accounting/tax/calculate", headers=auth_headers, json={"amount": 1000, "tax_rate": 18})
    assert r.json()["tax_amount"] == 180.0
    assert r.json()["total_amount"] == 1180.0

    setting = client.post("/api/accounting/tax/settings", headers=auth_headers,
                          json={"name": "GST 5%", "rate": 5, "type": "GST"}).json()
    saved = client.post("/api/accounting/tax/calculations", headers=auth_headers,
                        json={"amount": 200, "tax_setting_id": setting["id"]}).json()
    assert saved["tax_amount"] == 10.0
    assert saved["tax_type"] == "GST"

    summary = client.get("/api/accounting/tax/summary", headers=auth_headers).json()
    assert summary["by_type"]["GST"] == {"count": 1, "tax_amount": 10.0}

    bad = client.post("/api/accounting/tax/settings", headers=auth_headers, json={"name": "Bad", "rate": 150})
    assert bad.status_code == 400


def test_overdue_invoices_surface_as_reminders(client, auth_headers):
    client.post("/api/sim/invoices", headers=auth_headers, json={
        "invoice_number": "INV-OLD", "customer_name": "Slow Payer", "subtotal": 900,
        "due_date": (date.today() - timedelta(days=10)).isoformat(),
    })
    client.post("/api/accounting/payment-reminders", headers=auth_headers, json={
        "customer_vendor_name": "Landlord", "type": "payable", "amount": 2000,
        "due_date": (date.today() + timedelta(days=5)).isoformat(),
    })

    overdue = client.get("/api/accounting/payment-reminders?status=overdue", headers=auth_headers).json()
    assert [(r["source"], r["customer_vendor_name"], r["priority"]) for r in overdue] == [
        ("invoice", "Slow Payer", "high"),
    ]

    summary = client.get("/api/accounting/payment-reminders/summary", headers=auth_headers).json()
    assert summary == {"overdue_count": 1, "pending_count": 1, "total_receivables": 900.0, "total_payables": 2000.0}
