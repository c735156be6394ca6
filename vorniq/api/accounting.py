import logging
from datetime import date
from fastapi import APIRouter, Depends, HTTPException, Query, Body, Request
from sqlalchemy.orm import Session
from sqlalchemy import func, desc
from vorniq.db.session import get_db
from vorniq.core.auth import require_module
from vorniq.core.config import RECONCILIATION_TOLERANCE
from vorniq.core.helpers import (
    require_fields, parse_enum, parse_date, parse_float, parse_int,
    iso, money, search_filter, commit_or_400, get_or_404,
)
from vorniq.models.models import (
    Revenue, RevenueStatus, Expense, ExpenseStatus, Invoice, PaymentStatus,
    BankAccount, BankTransaction, TransactionType, BookSource,
    PaymentReminder, ReminderType, ReminderStatus, Priority,
    TaxSetting, TaxCalculation, AuditSeverity, User
)
from vorniq.services.audit import record_audit
from vorniq.services.finance import PERIODS, period_range, relative_due, category_breakdown, calculate_tax
from vorniq.services.reconciliation import book_type, suggest_matches

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/accounting", tags=["accounting"])

accounting_user = require_module("accounting")

BOOK_MODELS = {BookSource.REVENUE: Revenue, BookSource.EXPENSE: Expense}


def _book_entry(row, source: BookSource):
    is_revenue = source == BookSource.REVENUE
    return {
        "source": source.value,
        "id": row.id,
        "reference": f"{'REV' if is_revenue else 'EXP'}-{row.id}",
        "kind": "income" if is_revenue else "expense",
        "type": book_type(source.value),
        "category": row.source if is_revenue else row.category,
        "description": row.description,
        "amount": money(row.amount),
        "date": iso(row.date),
        "payment_method": row.payment_method,
        "status": row.status.value if row.status else None,
        "is_reconciled": bool(row.is_reconciled),
        "matched_bank_transaction_id": row.matched_bank_transaction_id,
        "created_at": iso(row.created_at),
    }


def _book_entries(db: Session):
    entries = [_book_entry(r, BookSource.REVENUE) for r in db.query(Revenue).all()]
    entries += [_book_entry(e, BookSource.EXPENSE) for e in db.query(Expense).all()]
    return entries


def _serialize_bank_account(a):
    return {
        "id": a.id,
        "name": a.name,
        "account_number": a.account_number,
        "bank_name": a.bank_name,
        "current_balance": money(a.current_balance),
        "reconciled_balance": money(a.reconciled_balance),
        "last_reconciled": iso(a.last_reconciled),
        "created_at": iso(a.created_at),
    }


def _serialize_bank_transaction(t):
    return {
        "id": t.id,
        "bank_account_id": t.bank_account_id,
        "date": iso(t.date),
        "description": t.description,
        "amount": money(t.amount),
        "type": t.type.value if t.type else None,
        "balance": float(t.balance) if t.balance is not None else None,
        "is_reconciled": bool(t.is_reconciled),
        "matched_book_source": t.matched_book_source.value if t.matched_book_source else None,
        "matched_book_id": t.matched_book_id,
        "created_at": iso(t.created_at),
    }


def _serialize_reminder(r):
    return {
        "id": r.id,
        "source": "reminder",
        "type": r.type.value if r.type else None,
        "customer_vendor_name": r.customer_vendor_name,
        "reference_type": r.reference_type,
        "reference_id": r.reference_id,
        "amount": money(r.amount),
        "due_date": iso(r.due_date),
        "due_label": relative_due(r.due_date) if r.due_date else None,
        "reminder_date": iso(r.reminder_date),
        "status": r.status.value if r.status else None,
        "priority": r.priority.value if r.priority else None,
        "notes": r.notes,
        "contact_email": r.contact_email,
        "contact_phone": r.contact_phone,
        "created_at": iso(r.created_at),
    }


def _serialize_tax_setting(t):
    return {
        "id": t.id,
        "name": t.name,
        "rate": money(t.rate),
        "type": t.type,
        "description": t.description,
        "is_active": bool(t.is_active),
    }


def _serialize_tax_calculation(c):
    return {
        "id": c.id,
        "description": c.description,
        "amount": money(c.amount),
        "tax_type": c.tax_type,
        "tax_rate": money(c.tax_rate),
        "tax_amount": money(c.tax_amount),
        "total_amount": money(c.total_amount),
        "date": iso(c.date),
        "category": c.category,
        "created_at": iso(c.created_at),
    }


@router.get("/stats")
def get_accounting_stats(user: User = Depends(accounting_user), db: Session = Depends(get_db)):
    total_income = db.query(func.coalesce(func.sum(Revenue.amount), 0)).filter(
        Revenue.status == RevenueStatus.RECEIVED
    ).scalar() or 0
    total_expenses = db.query(func.coalesce(func.sum(Expense.amount), 0)).filter(
        Expense.status == ExpenseStatus.APPROVED
    ).scalar() or 0
    pending_payments = db.query(
        func.coalesce(func.sum(Invoice.total_amount - Invoice.paid_amount), 0)
    ).filter(Invoice.payment_status == PaymentStatus.PENDING).scalar() or 0

    return {
        "total_income": round(float(total_income), 2),
        "total_expenses": round(float(total_expenses), 2),
        "net_profit": round(float(total_income) - float(total_expenses), 2),
        "pending_payments": round(float(pending_payments), 2),
    }


@router.get("/transactions")
def list_transactions(
    search: str = Query(None),
    type: str = Query(None),
    category: str = Query(None),
    user: User = Depends(accounting_user),
    db: Session = Depends(get_db)
):
    if type and type not in ("income", "expense"):
        raise HTTPException(status_code=400, detail="Invalid type. Allowed: income, expense")

    entries = []
    if type in (None, "", "income"):
        q = db.query(Revenue)
        if search:
            q = q.filter(search_filter(search, Revenue.description, Revenue.source))
        if category:
            q = q.filter(Revenue.source == category)
        entries += [_book_entry(r, BookSource.REVENUE) for r in q.all()]
    if type in (None, "", "expense"):
        q = db.query(Expense)
        if search:
            q = q.filter(search_filter(search, Expense.description, Expense.category))
        if category:
            q = q.filter(Expense.category == category)
        entries += [_book_entry(e, BookSource.EXPENSE) for e in q.all()]

    entries.sort(key=lambda e: (e["date"] or "", e["created_at"] or ""), reverse=True)
    return entries


@router.post("/transactions")
def create_transaction(data: dict = Body(...), user: User = Depends(accounting_user), db: Session = Depends(get_db)):
    require_fields(data, "type", "amount", "date")
    amount = parse_float(data["amount"], "amount")
    if amount <= 0:
        raise HTTPException(status_code=400, detail="Amount must be positive")

    if data["type"] == "income":
        row = Revenue(
            source=data.get("category") or data.get("source"),
            description=data.get("description"),
            amount=amount,
            date=parse_date(data["date"], "date"),
            payment_method=data.get("payment_method"),
            status=parse_enum(RevenueStatus, data.get("status"), "status", RevenueStatus.RECEIVED),
        )
        source = BookSource.REVENUE
    elif data["type"] == "expense":
        row = Expense(
            category=data.get("category"),
            description=data.get("description"),
            amount=amount,
            date=parse_date(data["date"], "date"),
            payment_method=data.get("payment_method"),
            status=parse_enum(ExpenseStatus, data.get("status"), "status", ExpenseStatus.APPROVED),
        )
        source = BookSource.EXPENSE
    else:
        raise HTTPException(status_code=400, detail="Invalid type. Allowed: income, expense")

    db.add(row)
    commit_or_400(db, f"create {source.value} entry")
    db.refresh(row)
    return _book_entry(row, source)


def _get_book_row(db: Session, source: str, entry_id: int):
    book_source = parse_enum(BookSource, source, "source")
    row = get_or_404(db, BOOK_MODELS[book_source], entry_id, "Transaction")
    return book_source, row


@router.put("/transactions/{source}/{entry_id}")
def update_transaction(source: str, entry_id: int, data: dict = Body(...), user: User = Depends(accounting_user), db: Session = Depends(get_db)):
    book_source, row = _get_book_row(db, source, entry_id)
    if row.is_reconciled and ("amount" in data or "date" in data):
        raise HTTPException(status_code=400, detail="Unmatch the transaction before changing its amount or date")

    for f in ["description", "payment_method"]:
        if f in data:
            setattr(row, f, data[f])
    if "category" in data:
        setattr(row, "source" if book_source == BookSource.REVENUE else "category", data["category"])
    if "amount" in data:
        row.amount = parse_float(data["amount"], "amount")
        if row.amount <= 0:
            raise HTTPException(status_code=400, detail="Amount must be positive")
    if "date" in data:
        require_fields(data, "date")
        row.date = parse_date(data["date"], "date")
    if "status" in data:
        status_enum = RevenueStatus if book_source == BookSource.REVENUE else ExpenseStatus
        row.status = parse_enum(status_enum, data["status"], "status", row.status)

    commit_or_400(db, f"update {book_source.value} {entry_id}")
    db.refresh(row)
    return _book_entry(row, book_source)


@router.delete("/transactions/{source}/{entry_id}")
def delete_transaction(source: str, entry_id: int, user: User = Depends(accounting_user), db: Session = Depends(get_db)):
    book_source, row = _get_book_row(db, source, entry_id)
    if row.matched_bank_transaction_id:
        bank_txn = db.query(BankTransaction).filter(BankTransaction.id == row.matched_bank_transaction_id).first()
        if bank_txn:
            _clear_bank_match(bank_txn)
    db.delete(row)
    commit_or_400(db, f"delete {book_source.value} {entry_id}")
    return {"ok": True, "deleted": entry_id, "source": book_source.value}


@router.get("/recent-transactions")
def get_recent_transactions(limit: int = Query(5, ge=1, le=50), user: User = Depends(accounting_user), db: Session = Depends(get_db)):
    entries = _book_entries(db)
    entries.sort(key=lambda e: (e["date"] or "", e["created_at"] or ""), reverse=True)
    return entries[:limit]


@router.get("/upcoming-payments")
def get_upcoming_payments(user: User = Depends(accounting_user), db: Session = Depends(get_db)):
    invoices = db.query(Invoice).filter(
        Invoice.payment_status == PaymentStatus.PENDING,
        Invoice.due_date.isnot(None)
    ).order_by(Invoice.due_date).limit(3).all()
    return [{
        "invoice_id": i.id,
        "invoice_number": i.invoice_number,
        "customer_name": i.customer_name,
        "amount": round(money(i.total_amount) - money(i.paid_amount), 2),
        "due_date": iso(i.due_date),
        "due_label": relative_due(i.due_date),
    } for i in invoices]


@router.get("/profit-loss")
def get_profit_loss(period: str = Query("this_month"), user: User = Depends(accounting_user), db: Session = Depends(get_db)):
    if period not in PERIODS:
        raise HTTPException(status_code=400, detail=f"Invalid period. Allowed: {', '.join(PERIODS)}")
    start, end = period_range(period)

    revenue_rows = db.query(Revenue.source, Revenue.amount).filter(
        Revenue.status == RevenueStatus.RECEIVED,
        Revenue.date >= start, Revenue.date <= end
    ).all()
    expense_rows = db.query(Expense.category, Expense.amount).filter(
        Expense.status == ExpenseStatus.APPROVED,
        Expense.date >= start, Expense.date <= end
    ).all()

    income = category_breakdown(revenue_rows, "Other Income")
    expenses = category_breakdown(expense_rows, "Other Expenses")
    total_income = round(sum(income.values()), 2)
    total_expenses = round(sum(expenses.values()), 2)
    net = round(total_income - total_expenses, 2)

    return {
        "period": period,
        "start_date": start.isoformat(),
        "end_date": end.isoformat(),
        "income": income,
        "expenses": expenses,
        "total_income": total_income,
        "total_expenses": total_expenses,
        "net_profit": net,
        "profit_margin": round(net / total_income * 100, 1) if total_income else 0,
    }


@router.get("/bank-accounts")
def list_bank_accounts(user: User = Depends(accounting_user), db: Session = Depends(get_db)):
    accounts = db.query(BankAccount).order_by(BankAccount.name).all()
    return [_serialize_bank_account(a) for a in accounts]


@router.post("/bank-accounts")
def create_bank_account(data: dict = Body(...), user: User = Depends(accounting_user), db: Session = Depends(get_db)):
    require_fields(data, "name")
    balance = parse_float(data.get("current_balance"), "current_balance", 0)
    account = BankAccount(
        name=data["name"],
        account_number=data.get("account_number"),
        bank_name=data.get("bank_name"),
        current_balance=balance,
        reconciled_balance=parse_float(data.get("reconciled_balance"), "reconciled_balance", balance),
        last_reconciled=parse_date(data.get("last_reconciled"), "last_reconciled"),
    )
    db.add(account)
    commit_or_400(db, "create bank account")
    db.refresh(account)
    return _serialize_bank_account(account)


@router.put("/bank-accounts/{account_id}")
def update_bank_account(account_id: int, data: dict = Body(...), user: User = Depends(accounting_user), db: Session = Depends(get_db)):
    account = get_or_404(db, BankAccount, account_id, "Bank account")
    for f in ["name", "account_number", "bank_name"]:
        if f in data:
            setattr(account, f, data[f])
    for f in ["current_balance", "reconciled_balance"]:
        if f in data:
            setattr(account, f, parse_float(data[f], f, 0))
    commit_or_400(db, f"update bank account {account_id}")
    db.refresh(account)
    return _serialize_bank_account(account)


@router.delete("/bank-accounts/{account_id}")
def delete_bank_account(account_id: int, user: User = Depends(accounting_user), db: Session = Depends(get_db)):
    account = get_or_404(db, BankAccount, account_id, "Bank account")
    for txn in account.transactions:
        if txn.is_reconciled:
            _clear_book_match(db, txn)
    db.delete(account)
    commit_or_400(db, f"delete bank account {account_id}")
    return {"ok": True, "deleted": account_id}


@router.get("/bank-accounts/{account_id}/transactions")
def list_bank_transactions(
    account_id: int,
    is_reconciled: bool = Query(None),
    user: User = Depends(accounting_user),
    db: Session = Depends(get_db)
):
    get_or_404(db, BankAccount, account_id, "Bank account")
    q = db.query(BankTransaction).filter(BankTransaction.bank_account_id == account_id)
    if is_reconciled is not None:
        q = q.filter(BankTransaction.is_reconciled == is_reconciled)
    txns = q.order_by(desc(BankTransaction.date), desc(BankTransaction.id)).all()
    return [_serialize_bank_transaction(t) for t in txns]


@router.post("/bank-accounts/{account_id}/transactions")
def create_bank_transaction(account_id: int, data: dict = Body(...), user: User = Depends(accounting_user), db: Session = Depends(get_db)):
    account = get_or_404(db, BankAccount, account_id, "Bank account")
    require_fields(data, "date", "amount", "type")
    amount = parse_float(data["amount"], "amount")
    if amount <= 0:
        raise HTTPException(status_code=400, detail="Amount must be positive")
    txn_type = parse_enum(TransactionType, data["type"], "type")

    delta = amount if txn_type == TransactionType.CREDIT else -amount
    account.current_balance = round(money(account.current_balance) + delta, 2)
    txn = BankTransaction(
        bank_account_id=account.id,
        date=parse_date(data["date"], "date"),
        description=data.get("description"),
        amount=amount,
        type=txn_type,
        balance=parse_float(data.get("balance"), "balance", account.current_balance),
        is_reconciled=False,
    )
    db.add(txn)
    commit_or_400(db, f"record bank transaction on account {account_id}")
    db.refresh(txn)
    return _serialize_bank_transaction(txn)


def _clear_book_match(db: Session, bank_txn):
    if bank_txn.matched_book_source and bank_txn.matched_book_id:
        model = BOOK_MODELS[bank_txn.matched_book_source]
        row = db.query(model).filter(model.id == bank_txn.matched_book_id).first()
        if row:
            row.is_reconciled = False
            row.matched_bank_transaction_id = None


def _clear_bank_match(bank_txn):
    bank_txn.is_reconciled = False
    bank_txn.matched_book_source = None
    bank_txn.matched_book_id = None


@router.delete("/bank-transactions/{txn_id}")
def delete_bank_transaction(txn_id: int, user: User = Depends(accounting_user), db: Session = Depends(get_db)):
    txn = get_or_404(db, BankTransaction, txn_id, "Bank transaction")
    _clear_book_match(db, txn)
    account = db.query(BankAccount).filter(BankAccount.id == txn.bank_account_id).first()
    if account is not None:
        delta = txn.amount if txn.type == TransactionType.CREDIT else -txn.amount
        account.current_balance = round(money(account.current_balance) - money(delta), 2)
    db.delete(txn)
    commit_or_400(db, f"delete bank transaction {txn_id}")
    return {"ok": True, "deleted": txn_id}


@router.get("/reconciliation/{account_id}")
def get_reconciliation(account_id: int, user: User = Depends(accounting_user), db: Session = Depends(get_db)):
    account = get_or_404(db, BankAccount, account_id, "Bank account")
    bank_txns = db.query(BankTransaction).filter(
        BankTransaction.bank_account_id == account_id
    ).order_by(BankTransaction.date, BankTransaction.id).all()

    book = _book_entries(db)
    book.sort(key=lambda e: (e["date"] or "", e["source"], e["id"]))

    return {
        "account": _serialize_bank_account(account),
        "bank_transactions": [_serialize_bank_transaction(t) for t in bank_txns],
        "book_transactions": book,
        "unreconciled_bank_count": sum(1 for t in bank_txns if not t.is_reconciled),
        "unreconciled_book_count": sum(1 for e in book if not e["is_reconciled"]),
        "difference": round(money(account.current_balance) - money(account.reconciled_balance), 2),
        "tolerance": RECONCILIATION_TOLERANCE,
        "suggestions": suggest_matches(bank_txns, book),
    }


@router.post("/reconciliation/match")
def match_transaction(request: Request, data: dict = Body(...), user: User = Depends(accounting_user), db: Session = Depends(get_db)):
    require_fields(data, "bank_transaction_id", "book_source", "book_id")
    bank_txn = get_or_404(db, BankTransaction, parse_int(data["bank_transaction_id"], "bank_transaction_id"), "Bank transaction")
    book_source, row = _get_book_row(db, data["book_source"], parse_int(data["book_id"], "book_id"))

    if bank_txn.is_reconciled:
        raise HTTPException(status_code=400, detail="Bank transaction is already reconciled")
    if row.is_reconciled:
        raise HTTPException(status_code=400, detail="Book transaction is already reconciled")
    if bank_txn.type.value != book_type(book_source.value):
        raise HTTPException(status_code=400, detail="Bank and book transactions have different types")

    bank_txn.is_reconciled = True
    bank_txn.matched_book_source = book_source
    bank_txn.matched_book_id = row.id
    row.is_reconciled = True
    row.matched_bank_transaction_id = bank_txn.id
    record_audit(db, user, "reconcile", "bank_transactions", resource_id=bank_txn.id,
                 details={"book_source": book_source.value, "book_id": row.id},
                 severity=AuditSeverity.MEDIUM, category="financial", request=request)
    commit_or_400(db, f"match bank transaction {bank_txn.id} to {book_source.value} {row.id}")
    db.refresh(bank_txn)
    db.refresh(row)
    return {"bank_transaction": _serialize_bank_transaction(bank_txn), "book_transaction": _book_entry(row, book_source)}


@router.post("/reconciliation/unmatch")
def unmatch_transaction(request: Request, data: dict = Body(...), user: User = Depends(accounting_user), db: Session = Depends(get_db)):
    require_fields(data, "bank_transaction_id")
    bank_txn = get_or_404(db, BankTransaction, parse_int(data["bank_transaction_id"], "bank_transaction_id"), "Bank transaction")
    if not bank_txn.is_reconciled:
        raise HTTPException(status_code=400, detail="Bank transaction is not reconciled")

    _clear_book_match(db, bank_txn)
    _clear_bank_match(bank_txn)
    record_audit(db, user, "unreconcile", "bank_transactions", resource_id=bank_txn.id,
                 severity=AuditSeverity.MEDIUM, category="financial", request=request)
    commit_or_400(db, f"unmatch bank transaction {bank_txn.id}")
    db.refresh(bank_txn)
    return _serialize_bank_transaction(bank_txn)


@router.post("/reconciliation/{account_id}/complete")
def complete_reconciliation(account_id: int, user: User = Depends(accounting_user), db: Session = Depends(get_db)):
    account = get_or_404(db, BankAccount, account_id, "Bank account")
    account.reconciled_balance = account.current_balance
    account.last_reconciled = date.today()
    commit_or_400(db, f"complete reconciliation of account {account_id}")
    db.refresh(account)
    return _serialize_bank_account(account)


def _derived_overdue_receivables(db: Session):
    today = date.today()
    tracked = {
        r.reference_id for r in db.query(PaymentReminder).filter(PaymentReminder.reference_type == "invoice").all()
    }
    invoices = db.query(Invoice).filter(
        Invoice.payment_status == PaymentStatus.PENDING,
        Invoice.due_date.isnot(None),
        Invoice.due_date < today
    ).order_by(Invoice.due_date).all()
    return [{
        "id": None,
        "source": "invoice",
        "type": ReminderType.RECEIVABLE.value,
        "customer_vendor_name": i.customer_name,
        "reference_type": "invoice",
        "reference_id": i.id,
        "amount": round(money(i.total_amount) - money(i.paid_amount), 2),
        "due_date": iso(i.due_date),
        "due_label": relative_due(i.due_date),
        "reminder_date": None,
        "status": ReminderStatus.OVERDUE.value,
        "priority": Priority.HIGH.value,
        "notes": f"Invoice {i.invoice_number} is overdue",
        "contact_email": i.customer_email,
        "contact_phone": i.customer_phone,
        "created_at": iso(i.created_at),
    } for i in invoices if i.id not in tracked]


@router.get("/payment-reminders/summary")
def get_reminder_summary(user: User = Depends(accounting_user), db: Session = Depends(get_db)):
    reminders = [_serialize_reminder(r) for r in db.query(PaymentReminder).all()] + _derived_overdue_receivables(db)
    open_items = [r for r in reminders if r["status"] in (ReminderStatus.PENDING.value, ReminderStatus.OVERDUE.value)]
    return {
        "overdue_count": sum(1 for r in open_items if r["status"] == ReminderStatus.OVERDUE.value),
        "pending_count": sum(1 for r in open_items if r["status"] == ReminderStatus.PENDING.value),
        "total_receivables": round(sum(r["amount"] for r in open_items if r["type"] == ReminderType.RECEIVABLE.value), 2),
        "total_payables": round(sum(r["amount"] for r in open_items if r["type"] == ReminderType.PAYABLE.value), 2),
    }


@router.get("/payment-reminders")
def list_payment_reminders(
    status: str = Query(None),
    type: str = Query(None),
    user: User = Depends(accounting_user),
    db: Session = Depends(get_db)
):
    status_filter = parse_enum(ReminderStatus, status, "status")
    type_filter = parse_enum(ReminderType, type, "type")

    q = db.query(PaymentReminder)
    if status_filter:
        q = q.filter(PaymentReminder.status == status_filter)
    if type_filter:
        q = q.filter(PaymentReminder.type == type_filter)
    result = [_serialize_reminder(r) for r in q.order_by(PaymentReminder.due_date, PaymentReminder.id).all()]

    derived = _derived_overdue_receivables(db)
    if status_filter:
        derived = [d for d in derived if d["status"] == status_filter.value]
    if type_filter:
        derived = [d for d in derived if d["type"] == type_filter.value]
    return derived + result


def _apply_reminder_fields(reminder, data):
    for f in ["customer_vendor_name", "reference_type", "notes", "contact_email", "contact_phone"]:
        if f in data:
            setattr(reminder, f, data[f])
    if "reference_id" in data:
        reminder.reference_id = parse_int(data["reference_id"], "reference_id")
    if "amount" in data:
        reminder.amount = parse_float(data["amount"], "amount")
    for f in ["due_date", "reminder_date"]:
        if f in data:
            setattr(reminder, f, parse_date(data[f], f))
    if "type" in data:
        reminder.type = parse_enum(ReminderType, data["type"], "type", ReminderType.RECEIVABLE)
    if "status" in data:
        reminder.status = parse_enum(ReminderStatus, data["status"], "status", ReminderStatus.PENDING)
    if "priority" in data:
        reminder.priority = parse_enum(Priority, data["priority"], "priority", Priority.MEDIUM)


@router.post("/payment-reminders")
def create_payment_reminder(data: dict = Body(...), user: User = Depends(accounting_user), db: Session = Depends(get_db)):
    require_fields(data, "customer_vendor_name", "amount", "due_date")
    reminder = PaymentReminder(type=ReminderType.RECEIVABLE, status=ReminderStatus.PENDING, priority=Priority.MEDIUM)
    _apply_reminder_fields(reminder, data)
    db.add(reminder)
    commit_or_400(db, "create payment reminder")
    db.refresh(reminder)
    return _serialize_reminder(reminder)


@router.put("/payment-reminders/{reminder_id}")
def update_payment_reminder(reminder_id: int, data: dict = Body(...), user: User = Depends(accounting_user), db: Session = Depends(get_db)):
    reminder = get_or_404(db, PaymentReminder, reminder_id, "Payment reminder")
    _apply_reminder_fields(reminder, data)
    commit_or_400(db, f"update payment reminder {reminder_id}")
    db.refresh(reminder)
    return _serialize_reminder(reminder)


@router.delete("/payment-reminders/{reminder_id}")
def delete_payment_reminder(reminder_id: int, user: User = Depends(accounting_user), db: Session = Depends(get_db)):
    reminder = get_or_404(db, PaymentReminder, reminder_id, "Payment reminder")
    db.delete(reminder)
    commit_or_400(db, f"delete payment reminder {reminder_id}")
    return {"ok": True, "deleted": reminder_id}


@router.get("/tax/settings")
def list_tax_settings(active_only: bool = Query(False), user: User = Depends(accounting_user), db: Session = Depends(get_db)):
    q = db.query(TaxSetting)
    if active_only:
        q = q.filter(TaxSetting.is_active == True)
    return [_serialize_tax_setting(t) for t in q.order_by(TaxSetting.type, desc(TaxSetting.rate)).all()]


@router.post("/tax/settings")
def create_tax_setting(data: dict = Body(...), user: User = Depends(accounting_user), db: Session = Depends(get_db)):
    require_fields(data, "name", "rate")
    rate = parse_float(data["rate"], "rate")
    if not 0 <= rate <= 100:
        raise HTTPException(status_code=400, detail="Rate must be between 0 and 100")
    setting = TaxSetting(
        name=data["name"],
        rate=rate,
        type=data.get("type", "GST"),
        description=data.get("description"),
        is_active=data.get("is_active", True),
    )
    db.add(setting)
    commit_or_400(db, "create tax setting")
    db.refresh(setting)
    return _serialize_tax_setting(setting)


@router.put("/tax/settings/{setting_id}")
def update_tax_setting(setting_id: int, data: dict = Body(...), user: User = Depends(accounting_user), db: Session = Depends(get_db)):
    setting = get_or_404(db, TaxSetting, setting_id, "Tax setting")
    for f in ["name", "type", "description", "is_active"]:
        if f in data:
            setattr(setting, f, data[f])
    if "rate" in data:
        setting.rate = parse_float(data["rate"], "rate")
        if not 0 <= setting.rate <= 100:
            raise HTTPException(status_code=400, detail="Rate must be between 0 and 100")
    commit_or_400(db, f"update tax setting {setting_id}")
    db.refresh(setting)
    return _serialize_tax_setting(setting)


@router.delete("/tax/settings/{setting_id}")
def delete_tax_setting(setting_id: int, user: User = Depends(accounting_user), db: Session = Depends(get_db)):
    setting = get_or_404(db, TaxSetting, setting_id, "Tax setting")
    db.delete(setting)
    commit_or_400(db, f"delete tax setting {setting_id}")
    return {"ok": True, "deleted": setting_id}


def _resolve_rate(db: Session, data: dict):
    if data.get("tax_setting_id"):
        setting = get_or_404(db, TaxSetting, parse_int(data["tax_setting_id"], "tax_setting_id"), "Tax setting")
        return setting.rate, setting.type
    require_fields(data, "tax_rate")
    return parse_float(data["tax_rate"], "tax_rate"), data.get("tax_type")


@router.post("/tax/calculate")
def calculate(data: dict = Body(...), user: User = Depends(accounting_user), db: Session = Depends(get_db)):
    require_fields(data, "amount")
    rate, tax_type = _resolve_rate(db, data)
    result = calculate_tax(parse_float(data["amount"], "amount"), rate)
    result["tax_type"] = tax_type
    return result


@router.get("/tax/calculations")
def list_tax_calculations(tax_type: str = Query(None), user: User = Depends(accounting_user), db: Session = Depends(get_db)):
    q = db.query(TaxCalculation)
    if tax_type:
        q = q.filter(TaxCalculation.tax_type == tax_type)
    calcs = q.order_by(desc(TaxCalculation.created_at), desc(TaxCalculation.id)).all()
    return [_serialize_tax_calculation(c) for c in calcs]


@router.post("/tax/calculations")
def create_tax_calculation(data: dict = Body(...), user: User = Depends(accounting_user), db: Session = Depends(get_db)):
    require_fields(data, "amount")
    rate, tax_type = _resolve_rate(db, data)
    result = calculate_tax(parse_float(data["amount"], "amount"), rate)
    calc = TaxCalculation(
        description=data.get("description"),
        amount=result["amount"],
        tax_type=tax_type,
        tax_rate=rate,
        tax_amount=result["tax_amount"],
        total_amount=result["total_amount"],
        date=parse_date(data.get("date"), "date") or date.today(),
        category=data.get("category"),
    )
    db.add(calc)
    commit_or_400(db, "save tax calculation")
    db.refresh(calc)
    return _serialize_tax_calculation(calc)


@router.delete("/tax/calculations/{calc_id}")
def delete_tax_calculation(calc_id: int, user: User = Depends(accounting_user), db: Session = Depends(get_db)):
    calc = get_or_404(db, TaxCalculation, calc_id, "Tax calculation")
    db.delete(calc)
    commit_or_400(db, f"delete tax calculation {calc_id}")
    return {"ok": True, "deleted": calc_id}


@router.get("/tax/summary")
def get_tax_summary(user: User = Depends(accounting_user), db: Session = Depends(get_db)):
    rows = db.query(
        TaxCalculation.tax_type,
        func.count(TaxCalculation.id),
        func.coalesce(func.sum(TaxCalculation.tax_amount), 0)
    ).group_by(TaxCalculation.tax_type).all()
    by_type = {t or "Other": {"count": c, "tax_amount": round(float(s), 2)} for t, c, s in rows}
    return {
        "by_type": by_type,
        "total_tax": round(sum(v["tax_amount"] for v in by_type.values()), 2),
    }
