from datetime import date, datetime
from types import SimpleNamespace

import pytest

from vorniq.services import analytics, finance, reconciliation


def _bank(id, amount, type="debit", is_reconciled=False):
    return SimpleNamespace(id=id, amount=amount, type=type, is_reconciled=is_reconciled)


def _book(source, id, amount, is_reconciled=False):
    return {"source": source, "id": id, "type": reconciliation.book_type(source),
            "amount": amount, "is_reconciled": is_reconciled}


def test_suggestion_is_first_entry_within_tolerance():
    book = [_book("expense", 1, 1050), _book("expense", 2, 1200)]
    assert reconciliation.suggest_match(_bank(1, 1000), book, tolerance=100)["id"] == 1


def test_suggestion_respects_order_not_closeness():
    book = [_book("expense", 1, 1090), _book("expense", 2, 1001)]
    assert reconciliation.suggest_match(_bank(1, 1000), book, tolerance=100)["id"] == 1


def test_suggestion_skips_reconciled_and_mismatched_type():
    book = [_book("revenue", 1, 1000), _book("expense", 2, 1000, is_reconciled=True), _book("expense", 3, 990)]
    assert reconciliation.suggest_match(_bank(1, 1000), book, tolerance=100)["id"] == 3
    assert reconciliation.suggest_match(_bank(2, 1000, is_reconciled=True), book, tolerance=100) is None
    assert reconciliation.suggest_match(_bank(3, 5000), book, tolerance=100) is None


def test_tolerance_boundary_is_inclusive():
    book = [_book("revenue", 7, 1100)]
    assert reconciliation.is_candidate(_bank(1, 1000, "credit"), book[0], tolerance=100)
    assert not reconciliation.is_candidate(_bank(1, 999.99, "credit"), book[0], tolerance=100)


def test_suggestions_may_share_a_book_entry_and_are_capped():
    book = [_book("expense", 1, 500)]
    txns = [_bank(i, 500) for i in range(1, 6)]
    suggestions = reconciliation.suggest_matches(txns, book, tolerance=100)
    assert [s["bank_transaction_id"] for s in suggestions] == [1, 2, 3]
    assert {s["book_id"] for s in suggestions} == {1}


def test_cap_counts_bank_rows_not_suggestions():
    book = [_book("expense", 1, 500)]
    txns = [_bank(1, 9000), _bank(2, 9000), _bank(3, 9000), _bank(4, 500)]
    assert reconciliation.suggest_matches(txns, book, tolerance=100) == []


def test_calculate_tax_rounds():
    assert finance.calculate_tax(999.99, 18) == {
        "amount": 999.99, "tax_rate": 18, "tax_amount": 180.0, "total_amount": 1179.99,
    }


def test_payroll_amounts():
    amounts = finance.payroll_amounts(3000, overtime_hours=5, overtime_rate=20, bonus=100,
                                      deductions=50, tax_deduction=300)
    assert amounts == {"overtime_pay": 100, "gross_pay": 3200, "net_pay": 2850}


def test_leave_days_and_worked_hours():
    assert finance.leave_days(date(2024, 2, 28), date(2024, 3, 1)) == 3
    assert finance.worked_hours(datetime(2024, 1, 1, 9), datetime(2024, 1, 1, 13, 15), 15) == 4.0


@pytest.mark.parametrize("period,expected", [
    ("this_month", (date(2024, 2, 1), date(2024, 2, 29))),
    ("last_month", (date(2024, 1, 1), date(2024, 1, 31))),
    ("this_quarter", (date(2024, 1, 1), date(2024, 3, 31))),
    ("this_year", (date(2024, 1, 1), date(2024, 12, 31))),
])
def test_period_range(period, expected):
    assert finance.period_range(period, today=date(2024, 2, 14)) == expected


def test_period_range_rejects_unknown():
    with pytest.raises(ValueError):
        finance.period_range("fortnight")


def test_relative_due_labels():
    today = date(2024, 5, 10)
    assert finance.relative_due(date(2024, 5, 9), today) == "Overdue"
    assert finance.relative_due(date(2024, 5, 10), today) == "Due Today"
    assert finance.relative_due(date(2024, 5, 11), today) == "Due Tomorrow"
    assert finance.relative_due(date(2024, 5, 15), today) == "Due in 5 days"


def test_last_months_crosses_year_boundary():
    assert analytics.last_months(3, today=date(2024, 2, 5)) == [(2023, 12), (2024, 1), (2024, 2)]


def test_expense_buckets():
    assert analytics.expense_bucket("Office Rent") == "rent"
    assert analytics.expense_bucket("Staff Salary") == "salary"
    assert analytics.expense_bucket("Electricity") == "utilities"
    assert analytics.expense_bucket("Google Advertising") == "marketing"
    assert analytics.expense_bucket(None) == "others"


def test_monthly_profit_uses_expense_buckets():
    months = [(2024, 1)]
    invoices = [SimpleNamespace(invoice_date=date(2024, 1, 3), paid_amount=1000, customer_name="Acme")]
    expenses = [SimpleNamespace(date=date(2024, 1, 9), amount=400, category="Rent")]
    profit = analytics.monthly_profit(analytics.monthly_sales(invoices, months),
                                      analytics.monthly_expenses(expenses, months))
    assert profit == [{
        "month": "Jan", "revenue": 1000.0, "expenses": 400.0, "profit": 600.0,
        "profit_margin": 60.0, "gross_profit": 700.0, "net_profit": 600.0,
    }]


def test_rates_guard_against_zero():
    assert analytics.conversion_rate(0, 0) == 0
    assert analytics.conversion_rate(1, 3) == 33
    assert analytics.growth_rate(150, 0) == 0
    assert analytics.growth_rate(150, 100) == 50.0
    assert analytics.profit_margin(0, 10) == 0
