from datetime import date, datetime, timedelta

PERIODS = ("this_month", "last_month", "this_quarter", "this_year")


def calculate_tax(amount: float, rate: float) -> dict:
    tax_amount = round(amount * rate / 100, 2)
    return {
        "amount": round(amount, 2),
        "tax_rate": rate,
        "tax_amount": tax_amount,
        "total_amount": round(amount + tax_amount, 2),
    }


def payroll_amounts(base_salary, overtime_hours=0, overtime_rate=0, bonus=0, deductions=0, tax_deduction=0) -> dict:
    overtime_pay = (overtime_hours or 0) * (overtime_rate or 0)
    gross = (base_salary or 0) + overtime_pay + (bonus or 0)
    net = gross - (deductions or 0) - (tax_deduction or 0)
    return {
        "overtime_pay": round(overtime_pay, 2),
        "gross_pay": round(gross, 2),
        "net_pay": round(net, 2),
    }


def invoice_total(subtotal=0, tax_amount=0, discount_amount=0) -> float:
    return round((subtotal or 0) + (tax_amount or 0) - (discount_amount or 0), 2)


def leave_days(start: date, end: date) -> int:
    return (end - start).days + 1


def worked_hours(clock_in: datetime, clock_out: datetime, break_minutes: int = 0) -> float:
    minutes = (clock_out - clock_in).total_seconds() / 60 - (break_minutes or 0)
    return round(max(minutes, 0) / 60, 2)


def period_range(period: str, today: date | None = None) -> tuple[date, date]:
    """Inclusive start and end dates for a named reporting period."""
    today = today or date.today()
    if period == "this_month":
        start = today.replace(day=1)
        return start, _month_end(start)
    if period == "last_month":
        end = today.replace(day=1) - timedelta(days=1)
        return end.replace(day=1), end
    if period == "this_quarter":
        first_month = 3 * ((today.month - 1) // 3) + 1
        start = date(today.year, first_month, 1)
        return start, _month_end(date(today.year, first_month + 2, 1))
    if period == "this_year":
        return date(today.year, 1, 1), date(today.year, 12, 31)
    raise ValueError(f"Unknown period: {period}")


def _month_end(first_of_month: date) -> date:
    if first_of_month.month == 12:
        return date(first_of_month.year, 12, 31)
    return date(first_of_month.year, first_of_month.month + 1, 1) - timedelta(days=1)


def relative_due(due: date, today: date | None = None) -> str:
    today = today or date.today()
    days = (due - today).days
    if days < 0:
        return "Overdue"
    if days == 0:
        return "Due Today"
    if days == 1:
        return "Due Tomorrow"
    return f"Due in {days} days"


def category_breakdown(rows, default_category: str) -> dict:
    breakdown = {}
    for category, amount in rows:
        key = category or default_category
        breakdown[key] = round(breakdown.get(key, 0) + float(amount or 0), 2)
    return breakdown
