from datetime import date

DEPARTMENT_COLORS = ['#3b82f6', '#10b981', '#f59e0b', '#ef4444', '#8b5cf6', '#06b6d4']

EXPENSE_BUCKETS = [
    ("salary", ("salary", "payroll")),
    ("rent", ("rent", "office")),
    ("utilities", ("utility", "utilities", "electric")),
    ("marketing", ("marketing", "advertisement", "advertising")),
]

GROSS_MARGIN = 0.7


def last_months(count: int = 6, today: date | None = None) -> list[tuple[int, int]]:
    """(year, month) pairs for the last ``count`` months, oldest first."""
    today = today or date.today()
    year, month = today.year, today.month
    months = []
    for _ in range(count):
        months.append((year, month))
        month -= 1
        if month == 0:
            month = 12
            year -= 1
    return list(reversed(months))


def month_label(year: int, month: int) -> str:
    return date(year, month, 1).strftime("%b")


def _in_month(d, year: int, month: int) -> bool:
    return d is not None and d.year == year and d.month == month


def expense_bucket(category: str | None) -> str:
    lowered = (category or "").lower()
    for bucket, keywords in EXPENSE_BUCKETS:
        if any(k in lowered for k in keywords):
            return bucket
    return "others"


def monthly_sales(invoices, months) -> list[dict]:
    series = []
    for year, month in months:
        rows = [i for i in invoices if _in_month(i.invoice_date, year, month)]
        series.append({
            "month": month_label(year, month),
            "sales": round(sum(float(i.paid_amount or 0) for i in rows), 2),
            "orders": len(rows),
            "customers": len({i.customer_name for i in rows if i.customer_name}),
        })
    return series


def monthly_expenses(expenses, months) -> list[dict]:
    series = []
    for year, month in months:
        entry = {"month": month_label(year, month), "salary": 0.0, "rent": 0.0,
                 "utilities": 0.0, "marketing": 0.0, "others": 0.0}
        for e in expenses:
            if _in_month(e.date, year, month):
                entry[expense_bucket(e.category)] += float(e.amount or 0)
        for k in ("salary", "rent", "utilities", "marketing", "others"):
            entry[k] = round(entry[k], 2)
        series.append(entry)
    return series


def monthly_profit(sales_series, expense_series) -> list[dict]:
    series = []
    for sales, expenses in zip(sales_series, expense_series):
        revenue = sales["sales"]
        total_expenses = round(sum(v for k, v in expenses.items() if k != "month"), 2)
        profit = round(revenue - total_expenses, 2)
        series.append({
            "month": sales["month"],
            "revenue": revenue,
            "expenses": total_expenses,
            "profit": profit,
            "profit_margin": profit_margin(revenue, profit),
            "gross_profit": round(revenue * GROSS_MARGIN, 2),
            "net_profit": profit,
        })
    return series


def monthly_attendance(records, months) -> list[dict]:
    series = []
    for year, month in months:
        counts = {"present": 0, "absent": 0, "late": 0}
        for r in records:
            if _in_month(r.date, year, month):
                status = r.status.value if hasattr(r.status, "value") else r.status
                if status in counts:
                    counts[status] += 1
        series.append({"month": month_label(year, month), **counts})
    return series


def monthly_payroll(records, months) -> list[dict]:
    series = []
    for year, month in months:
        rows = [p for p in records if _in_month(p.pay_period_start, year, month)]
        series.append({
            "month": month_label(year, month),
            "salary": round(sum(float(p.base_salary or 0) for p in rows), 2),
            "benefits": round(sum(float(p.bonus or 0) for p in rows), 2),
            "overtime": round(sum(float(p.overtime_hours or 0) * float(p.overtime_rate or 0) for p in rows), 2),
        })
    return series


def department_counts(departments) -> list[dict]:
    counts = {}
    for d in departments:
        key = d or "Unassigned"
        counts[key] = counts.get(key, 0) + 1
    return [
        {"name": name, "value": count, "color": DEPARTMENT_COLORS[i % len(DEPARTMENT_COLORS)]}
        for i, (name, count) in enumerate(sorted(counts.items(), key=lambda kv: -kv[1]))
    ]


def expense_categories(expenses) -> list[dict]:
    totals = {}
    for e in expenses:
        key = e.category or "Other"
        totals[key] = totals.get(key, 0) + float(e.amount or 0)
    grand_total = sum(totals.values())
    result = []
    for name, amount in sorted(totals.items(), key=lambda kv: -kv[1]):
        result.append({
            "category": name,
            "amount": round(amount, 2),
            "percentage": round(amount / grand_total * 100, 1) if grand_total else 0,
        })
    return result


def growth_rate(current: float, previous: float) -> float:
    if not previous:
        return 0
    return round((current - previous) / previous * 100, 1)


def profit_margin(revenue: float, profit: float) -> float:
    if not revenue:
        return 0
    return round(profit / revenue * 100, 1)


def conversion_rate(won: int, total: int) -> int:
    if not total:
        return 0
    return round(won / total * 100)
