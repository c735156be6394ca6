from datetime import date, timedelta
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from sqlalchemy import func, desc
from vorniq.db.session import get_db
from vorniq.core.auth import require_module
from vorniq.core.helpers import iso, money
from vorniq.models.models import (
    Invoice, PaymentStatus, Expense, ExpenseStatus, Employee, Customer, Product,
    Attendance, Payroll, LeaveRequest, User
)
from vorniq.schemas.schemas import DashboardKPIs
from vorniq.services import analytics

router = APIRouter(prefix="/api/dashboard", tags=["dashboard"])

dashboard_user = require_module("dashboard")


def _window_start(months):
    year, month = months[0]
    return date(year, month, 1)


def _paid_invoices(db: Session, since: date):
    return db.query(Invoice).filter(
        Invoice.payment_status == PaymentStatus.PAID,
        Invoice.invoice_date >= since
    ).all()


def _approved_expenses(db: Session, since: date):
    return db.query(Expense).filter(
        Expense.status == ExpenseStatus.APPROVED,
        Expense.date >= since
    ).all()


@router.get("/kpis", response_model=DashboardKPIs)
def get_kpis(user: User = Depends(dashboard_user), db: Session = Depends(get_db)):
    total_revenue = db.query(func.coalesce(func.sum(Invoice.paid_amount), 0)).filter(
        Invoice.payment_status == PaymentStatus.PAID
    ).scalar() or 0
    total_expenses = db.query(func.coalesce(func.sum(Expense.amount), 0)).filter(
        Expense.status == ExpenseStatus.APPROVED
    ).scalar() or 0
    total_employees = db.query(func.count(Employee.id)).scalar() or 0
    active_customers = db.query(func.count(Customer.id)).scalar() or 0
    products_in_stock = db.query(func.count(Product.id)).filter(
        Product.is_active == True,
        Product.stock_quantity > 0
    ).scalar() or 0

    this_month = date.today().replace(day=1)
    last_month = (this_month - timedelta(days=1)).replace(day=1)
    current_sales = db.query(func.coalesce(func.sum(Invoice.paid_amount), 0)).filter(
        Invoice.payment_status == PaymentStatus.PAID,
        Invoice.invoice_date >= this_month
    ).scalar() or 0
    previous_sales = db.query(func.coalesce(func.sum(Invoice.paid_amount), 0)).filter(
        Invoice.payment_status == PaymentStatus.PAID,
        Invoice.invoice_date >= last_month,
        Invoice.invoice_date < this_month
    ).scalar() or 0

    net_profit = float(total_revenue) - float(total_expenses)
    return DashboardKPIs(
        total_revenue=round(float(total_revenue), 2),
        total_expenses=round(float(total_expenses), 2),
        net_profit=round(net_profit, 2),
        total_employees=total_employees,
        active_customers=active_customers,
        products_in_stock=products_in_stock,
        sales_growth=analytics.growth_rate(float(current_sales), float(previous_sales)),
        profit_margin=analytics.profit_margin(float(total_revenue), net_profit),
    )


@router.get("/sales")
def get_sales_series(months: int = Query(6, ge=1, le=24), user: User = Depends(dashboard_user), db: Session = Depends(get_db)):
    window = analytics.last_months(months)
    return analytics.monthly_sales(_paid_invoices(db, _window_start(window)), window)


@router.get("/expenses")
def get_expense_series(months: int = Query(6, ge=1, le=24), user: User = Depends(dashboard_user), db: Session = Depends(get_db)):
    window = analytics.last_months(months)
    return analytics.monthly_expenses(_approved_expenses(db, _window_start(window)), window)


@router.get("/profit")
def get_profit_series(months: int = Query(6, ge=1, le=24), user: User = Depends(dashboard_user), db: Session = Depends(get_db)):
    window = analytics.last_months(months)
    since = _window_start(window)
    sales = analytics.monthly_sales(_paid_invoices(db, since), window)
    expenses = analytics.monthly_expenses(_approved_expenses(db, since), window)
    return analytics.monthly_profit(sales, expenses)


@router.get("/hr")
def get_hr_series(months: int = Query(6, ge=1, le=24), user: User = Depends(dashboard_user), db: Session = Depends(get_db)):
    window = analytics.last_months(months)
    records = db.query(Attendance).filter(Attendance.date >= _window_start(window)).all()
    return analytics.monthly_attendance(records, window)


@router.get("/departments")
def get_departments(user: User = Depends(dashboard_user), db: Session = Depends(get_db)):
    rows = db.query(Employee.department).all()
    return analytics.department_counts(d for (d,) in rows)


@router.get("/payroll")
def get_payroll_series(months: int = Query(6, ge=1, le=24), user: User = Depends(dashboard_user), db: Session = Depends(get_db)):
    window = analytics.last_months(months)
    records = db.query(Payroll).filter(Payroll.pay_period_start >= _window_start(window)).all()
    return analytics.monthly_payroll(records, window)


@router.get("/top-products")
def get_top_products(limit: int = Query(5, ge=1, le=50), user: User = Depends(dashboard_user), db: Session = Depends(get_db)):
    products = db.query(Product).filter(Product.is_active == True).all()
    ranked = sorted(products, key=lambda p: money(p.price) * (p.stock_quantity or 0), reverse=True)
    return [{
        "id": p.id,
        "name": p.name,
        "category": p.category,
        "stock_quantity": p.stock_quantity or 0,
        "price": money(p.price),
        "stock_value": round(money(p.price) * (p.stock_quantity or 0), 2),
    } for p in ranked[:limit]]


@router.get("/expense-categories")
def get_expense_categories(user: User = Depends(dashboard_user), db: Session = Depends(get_db)):
    expenses = db.query(Expense).filter(Expense.status == ExpenseStatus.APPROVED).all()
    return analytics.expense_categories(expenses)


@router.get("/recent-expenses")
def get_recent_expenses(user: User = Depends(dashboard_user), db: Session = Depends(get_db)):
    expenses = db.query(Expense).order_by(desc(Expense.date), desc(Expense.id)).limit(5).all()
    return [{
        "id": e.id,
        "category": e.category,
        "description": e.description,
        "amount": money(e.amount),
        "date": iso(e.date),
        "status": e.status.value if e.status else None,
    } for e in expenses]


@router.get("/recent-hires")
def get_recent_hires(user: User = Depends(dashboard_user), db: Session = Depends(get_db)):
    hires = db.query(Employee).filter(Employee.hire_date.isnot(None)).order_by(
        desc(Employee.hire_date)
    ).limit(5).all()
    return [{
        "id": e.id,
        "name": e.full_name,
        "department": e.department,
        "position": e.position,
        "hire_date": iso(e.hire_date),
    } for e in hires]


@router.get("/leave-requests")
def get_leave_requests(user: User = Depends(dashboard_user), db: Session = Depends(get_db)):
    leaves = db.query(LeaveRequest).order_by(desc(LeaveRequest.created_at), desc(LeaveRequest.id)).limit(5).all()
    return [{
        "id": l.id,
        "employee_name": l.employee.full_name if l.employee else None,
        "leave_type": l.leave_type,
        "start_date": iso(l.start_date),
        "end_date": iso(l.end_date),
        "total_days": l.total_days,
        "status": l.status.value if l.status else None,
    } for l in leaves]
