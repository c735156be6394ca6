from datetime import date, datetime, timedelta
from fastapi import APIRouter, Depends, HTTPException, Query, Body
from sqlalchemy.orm import Session
from sqlalchemy import func, desc
from vorniq.db.session import get_db
from vorniq.core.auth import require_module
from vorniq.core.helpers import (
    require_fields, parse_enum, parse_date, parse_datetime, parse_float, parse_int,
    iso, money, search_filter, commit_or_400, get_or_404,
)
from vorniq.models.models import (
    Employee, EmployeeStatus, Attendance, AttendanceStatus, LeaveRequest, LeaveStatus,
    Payroll, PayrollStatus, JobPosition, PositionStatus, JobApplication, ApplicationStage,
    PerformanceReview, ReviewStatus, User
)
from vorniq.services.finance import payroll_amounts, leave_days, worked_hours

router = APIRouter(prefix="/api/hrm", tags=["hrm"])

hrm_user = require_module("hrm")


def _employee_name(e):
    return e.full_name if e else None


def _serialize_employee(e):
    return {
        "id": e.id,
        "employee_id": e.employee_id,
        "first_name": e.first_name,
        "last_name": e.last_name,
        "full_name": e.full_name,
        "email": e.email,
        "phone": e.phone,
        "date_of_birth": iso(e.date_of_birth),
        "hire_date": iso(e.hire_date),
        "department": e.department,
        "position": e.position,
        "salary": float(e.salary) if e.salary is not None else None,
        "employment_type": e.employment_type,
        "status": e.status.value if e.status else None,
        "manager_id": e.manager_id,
        "manager_name": _employee_name(e.manager),
        "address": e.address,
        "emergency_contact_name": e.emergency_contact_name,
        "emergency_contact_phone": e.emergency_contact_phone,
        "photo_url": e.photo_url,
        "created_at": iso(e.created_at),
        "updated_at": iso(e.updated_at),
    }


def _serialize_attendance(a):
    return {
        "id": a.id,
        "employee_id": a.employee_id,
        "employee_name": _employee_name(a.employee),
        "date": iso(a.date),
        "clock_in_time": iso(a.clock_in_time),
        "clock_out_time": iso(a.clock_out_time),
        "break_duration_minutes": a.break_duration_minutes or 0,
        "total_hours": float(a.total_hours) if a.total_hours is not None else None,
        "status": a.status.value if a.status else None,
        "notes": a.notes,
        "created_at": iso(a.created_at),
    }


def _serialize_leave(l):
    return {
        "id": l.id,
        "employee_id": l.employee_id,
        "employee_name": _employee_name(l.employee),
        "leave_type": l.leave_type,
        "start_date": iso(l.start_date),
        "end_date": iso(l.end_date),
        "total_days": l.total_days,
        "reason": l.reason,
        "status": l.status.value if l.status else None,
        "approved_by": l.approved_by,
        "approved_at": iso(l.approved_at),
        "rejection_reason": l.rejection_reason,
        "created_at": iso(l.created_at),
    }


def _serialize_payroll(p):
    return {
        "id": p.id,
        "employee_id": p.employee_id,
        "employee_name": _employee_name(p.employee),
        "pay_period_start": iso(p.pay_period_start),
        "pay_period_end": iso(p.pay_period_end),
        "base_salary": money(p.base_salary),
        "overtime_hours": money(p.overtime_hours),
        "overtime_rate": money(p.overtime_rate),
        "bonus": money(p.bonus),
        "deductions": money(p.deductions),
        "gross_pay": money(p.gross_pay),
        "tax_deduction": money(p.tax_deduction),
        "net_pay": money(p.net_pay),
        "status": p.status.value if p.status else None,
        "processed_at": iso(p.processed_at),
        "created_at": iso(p.created_at),
    }


def _serialize_position(p, application_count=None):
    return {
        "id": p.id,
        "title": p.title,
        "department": p.department,
        "description": p.description,
        "requirements": p.requirements,
        "salary_min": float(p.salary_min) if p.salary_min is not None else None,
        "salary_max": float(p.salary_max) if p.salary_max is not None else None,
        "employment_type": p.employment_type,
        "location": p.location,
        "status": p.status.value if p.status else None,
        "posted_date": iso(p.posted_date),
        "closing_date": iso(p.closing_date),
        "application_count": application_count if application_count is not None else len(p.applications),
        "created_at": iso(p.created_at),
    }


def _serialize_application(a):
    return {
        "id": a.id,
        "position_id": a.position_id,
        "position_title": a.position.title if a.position else None,
        "first_name": a.first_name,
        "last_name": a.last_name,
        "email": a.email,
        "phone": a.phone,
        "resume_url": a.resume_url,
        "cover_letter": a.cover_letter,
        "experience_years": a.experience_years,
        "current_salary": float(a.current_salary) if a.current_salary is not None else None,
        "expected_salary": float(a.expected_salary) if a.expected_salary is not None else None,
        "stage": a.stage.value if a.stage else None,
        "interview_date": iso(a.interview_date),
        "notes": a.notes,
        "rating": a.rating,
        "created_at": iso(a.created_at),
    }


def _serialize_review(r):
    return {
        "id": r.id,
        "employee_id": r.employee_id,
        "employee_name": _employee_name(r.employee),
        "reviewer_id": r.reviewer_id,
        "reviewer_name": _employee_name(r.reviewer),
        "review_period_start": iso(r.review_period_start),
        "review_period_end": iso(r.review_period_end),
        "goals_achieved": r.goals_achieved,
        "areas_improvement": r.areas_improvement,
        "strengths": r.strengths,
        "overall_rating": r.overall_rating,
        "performance_score": float(r.performance_score) if r.performance_score is not None else None,
        "salary_recommendation": float(r.salary_recommendation) if r.salary_recommendation is not None else None,
        "promotion_eligible": bool(r.promotion_eligible),
        "status": r.status.value if r.status else None,
        "completed_at": iso(r.completed_at),
        "created_at": iso(r.created_at),
    }


def _require_employee(db: Session, employee_id):
    emp_id = parse_int(employee_id, "employee_id")
    return get_or_404(db, Employee, emp_id, "Employee")


@router.get("/stats")
def get_hrm_stats(user: User = Depends(hrm_user), db: Session = Depends(get_db)):
    today = date.today()
    total_employees = db.query(func.count(Employee.id)).scalar() or 0
    active_employees = db.query(func.count(Employee.id)).filter(Employee.status == EmployeeStatus.ACTIVE).scalar() or 0
    present_today = db.query(func.count(Attendance.id)).filter(
        Attendance.date == today,
        Attendance.status == AttendanceStatus.PRESENT
    ).scalar() or 0
    pending_leaves = db.query(func.count(LeaveRequest.id)).filter(LeaveRequest.status == LeaveStatus.PENDING).scalar() or 0
    open_positions = db.query(func.count(JobPosition.id)).filter(JobPosition.status == PositionStatus.OPEN).scalar() or 0

    return {
        "total_employees": total_employees,
        "active_employees": active_employees,
        "present_today": present_today,
        "pending_leaves": pending_leaves,
        "open_positions": open_positions,
    }


@router.get("/employees")
def list_employees(
    search: str = Query(None),
    department: str = Query(None),
    status: str = Query(None),
    user: User = Depends(hrm_user),
    db: Session = Depends(get_db)
):
    q = db.query(Employee)
    if search:
        q = q.filter(search_filter(search, Employee.first_name, Employee.last_name, Employee.email, Employee.employee_id))
    if department:
        q = q.filter(Employee.department == department)
    if status:
        q = q.filter(Employee.status == parse_enum(EmployeeStatus, status, "status"))
    employees = q.order_by(desc(Employee.created_at), desc(Employee.id)).all()
    return [_serialize_employee(e) for e in employees]


def _apply_employee_fields(employee, data):
    for f in ["employee_id", "first_name", "last_name", "email", "phone", "department", "position",
              "employment_type", "address", "emergency_contact_name", "emergency_contact_phone", "photo_url"]:
        if f in data:
            setattr(employee, f, data[f])
    for f in ["date_of_birth", "hire_date"]:
        if f in data:
            setattr(employee, f, parse_date(data[f], f))
    if "salary" in data:
        employee.salary = parse_float(data["salary"], "salary")
    if "status" in data:
        employee.status = parse_enum(EmployeeStatus, data["status"], "status", EmployeeStatus.ACTIVE)
    if "manager_id" in data:
        employee.manager_id = parse_int(data["manager_id"], "manager_id")


@router.post("/employees")
def create_employee(data: dict = Body(...), user: User = Depends(hrm_user), db: Session = Depends(get_db)):
    require_fields(data, "employee_id", "first_name", "last_name", "email")
    existing = db.query(Employee).filter(
        (Employee.employee_id == data["employee_id"]) | (Employee.email == data["email"])
    ).first()
    if existing:
        raise HTTPException(status_code=400, detail="Employee ID or email already exists")

    employee = Employee(status=EmployeeStatus.ACTIVE, employment_type="full-time")
    _apply_employee_fields(employee, data)
    db.add(employee)
    commit_or_400(db, "create employee")
    db.refresh(employee)
    return _serialize_employee(employee)


@router.get("/employees/{employee_id}")
def get_employee(employee_id: int, user: User = Depends(hrm_user), db: Session = Depends(get_db)):
    employee = get_or_404(db, Employee, employee_id, "Employee")
    result = _serialize_employee(employee)
    recent = db.query(Attendance).filter(Attendance.employee_id == employee_id).order_by(desc(Attendance.date)).limit(10).all()
    leaves = db.query(LeaveRequest).filter(LeaveRequest.employee_id == employee_id).order_by(desc(LeaveRequest.created_at)).all()
    result["recent_attendance"] = [_serialize_attendance(a) for a in recent]
    result["leave_requests"] = [_serialize_leave(l) for l in leaves]
    return result


@router.put("/employees/{employee_id}")
def update_employee(employee_id: int, data: dict = Body(...), user: User = Depends(hrm_user), db: Session = Depends(get_db)):
    employee = get_or_404(db, Employee, employee_id, "Employee")
    for f in ["employee_id", "first_name", "last_name", "email"]:
        if f in data:
            require_fields(data, f)
    if data.get("manager_id") and parse_int(data["manager_id"], "manager_id") == employee_id:
        raise HTTPException(status_code=400, detail="An employee cannot manage themselves")
    _apply_employee_fields(employee, data)
    commit_or_400(db, f"update employee {employee_id}")
    db.refresh(employee)
    return _serialize_employee(employee)


@router.delete("/employees/{employee_id}")
def delete_employee(employee_id: int, user: User = Depends(hrm_user), db: Session = Depends(get_db)):
    employee = get_or_404(db, Employee, employee_id, "Employee")
    db.delete(employee)
    commit_or_400(db, f"delete employee {employee_id}")
    return {"ok": True, "deleted": employee_id}


@router.get("/recent-hires")
def get_recent_hires(user: User = Depends(hrm_user), db: Session = Depends(get_db)):
    since = date.today() - timedelta(days=30)
    hires = db.query(Employee).filter(Employee.hire_date >= since).order_by(desc(Employee.hire_date)).limit(5).all()
    return [_serialize_employee(e) for e in hires]


@router.get("/attendance/summary")
def get_attendance_summary(day: str = Query(None, alias="date"), user: User = Depends(hrm_user), db: Session = Depends(get_db)):
    target = parse_date(day, "date") or date.today()
    rows = db.query(Attendance.status, func.count(Attendance.id)).filter(
        Attendance.date == target
    ).group_by(Attendance.status).all()
    counts = {s: c for s, c in rows}
    return {
        "date": target.isoformat(),
        "total": sum(counts.values()),
        "present": counts.get(AttendanceStatus.PRESENT, 0),
        "absent": counts.get(AttendanceStatus.ABSENT, 0),
        "late": counts.get(AttendanceStatus.LATE, 0),
        "half_day": counts.get(AttendanceStatus.HALF_DAY, 0),
        "on_leave": counts.get(AttendanceStatus.LEAVE, 0),
    }


@router.get("/attendance")
def list_attendance(
    employee_id: int = Query(None),
    day: str = Query(None, alias="date"),
    status: str = Query(None),
    user: User = Depends(hrm_user),
    db: Session = Depends(get_db)
):
    q = db.query(Attendance)
    if employee_id:
        q = q.filter(Attendance.employee_id == employee_id)
    if day:
        q = q.filter(Attendance.date == parse_date(day, "date"))
    if status:
        q = q.filter(Attendance.status == parse_enum(AttendanceStatus, status, "status"))
    records = q.order_by(desc(Attendance.date), desc(Attendance.id)).all()
    return [_serialize_attendance(a) for a in records]


def _apply_attendance_fields(record, data):
    if "date" in data:
        record.date = parse_date(data["date"], "date")
    for f in ["clock_in_time", "clock_out_time"]:
        if f in data:
            setattr(record, f, parse_datetime(data[f], f))
    if "break_duration_minutes" in data:
        record.break_duration_minutes = parse_int(data["break_duration_minutes"], "break_duration_minutes", 0)
    if "status" in data:
        record.status = parse_enum(AttendanceStatus, data["status"], "status", AttendanceStatus.PRESENT)
    if "notes" in data:
        record.notes = data["notes"]
    if data.get("total_hours") not in (None, ""):
        record.total_hours = parse_float(data["total_hours"], "total_hours")
    elif record.clock_in_time and record.clock_out_time:
        if record.clock_out_time < record.clock_in_time:
            raise HTTPException(status_code=400, detail="Clock-out time is before clock-in time")
        record.total_hours = worked_hours(record.clock_in_time, record.clock_out_time, record.break_duration_minutes)


@router.post("/attendance")
def create_attendance(data: dict = Body(...), user: User = Depends(hrm_user), db: Session = Depends(get_db)):
    require_fields(data, "employee_id", "date")
    employee = _require_employee(db, data["employee_id"])
    record = Attendance(employee_id=employee.id, status=AttendanceStatus.PRESENT, break_duration_minutes=0)
    _apply_attendance_fields(record, data)
    db.add(record)
    commit_or_400(db, "record attendance")
    db.refresh(record)
    return _serialize_attendance(record)


@router.put("/attendance/{attendance_id}")
def update_attendance(attendance_id: int, data: dict = Body(...), user: User = Depends(hrm_user), db: Session = Depends(get_db)):
    record = get_or_404(db, Attendance, attendance_id, "Attendance record")
    _apply_attendance_fields(record, data)
    commit_or_400(db, f"update attendance {attendance_id}")
    db.refresh(record)
    return _serialize_attendance(record)


@router.delete("/attendance/{attendance_id}")
def delete_attendance(attendance_id: int, user: User = Depends(hrm_user), db: Session = Depends(get_db)):
    record = get_or_404(db, Attendance, attendance_id, "Attendance record")
    db.delete(record)
    commit_or_400(db, f"delete attendance {attendance_id}")
    return {"ok": True, "deleted": attendance_id}


@router.get("/leave-requests")
def list_leave_requests(
    status: str = Query(None),
    employee_id: int = Query(None),
    user: User = Depends(hrm_user),
    db: Session = Depends(get_db)
):
    q = db.query(LeaveRequest)
    if status:
        q = q.filter(LeaveRequest.status == parse_enum(LeaveStatus, status, "status"))
    if employee_id:
        q = q.filter(LeaveRequest.employee_id == employee_id)
    leaves = q.order_by(desc(LeaveRequest.created_at), desc(LeaveRequest.id)).all()
    return [_serialize_leave(l) for l in leaves]


@router.post("/leave-requests")
def create_leave_request(data: dict = Body(...), user: User = Depends(hrm_user), db: Session = Depends(get_db)):
    require_fields(data, "employee_id", "leave_type", "start_date", "end_date")
    employee = _require_employee(db, data["employee_id"])
    start = parse_date(data["start_date"], "start_date")
    end = parse_date(data["end_date"], "end_date")
    if end < start:
        raise HTTPException(status_code=400, detail="End date is before start date")

    leave = LeaveRequest(
        employee_id=employee.id,
        leave_type=data["leave_type"],
        start_date=start,
        end_date=end,
        total_days=parse_int(data.get("total_days"), "total_days") or leave_days(start, end),
        reason=data.get("reason"),
        status=LeaveStatus.PENDING,
    )
    db.add(leave)
    commit_or_400(db, "create leave request")
    db.refresh(leave)
    return _serialize_leave(leave)


def _decide_leave(db: Session, leave_id: int, user: User, status: LeaveStatus, reason=None):
    leave = get_or_404(db, LeaveRequest, leave_id, "Leave request")
    if leave.status != LeaveStatus.PENDING:
        raise HTTPException(status_code=400, detail=f"Leave request is already {leave.status.value}")
    leave.status = status
    leave.approved_by = user.id
    leave.approved_at = datetime.utcnow()
    leave.rejection_reason = reason
    commit_or_400(db, f"{status.value} leave request {leave_id}")
    db.refresh(leave)
    return _serialize_leave(leave)


@router.post("/leave-requests/{leave_id}/approve")
def approve_leave_request(leave_id: int, user: User = Depends(hrm_user), db: Session = Depends(get_db)):
    return _decide_leave(db, leave_id, user, LeaveStatus.APPROVED)


@router.post("/leave-requests/{leave_id}/reject")
def reject_leave_request(leave_id: int, data: dict = Body(default={}), user: User = Depends(hrm_user), db: Session = Depends(get_db)):
    return _decide_leave(db, leave_id, user, LeaveStatus.REJECTED, data.get("reason"))


@router.delete("/leave-requests/{leave_id}")
def delete_leave_request(leave_id: int, user: User = Depends(hrm_user), db: Session = Depends(get_db)):
    leave = get_or_404(db, LeaveRequest, leave_id, "Leave request")
    db.delete(leave)
    commit_or_400(db, f"delete leave request {leave_id}")
    return {"ok": True, "deleted": leave_id}


@router.get("/payroll/summary")
def get_payroll_summary(status: str = Query(None), user: User = Depends(hrm_user), db: Session = Depends(get_db)):
    q = db.query(
        func.count(Payroll.id),
        func.coalesce(func.sum(Payroll.gross_pay), 0),
        func.coalesce(func.sum(Payroll.net_pay), 0),
    )
    if status:
        q = q.filter(Payroll.status == parse_enum(PayrollStatus, status, "status"))
    count, gross, net = q.one()
    return {"records": count, "total_gross": round(float(gross), 2), "total_net": round(float(net), 2)}


@router.get("/payroll")
def list_payroll(
    status: str = Query(None),
    employee_id: int = Query(None),
    user: User = Depends(hrm_user),
    db: Session = Depends(get_db)
):
    q = db.query(Payroll)
    if status:
        q = q.filter(Payroll.status == parse_enum(PayrollStatus, status, "status"))
    if employee_id:
        q = q.filter(Payroll.employee_id == employee_id)
    records = q.order_by(desc(Payroll.pay_period_start), desc(Payroll.id)).all()
    return [_serialize_payroll(p) for p in records]


PAYROLL_INPUT_FIELDS = ["base_salary", "overtime_hours", "overtime_rate", "bonus", "deductions", "tax_deduction"]


def _apply_payroll_fields(record, data):
    for f in ["pay_period_start", "pay_period_end"]:
        if f in data:
            setattr(record, f, parse_date(data[f], f))
    for f in PAYROLL_INPUT_FIELDS:
        if f in data:
            setattr(record, f, parse_float(data[f], f, 0))
    if "status" in data:
        record.status = parse_enum(PayrollStatus, data["status"], "status", PayrollStatus.DRAFT)
        if record.status != PayrollStatus.DRAFT and record.processed_at is None:
            record.processed_at = datetime.utcnow()

    inputs_changed = record.gross_pay is None or any(f in data for f in PAYROLL_INPUT_FIELDS)
    if inputs_changed:
        amounts = payroll_amounts(record.base_salary, record.overtime_hours, record.overtime_rate,
                                  record.bonus, record.deductions, record.tax_deduction)
        record.gross_pay = amounts["gross_pay"]
        record.net_pay = amounts["net_pay"]
    if "gross_pay" in data:
        record.gross_pay = parse_float(data["gross_pay"], "gross_pay", record.gross_pay)
    if "net_pay" in data:
        record.net_pay = parse_float(data["net_pay"], "net_pay", record.net_pay)


@router.post("/payroll")
def create_payroll(data: dict = Body(...), user: User = Depends(hrm_user), db: Session = Depends(get_db)):
    require_fields(data, "employee_id", "pay_period_start", "pay_period_end", "base_salary")
    employee = _require_employee(db, data["employee_id"])
    record = Payroll(employee_id=employee.id, status=PayrollStatus.DRAFT, overtime_hours=0,
                     overtime_rate=0, bonus=0, deductions=0, tax_deduction=0)
    _apply_payroll_fields(record, data)
    if record.pay_period_end < record.pay_period_start:
        raise HTTPException(status_code=400, detail="Pay period end is before its start")
    db.add(record)
    commit_or_400(db, "create payroll record")
    db.refresh(record)
    return _serialize_payroll(record)


@router.put("/payroll/{payroll_id}")
def update_payroll(payroll_id: int, data: dict = Body(...), user: User = Depends(hrm_user), db: Session = Depends(get_db)):
    record = get_or_404(db, Payroll, payroll_id, "Payroll record")
    _apply_payroll_fields(record, data)
    commit_or_400(db, f"update payroll {payroll_id}")
    db.refresh(record)
    return _serialize_payroll(record)


@router.delete("/payroll/{payroll_id}")
def delete_payroll(payroll_id: int, user: User = Depends(hrm_user), db: Session = Depends(get_db)):
    record = get_or_404(db, Payroll, payroll_id, "Payroll record")
    db.delete(record)
    commit_or_400(db, f"delete payroll {payroll_id}")
    return {"ok": True, "deleted": payroll_id}


@router.get("/positions")
def list_positions(
    search: str = Query(None),
    status: str = Query(None),
    department: str = Query(None),
    user: User = Depends(hrm_user),
    db: Session = Depends(get_db)
):
    q = db.query(JobPosition)
    if search:
        q = q.filter(search_filter(search, JobPosition.title, JobPosition.description))
    if status:
        q = q.filter(JobPosition.status == parse_enum(PositionStatus, status, "status"))
    if department:
        q = q.filter(JobPosition.department == department)
    positions = q.order_by(desc(JobPosition.created_at), desc(JobPosition.id)).all()

    counts = dict(db.query(JobApplication.position_id, func.count(JobApplication.id)).group_by(JobApplication.position_id).all())
    return [_serialize_position(p, counts.get(p.id, 0)) for p in positions]


def _apply_position_fields(position, data):
    for f in ["title", "department", "description", "requirements", "employment_type", "location"]:
        if f in data:
            setattr(position, f, data[f])
    for f in ["salary_min", "salary_max"]:
        if f in data:
            setattr(position, f, parse_float(data[f], f))
    for f in ["posted_date", "closing_date"]:
        if f in data:
            setattr(position, f, parse_date(data[f], f))
    if "status" in data:
        position.status = parse_enum(PositionStatus, data["status"], "status", PositionStatus.OPEN)
    if position.salary_min is not None and position.salary_max is not None and position.salary_min > position.salary_max:
        raise HTTPException(status_code=400, detail="Minimum salary exceeds maximum salary")


@router.post("/positions")
def create_position(data: dict = Body(...), user: User = Depends(hrm_user), db: Session = Depends(get_db)):
    require_fields(data, "title")
    position = JobPosition(status=PositionStatus.OPEN, posted_date=date.today(), employment_type="full-time")
    _apply_position_fields(position, data)
    db.add(position)
    commit_or_400(db, "create job position")
    db.refresh(position)
    return _serialize_position(position, 0)


@router.put("/positions/{position_id}")
def update_position(position_id: int, data: dict = Body(...), user: User = Depends(hrm_user), db: Session = Depends(get_db)):
    position = get_or_404(db, JobPosition, position_id, "Job position")
    _apply_position_fields(position, data)
    commit_or_400(db, f"update job position {position_id}")
    db.refresh(position)
    return _serialize_position(position)


@router.delete("/positions/{position_id}")
def delete_position(position_id: int, user: User = Depends(hrm_user), db: Session = Depends(get_db)):
    position = get_or_404(db, JobPosition, position_id, "Job position")
    db.delete(position)
    commit_or_400(db, f"delete job position {position_id}")
    return {"ok": True, "deleted": position_id}


@router.get("/applications")
def list_applications(
    search: str = Query(None),
    position_id: int = Query(None),
    stage: str = Query(None),
    user: User = Depends(hrm_user),
    db: Session = Depends(get_db)
):
    q = db.query(JobApplication)
    if search:
        q = q.filter(search_filter(search, JobApplication.first_name, JobApplication.last_name, JobApplication.email))
    if position_id:
        q = q.filter(JobApplication.position_id == position_id)
    if stage:
        q = q.filter(JobApplication.stage == parse_enum(ApplicationStage, stage, "stage"))
    applications = q.order_by(desc(JobApplication.created_at), desc(JobApplication.id)).all()
    return [_serialize_application(a) for a in applications]


def _apply_application_fields(application, data):
    for f in ["first_name", "last_name", "email", "phone", "resume_url", "cover_letter", "notes"]:
        if f in data:
            setattr(application, f, data[f])
    for f in ["current_salary", "expected_salary"]:
        if f in data:
            setattr(application, f, parse_float(data[f], f))
    if "experience_years" in data:
        application.experience_years = parse_int(data["experience_years"], "experience_years")
    if "rating" in data:
        rating = parse_int(data["rating"], "rating")
        if rating is not None and not 1 <= rating <= 5:
            raise HTTPException(status_code=400, detail="Rating must be between 1 and 5")
        application.rating = rating
    if "interview_date" in data:
        application.interview_date = parse_datetime(data["interview_date"], "interview_date")
    if "stage" in data:
        application.stage = parse_enum(ApplicationStage, data["stage"], "stage", ApplicationStage.APPLIED)


@router.post("/applications")
def create_application(data: dict = Body(...), user: User = Depends(hrm_user), db: Session = Depends(get_db)):
    require_fields(data, "position_id", "first_name", "last_name", "email")
    position = get_or_404(db, JobPosition, parse_int(data["position_id"], "position_id"), "Job position")
    application = JobApplication(position_id=position.id, stage=ApplicationStage.APPLIED)
    _apply_application_fields(application, data)
    db.add(application)
    commit_or_400(db, "create job application")
    db.refresh(application)
    return _serialize_application(application)


@router.put("/applications/{application_id}")
def update_application(application_id: int, data: dict = Body(...), user: User = Depends(hrm_user), db: Session = Depends(get_db)):
    application = get_or_404(db, JobApplication, application_id, "Application")
    _apply_application_fields(application, data)
    commit_or_400(db, f"update application {application_id}")
    db.refresh(application)
    return _serialize_application(application)


@router.delete("/applications/{application_id}")
def delete_application(application_id: int, user: User = Depends(hrm_user), db: Session = Depends(get_db)):
    application = get_or_404(db, JobApplication, application_id, "Application")
    db.delete(application)
    commit_or_400(db, f"delete application {application_id}")
    return {"ok": True, "deleted": application_id}


@router.get("/reviews/upcoming")
def get_upcoming_reviews(user: User = Depends(hrm_user), db: Session = Depends(get_db)):
    today = date.today()
    reviews = db.query(PerformanceReview).filter(
        PerformanceReview.status == ReviewStatus.DRAFT,
        PerformanceReview.review_period_start >= today,
        PerformanceReview.review_period_start <= today + timedelta(days=31),
    ).order_by(PerformanceReview.review_period_start).limit(5).all()
    return [_serialize_review(r) for r in reviews]


@router.get("/reviews")
def list_reviews(
    status: str = Query(None),
    employee_id: int = Query(None),
    user: User = Depends(hrm_user),
    db: Session = Depends(get_db)
):
    q = db.query(PerformanceReview)
    if status:
        q = q.filter(PerformanceReview.status == parse_enum(ReviewStatus, status, "status"))
    if employee_id:
        q = q.filter(PerformanceReview.employee_id == employee_id)
    reviews = q.order_by(desc(PerformanceReview.created_at), desc(PerformanceReview.id)).all()
    return [_serialize_review(r) for r in reviews]


def _apply_review_fields(review, data):
    for f in ["goals_achieved", "areas_improvement", "strengths"]:
        if f in data:
            setattr(review, f, data[f])
    for f in ["review_period_start", "review_period_end"]:
        if f in data:
            setattr(review, f, parse_date(data[f], f))
    if "reviewer_id" in data:
        review.reviewer_id = parse_int(data["reviewer_id"], "reviewer_id")
    if "overall_rating" in data:
        rating = parse_int(data["overall_rating"], "overall_rating")
        if rating is not None and not 1 <= rating <= 5:
            raise HTTPException(status_code=400, detail="Overall rating must be between 1 and 5")
        review.overall_rating = rating
    for f in ["performance_score", "salary_recommendation"]:
        if f in data:
            setattr(review, f, parse_float(data[f], f))
    if "promotion_eligible" in data:
        review.promotion_eligible = bool(data["promotion_eligible"])
    if "status" in data:
        review.status = parse_enum(ReviewStatus, data["status"], "status", ReviewStatus.DRAFT)
        if review.status == ReviewStatus.COMPLETED and review.completed_at is None:
            review.completed_at = datetime.utcnow()


@router.post("/reviews")
def create_review(data: dict = Body(...), user: User = Depends(hrm_user), db: Session = Depends(get_db)):
    require_fields(data, "employee_id", "review_period_start", "review_period_end")
    employee = _require_employee(db, data["employee_id"])
    review = PerformanceReview(employee_id=employee.id, status=ReviewStatus.DRAFT, promotion_eligible=False)
    _apply_review_fields(review, data)
    db.add(review)
    commit_or_400(db, "create performance review")
    db.refresh(review)
    return _serialize_review(review)


@router.put("/reviews/{review_id}")
def update_review(review_id: int, data: dict = Body(...), user: User = Depends(hrm_user), db: Session = Depends(get_db)):
    review = get_or_404(db, PerformanceReview, review_id, "Performance review")
    _apply_review_fields(review, data)
    commit_or_400(db, f"update performance review {review_id}")
    db.refresh(review)
    return _serialize_review(review)


@router.delete("/reviews/{review_id}")
def delete_review(review_id: int, user: User = Depends(hrm_user), db: Session = Depends(get_db)):
    review = get_or_404(db, PerformanceReview, review_id, "Performance review")
    db.delete(review)
    commit_or_400(db, f"delete performance review {review_id}")
    return {"ok": True, "deleted": review_id}
