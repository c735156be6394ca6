from datetime import date, timedelta


def _create_employee(client, headers, code="EMP100", email="sam@vorniq.test", **extra):
    data = {"employee_id": code, "first_name": "Sam", "last_name": "Lee", "email": email,
            "department": "Engineering", "salary": 50000, **extra}
    r = client.post("/api/hrm/employees", headers=headers, json=data)
    assert r.status_code == 200, r.text
    return r.json()


def test_create_employee_defaults_and_uniqueness(client, auth_headers):
    emp = _create_employee(client, auth_headers)
    assert emp["status"] == "active"
    assert emp["full_name"] == "Sam Lee"

    r = client.post("/api/hrm/employees", headers=auth_headers,
                    json={"employee_id": "EMP100", "first_name": "X", "last_name": "Y", "email": "other@vorniq.test"})
    assert r.status_code == 400

    r = client.post("/api/hrm/employees", headers=auth_headers, json={"first_name": "Only"})
    assert r.status_code == 400


def test_employee_cannot_manage_themselves(client, auth_headers):
    emp = _create_employee(client, auth_headers)
    r = client.put(f"/api/hrm/employees/{emp['id']}", headers=auth_headers, json={"manager_id": emp["id"]})
    assert r.status_code == 400


def test_employee_filters(client, auth_headers):
    _create_employee(client, auth_headers, "EMP1", "a@vorniq.test", department="Sales")
    _create_employee(client, auth_headers, "EMP2", "b@vorniq.test", department="Engineering", status="on_leave")

    sales = client.get("/api/hrm/employees?department=Sales", headers=auth_headers).json()
    assert [e["employee_id"] for e in sales] == ["EMP1"]

    on_leave = client.get("/api/hrm/employees?status=on_leave", headers=auth_headers).json()
    assert [e["employee_id"] for e in on_leave] == ["EMP2"]

    assert client.get("/api/hrm/employees?status=retired", headers=auth_headers).status_code == 400


def test_attendance_total_hours_is_computed(client, auth_headers):
    emp = _create_employee(client, auth_headers)
    r = client.post("/api/hrm/attendance", headers=auth_headers, json={
        "employee_id": emp["id"],
        "date": "2024-03-04",
        "clock_in_time": "2024-03-04T09:00:00",
        "clock_out_time": "2024-03-04T17:30:00",
        "break_duration_minutes": 30,
    })
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["total_hours"] == 8.0
    assert body["status"] == "present"
    assert body["employee_name"] == "Sam Lee"


def test_attendance_rejects_clock_out_before_clock_in(client, auth_headers):
    emp = _create_employee(client, auth_headers)
    r = client.post("/api/hrm/attendance", headers=auth_headers, json={
        "employee_id": emp["id"],
        "date": "2024-03-04",
        "clock_in_time": "2024-03-04T17:00:00",
        "clock_out_time": "2024-03-04T09:00:00",
    })
    assert r.status_code == 400


def test_attendance_for_unknown_employee_is_404(client, auth_headers):
    r = client.post("/api/hrm/attendance", headers=auth_headers, json={"employee_id": 999, "date": "2024-03-04"})
    assert r.status_code == 404


def test_leave_request_approve_and_reject(client, auth_headers):
    emp = _create_employee(client, auth_headers)
    leave = client.post("/api/hrm/leave-requests", headers=auth_headers, json={
        "employee_id": emp["id"], "leave_type": "vacation",
        "start_date": "2024-05-06", "end_date": "2024-05-10",
    }).json()
    assert leave["total_days"] == 5
    assert leave["status"] == "pending"

    processed = client.post(f"/api/hrm/leave-requests/{leave['id']}/approve", headers=auth_headers).json()
    assert processed["status"] == "processed"
    assert processed["approved_at"] is not None

    again = client.post(f"/api/hrm/leave-requests/{leave['id']}/reject", headers=auth_headers, json={})
    assert again.status_code == 400

    second = client.post("/api/hrm/leave-requests", headers=auth_headers, json={
        "employee_id": emp["id"], "leave_type": "sick",
        "start_date": "2024-06-03", "end_date": "2024-06-03",
    }).json()
    rejected = client.post(f"/api/hrm/leave-requests/{second['id']}/reject", headers=auth_headers,
                           json={"reason": "Team offsite"}).json()
    assert rejected["status"] == "rejected"
    assert rejected["rejection_reason"] == "Team offsite"


def test_leave_request_end_before_start(client, auth_headers):
    emp = _create_employee(client, auth_headers)
    r = client.post("/api/hrm/leave-requests", headers=auth_headers, json={
        "employee_id": emp["id"], "leave_type": "vacation",
        "start_date": "2024-05-10", "end_date": "2024-05-06",
    })
    assert r.status_code == 400


def test_payroll_gross_and_net(client, auth_headers):
    emp = _create_employee(client, auth_headers)
    r = client.post("/api/hrm/payroll", headers=auth_headers, json={
        "employee_id": emp["id"],
        "pay_period_start": "2024-03-01",
        "pay_period_end": "2024-03-31",
        "base_salary": 5000,
        "overtime_hours": 10,
        "overtime_rate": 25,
        "bonus": 200,
        "deductions": 100,
        "tax_deduction": 500,
    })
    assert r.status_code == 200, r.text
    record = r.json()
    assert record["gross_pay"] == 5450.0
    assert record["net_pay"] == 4850.0
    assert record["status"] == "draft"

    updated = client.put(f"/api/hrm/payroll/{record['id']}", headers=auth_headers,
                         json={"bonus": 0, "status": "processed"}).json()
    assert updated["gross_pay"] == 5250.0
    assert updated["processed_at"] is not None

    summary = client.get("/api/hrm/payroll/summary", headers=auth_headers).json()
    assert summary == {"records": 1, "total_gross": 5250.0, "total_net": 4650.0}


def test_payroll_status_update_keeps_manual_pay(client, auth_headers):
    emp = _create_employee(client, auth_headers)
    record = client.post("/api/hrm/payroll", headers=auth_headers, json={
        "employee_id": emp["id"],
        "pay_period_start": "2024-04-01",
        "pay_period_end": "2024-04-30",
        "base_salary": 3000,
    }).json()
    assert record["gross_pay"] == 3000.0

    manual = client.put(f"/api/hrm/payroll/{record['id']}", headers=auth_headers,
                        json={"gross_pay": 3100, "net_pay": 2900}).json()
    assert manual["gross_pay"] == 3100.0

    processed = client.put(f"/api/hrm/payroll/{record['id']}", headers=auth_headers,
                           json={"status": "processed"}).json()
    assert processed["status"] == "processed"
    assert processed["gross_pay"] == 3100.0
    assert processed["net_pay"] == 2900.0


def test_position_salary_range_and_application_rating(client, auth_headers):
    r = client.post("/api/hrm/positions", headers=auth_headers,
                    json={"title": "Designer", "salary_min": 9000, "salary_max": 5000})
    assert r.status_code == 400

    position = client.post("/api/hrm/positions", headers=auth_headers,
                           json={"title": "Designer", "salary_min": 5000, "salary_max": 9000}).json()
    assert position["application_count"] == 0

    r = client.post("/api/hrm/applications", headers=auth_headers, json={
        "position_id": position["id"], "first_name": "Ana", "last_name": "Diaz",
        "email": "ana@example.com", "rating": 7,
    })
    assert r.status_code == 400

    r = client.post("/api/hrm/applications", headers=auth_headers, json={
        "position_id": position["id"], "first_name": "Ana", "last_name": "Diaz",
        "email": "ana@example.com", "rating": 4,
    })
    assert r.status_code == 200
    assert r.json()["position_title"] == "Designer"

    positions = client.get("/api/hrm/positions", headers=auth_headers).json()
    assert positions[0]["application_count"] == 1


def test_stats(client, auth_headers):
    emp = _create_employee(client, auth_headers)
    _create_employee(client, auth_headers, "EMP2", "t@vorniq.test", status="terminated")
    client.post("/api/hrm/attendance", headers=auth_headers,
                json={"employee_id": emp["id"], "date": date.today().isoformat()})
    client.post("/api/hrm/leave-requests", headers=auth_headers, json={
        "employee_id": emp["id"], "leave_type": "vacation",
        "start_date": (date.today() + timedelta(days=7)).isoformat(),
        "end_date": (date.today() + timedelta(days=8)).isoformat(),
    })

    stats = client.get("/api/hrm/stats", headers=auth_headers).json()
    assert stats["total_employees"] == 2
    assert stats["active_employees"] == 1
    assert stats["present_today"] == 1
    assert stats["pending_leaves"] == 1
    assert stats["open_positions"] == 0


def test_attendance_summary_counts_by_status(client, auth_headers):
    a = _create_employee(client, auth_headers, "EMP1", "a@vorniq.test")
    b = _create_employee(client, auth_headers, "EMP2", "b@vorniq.test")
    client.post("/api/hrm/attendance", headers=auth_headers, json={"employee_id": a["id"], "date": "2024-04-01"})
    client.post("/api/hrm/attendance", headers=auth_headers,
                json={"employee_id": b["id"], "date": "2024-04-01", "status": "late"})

    summary = client.get("/api/hrm/attendance/summary?date=2024-04-01", headers=auth_headers).json()
    assert summary["total"] == 2
    assert summary["present"] == 1
    assert summary["late"] == 1
    assert summary["absent"] == 0


def test_recent_hires_and_upcoming_reviews(client, auth_headers):
    recent = _create_employee(client, auth_headers, "EMP1", "a@vorniq.test",
                              hire_date=(date.today() - timedelta(days=3)).isoformat())
    _create_employee(client, auth_headers, "EMP2", "b@vorniq.test", hire_date="2019-01-07")

    hires = client.get("/api/hrm/recent-hires", headers=auth_headers).json()
    assert [h["id"] for h in hires] == [recent["id"]]

    r = client.post("/api/hrm/reviews", headers=auth_headers, json={
        "employee_id": recent["id"],
        "review_period_start": (date.today() + timedelta(days=10)).isoformat(),
        "review_period_end": (date.today() + timedelta(days=40)).isoformat(),
    })
    assert r.status_code == 200, r.text
    upcoming = client.get("/api/hrm/reviews/upcoming", headers=auth_headers).json()
    assert [u["id"] for u in upcoming] == [r.json()["id"]]
