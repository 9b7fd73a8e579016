from datetime import date, datetime

import pytest

from ems_api.extensions import db
from ems_api.models.attendance import Attendance
from ems_api.services import attendance_service
from conftest import auth, make_department, make_employee, mark

LOCATION = {"type": "Point", "coordinates": [77.5946, 12.9716]}


def _at(monkeypatch, when: datetime):
    monkeypatch.setattr(attendance_service, "utcnow", lambda: when)


@pytest.fixture
def employee(app):
    return make_employee("E500", make_department("Support"))


@pytest.fixture
def emp_headers(employee):
    return auth(employee.id, "employee")


def test_check_in_before_start_is_present(client, employee, emp_headers, monkeypatch):
    _at(monkeypatch, datetime(2025, 3, 3, 8, 45))
    resp = client.post("/api/attendance/check-in", json={"location": LOCATION}, headers=emp_headers)
    assert resp.status_code == 200
    data = resp.get_json()["data"]
    assert data["status"] == "present"
    assert data["date"] == "2025-03-03"
    assert data["checkIn"]["location"]["coordinates"] == LOCATION["coordinates"]


def test_check_in_after_start_is_late(client, employee, emp_headers, monkeypatch):
    _at(monkeypatch, datetime(2025, 3, 3, 9, 1))
    resp = client.post("/api/attendance/check-in", json={"location": LOCATION}, headers=emp_headers)
    assert resp.get_json()["data"]["status"] == "late"


def test_check_in_requires_location(client, employee, emp_headers):
    resp = client.post("/api/attendance/check-in", json={}, headers=emp_headers)
    assert resp.status_code == 400
    assert resp.get_json()["message"] == "Location is required (type & coordinates)"


def test_second_check_in_is_rejected(client, employee, emp_headers, monkeypatch):
    _at(monkeypatch, datetime(2025, 3, 3, 8, 0))
    client.post("/api/attendance/check-in", json={"location": LOCATION}, headers=emp_headers)
    resp = client.post("/api/attendance/check-in", json={"location": LOCATION}, headers=emp_headers)
    assert resp.status_code == 400
    assert resp.get_json()["message"] == "Already checked in today"
    assert Attendance.query.filter_by(employee_id=employee.id).count() == 1


def test_check_out_computes_minutes_and_overtime(client, employee, emp_headers, monkeypatch):
    _at(monkeypatch, datetime(2025, 3, 3, 8, 0))
    client.post("/api/attendance/check-in", json={"location": LOCATION}, headers=emp_headers)

    _at(monkeypatch, datetime(2025, 3, 3, 17, 30, 45))
    resp = client.post("/api/attendance/check-out", json={}, headers=emp_headers)
    assert resp.status_code == 200
    data = resp.get_json()["data"]
    assert data["workingMinutes"] == 570
    assert data["overtimeMinutes"] == 90

    again = client.post("/api/attendance/check-out", json={}, headers=emp_headers)
    assert again.status_code == 400
    assert again.get_json()["message"] == "Already checked out today"


def test_short_day_has_no_overtime(client, employee, emp_headers, monkeypatch):
    _at(monkeypatch, datetime(2025, 3, 3, 9, 30))
    client.post("/api/attendance/check-in", json={"location": LOCATION}, headers=emp_headers)
    _at(monkeypatch, datetime(2025, 3, 3, 13, 0))
    data = client.post("/api/attendance/check-out", json={}, headers=emp_headers).get_json()["data"]
    assert data["workingMinutes"] == 210
    assert data["overtimeMinutes"] == 0


def test_check_out_without_check_in(client, employee, emp_headers, monkeypatch):
    _at(monkeypatch, datetime(2025, 3, 3, 17, 0))
    resp = client.post("/api/attendance/check-out", json={}, headers=emp_headers)
    assert resp.status_code == 400
    assert resp.get_json()["message"] == "No check-in record found for today"


def test_check_in_for_unknown_employee(client, app):
    resp = client.post("/api/attendance/check-in", json={"location": LOCATION}, headers=auth(424242, "employee"))
    assert resp.status_code == 404


def test_admin_list_with_stats_and_paging(client, admin_headers, two_day_scenario):
    resp = client.get(
        "/api/attendance?startDate=2025-01-01&endDate=2025-01-02&limit=3&page=1",
        headers=admin_headers,
    )
    assert resp.status_code == 200
    body = resp.get_json()
    assert len(body["data"]) == 3
    assert body["data"][0]["date"] == "2025-01-02"
    assert body["stats"] == {"present": 2, "absent": 1, "late": 1, "total": 4}
    assert body["pagination"] == {
        "currentPage": 1, "totalPages": 2, "totalItems": 4, "pageSize": 3,
    }


def test_admin_list_status_filter(client, admin_headers, two_day_scenario):
    resp = client.get("/api/attendance?date=2025-01-02&status=LATE", headers=admin_headers)
    body = resp.get_json()
    assert [r["status"] for r in body["data"]] == ["late"]
    assert body["stats"]["total"] == 1


def test_admin_list_stats_follow_status_filter(client, admin_headers, two_day_scenario):
    resp = client.get(
        "/api/attendance?startDate=2025-01-01&endDate=2025-01-02&status=absent",
        headers=admin_headers,
    )
    body = resp.get_json()
    assert [r["status"] for r in body["data"]] == ["absent"]
    assert body["stats"] == {"present": 0, "absent": 1, "late": 0, "total": 1}
    stats = body["stats"]
    assert stats["present"] + stats["absent"] + stats["late"] == stats["total"]
    assert body["pagination"]["totalItems"] == 1


def test_admin_list_rejects_unknown_status(client, admin_headers):
    resp = client.get("/api/attendance?status=holiday", headers=admin_headers)
    assert resp.status_code == 400


def test_admin_list_requires_admin(client, hr_headers):
    assert client.get("/api/attendance", headers=hr_headers).status_code == 403


def test_admin_update_status_and_times(client, admin_headers, two_day_scenario):
    rec = Attendance.query.filter_by(work_date=date(2025, 1, 1), status="absent").one()
    resp = client.put(
        f"/api/attendance/{rec.id}",
        json={"status": "Present", "checkInTime": "2025-01-01T08:00:00", "checkOutTime": "2025-01-01T18:00:00"},
        headers=admin_headers,
    )
    assert resp.status_code == 200
    data = resp.get_json()["data"]
    assert data["status"] == "present"
    assert data["workingMinutes"] == 600
    assert data["overtimeMinutes"] == 120


def test_admin_update_validation(client, admin_headers, two_day_scenario):
    rec = Attendance.query.first()
    resp = client.put(f"/api/attendance/{rec.id}", json={"status": "maybe"}, headers=admin_headers)
    assert resp.status_code == 400
    assert "status" in resp.get_json()["errors"]

    assert client.put("/api/attendance/99999", json={"status": "late"}, headers=admin_headers).status_code == 404


def test_my_attendance_summary(client, employee, emp_headers, monkeypatch):
    # Mon 2025-03-03 .. Fri 2025-03-07
    mark(employee, date(2025, 3, 3), "present")
    mark(employee, date(2025, 3, 4), "late")
    mark(employee, date(2025, 3, 5), "absent")
    mark(employee, date(2025, 3, 8), "present")  # Saturday, outside working days
    _at(monkeypatch, datetime(2025, 3, 7, 12, 0))

    resp = client.get("/api/attendance/me?startDate=2025-03-03&endDate=2025-03-07", headers=emp_headers)
    assert resp.status_code == 200
    data = resp.get_json()["data"]
    assert data["summary"] == {"present": 1, "absent": 3, "late": 1, "rate": 20}
    assert [h["date"] for h in data["history"]] == ["2025-03-05", "2025-03-04", "2025-03-03"]


def test_employee_summaries(client, hr_headers, two_day_scenario):
    a, b = two_day_scenario["employees"]
    rec = Attendance.query.filter_by(employee_id=b.id, work_date=date(2025, 1, 2)).one()
    rec.working_minutes, rec.overtime_minutes = 540, 60
    db.session.commit()

    resp = client.get("/api/attendance/reports?startDate=2025-01-01&endDate=2025-01-31", headers=hr_headers)
    rows = {r["employeeId"]: r for r in resp.get_json()["data"]}
    assert rows[a.id]["presentDays"] == 1
    assert rows[a.id]["lateDays"] == 1
    assert rows[a.id]["attendanceRate"] == 50.0
    assert rows[b.id]["absentDays"] == 1
    assert rows[b.id]["totalWorkingMinutes"] == 540
    assert rows[b.id]["totalOvertimeMinutes"] == 60
    assert rows[b.id]["employeeName"] == "E002 Test"


def test_employee_summaries_by_department(client, hr_headers, two_day_scenario):
    a, b = two_day_scenario["employees"]
    other = make_employee("S001", make_department("Sales"))
    mark(other, date(2025, 1, 1), "present")
    dept = two_day_scenario["department"]

    resp = client.get(
        f"/api/attendance/reports?startDate=2025-01-01&endDate=2025-01-31&department={dept.id}",
        headers=hr_headers,
    )
    assert resp.status_code == 200
    assert [r["employeeId"] for r in resp.get_json()["data"]] == [a.id, b.id]

    everyone = client.get("/api/attendance/reports", headers=hr_headers).get_json()["data"]
    assert {r["employeeId"] for r in everyone} == {a.id, b.id, other.id}


def test_employee_summaries_for_empty_department(client, hr_headers, two_day_scenario):
    empty = make_department("Legal")
    resp = client.get(f"/api/attendance/reports?department={empty.id}", headers=hr_headers)
    assert resp.status_code == 200
    assert resp.get_json()["data"] == []


def test_employee_summaries_bad_department(client, hr_headers):
    resp = client.get("/api/attendance/reports?department=sales", headers=hr_headers)
    assert resp.status_code == 400
    assert "department" in resp.get_json()["errors"]


def test_my_attendance_pagination_beside_data(client, employee, emp_headers, monkeypatch):
    mark(employee, date(2025, 3, 3), "present")
    _at(monkeypatch, datetime(2025, 3, 7, 12, 0))

    body = client.get("/api/attendance/me?startDate=2025-03-03&endDate=2025-03-07", headers=emp_headers).get_json()
    assert body["pagination"]["totalItems"] == 1
    assert "meta" not in body
