# ems_api/services/attendance_service.py
from __future__ import annotations

import logging
from datetime import date, datetime, time as _time, timedelta
from typing import Optional

from flask import current_app
from sqlalchemy import func, case

from ems_api.common.errors import APIError, NotFoundError
from ems_api.extensions import db
from ems_api.models.attendance import Attendance, AttendanceStatus, minutes_between
from ems_api.models.employee import Employee
from ems_api.services.attendance_report import CACHE_PREFIX, DateRange, EmployeeScope

log = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.utcnow()


def _workday_start() -> _time:
    raw = str(current_app.config.get("WORKDAY_START") or "09:00")
    try:
        return datetime.strptime(raw, "%H:%M").time()
    except ValueError:
        log.warning("bad WORKDAY_START %r, using 09:00", raw)
        return _time(9, 0)


def status_for_check_in(at: datetime, start: _time) -> AttendanceStatus:
    return AttendanceStatus.LATE if at.time() > start else AttendanceStatus.PRESENT


def overtime_for(working_minutes: int, standard: int) -> int:
    return max(0, working_minutes - standard)


def _invalidate_reports(cache):
    if cache is not None:
        cache.invalidate(CACHE_PREFIX)


def _require_employee(employee_id: Optional[int]) -> Employee:
    emp = db.session.get(Employee, employee_id) if employee_id is not None else None
    if not emp:
        raise NotFoundError("Employee not found")
    return emp


# ---------- writes ----------

def check_in(employee_id: int, location, cache=None, now: datetime | None = None) -> Attendance:
    """
    First check-in of the (UTC) day creates the row; a row that exists without
    a check-in time (e.g. pre-marked absent) is reused.
    """
    _require_employee(employee_id)
    now = now or utcnow()
    today = now.date()

    rec = Attendance.query.filter_by(employee_id=employee_id, work_date=today).first()
    if rec and rec.check_in_at:
        raise APIError("ALREADY_CHECKED_IN", "Already checked in today", 400)
    if rec is None:
        rec = Attendance(employee_id=employee_id, work_date=today)
        db.session.add(rec)

    rec.check_in_at = now
    rec.check_in_lon = location.lon
    rec.check_in_lat = location.lat
    rec.status = status_for_check_in(now, _workday_start()).value

    db.session.commit()
    _invalidate_reports(cache)
    log.info("employee %s checked in (%s)", employee_id, rec.status)
    return rec


def check_out(employee_id: int, location=None, cache=None, now: datetime | None = None) -> Attendance:
    now = now or utcnow()
    today = now.date()

    rec = Attendance.query.filter_by(employee_id=employee_id, work_date=today).first()
    if rec is None or rec.check_in_at is None:
        raise APIError("NO_CHECK_IN", "No check-in record found for today", 400)
    if rec.check_out_at:
        raise APIError("ALREADY_CHECKED_OUT", "Already checked out today", 400)

    rec.check_out_at = now
    if location is not None:
        rec.check_out_lon = location.lon
        rec.check_out_lat = location.lat

    worked = minutes_between(rec.check_in_at, now)
    rec.working_minutes = worked
    rec.overtime_minutes = overtime_for(worked, int(current_app.config.get("STANDARD_WORK_MINUTES", 480)))

    db.session.commit()
    _invalidate_reports(cache)
    log.info("employee %s checked out after %d minutes", employee_id, worked)
    return rec


def update_attendance(attendance_id: int, changes: dict, cache=None) -> Attendance:
    rec = db.session.get(Attendance, attendance_id)
    if not rec:
        raise NotFoundError("Attendance record not found")

    for attr, value in changes.items():
        setattr(rec, attr, value)

    # keep derived minutes in step with corrected times
    if "check_in_at" in changes or "check_out_at" in changes:
        worked = minutes_between(rec.check_in_at, rec.check_out_at)
        rec.working_minutes = worked if rec.check_out_at else None
        rec.overtime_minutes = (
            overtime_for(worked, int(current_app.config.get("STANDARD_WORK_MINUTES", 480)))
            if rec.check_out_at else None
        )

    db.session.commit()
    _invalidate_reports(cache)
    return rec


# ---------- reads ----------

def list_attendance(rng: DateRange, employee_id=None, status=None, page=1, size=10):
    """Paged rows newest first; stats and total are counted on the same filtered set."""
    q = Attendance.query.filter(
        Attendance.work_date >= rng.first_day,
        Attendance.work_date <= rng.last_day,
    )
    if employee_id is not None:
        q = q.filter(Attendance.employee_id == employee_id)

    if status is not None:
        q = q.filter(func.lower(Attendance.status) == status.value)

    stats = status_counts(q)
    total = q.count()
    items = (
        q.order_by(Attendance.work_date.desc(), Attendance.id.desc())
        .offset((page - 1) * size)
        .limit(size)
        .all()
    )
    stats["total"] = total
    return items, total, stats


def status_counts(q) -> dict:
    key = func.lower(Attendance.status)
    rows = q.with_entities(key, func.count(Attendance.id)).group_by(key).all()
    counts = {s.value: 0 for s in AttendanceStatus}
    for status, n in rows:
        if status in counts:
            counts[status] += int(n)
    return counts


def working_days(first: date, last: date) -> list[date]:
    """Mon..Fri between first and last inclusive."""
    out = []
    cur = first
    while cur <= last:
        if cur.weekday() < 5:
            out.append(cur)
        cur += timedelta(days=1)
    return out


def my_summary(employee_id: int, first: date, last: date) -> dict:
    """
    Over Mon..Fri: present and late are disjoint day counts, a working day
    with neither counts as absent. rate is present / working days.
    """
    rows = (
        db.session.query(Attendance.work_date, func.lower(Attendance.status))
        .filter(
            Attendance.employee_id == employee_id,
            Attendance.work_date >= first,
            Attendance.work_date <= last,
        )
        .all()
    )
    on_time = {d for d, s in rows if s == AttendanceStatus.PRESENT.value}
    late_days = {d for d, s in rows if s == AttendanceStatus.LATE.value}

    days = working_days(first, last)
    present = sum(1 for d in days if d in on_time)
    late = sum(1 for d in days if d in late_days)
    absent = len(days) - present - late
    rate = round(present / len(days) * 100) if days else 0
    return {"present": present, "absent": absent, "late": late, "rate": rate}


def employee_summaries(
    first: date | None = None,
    last: date | None = None,
    scope: EmployeeScope | None = None,
) -> list[dict]:
    """One row per employee with day counts and worked / overtime minutes."""
    if scope is not None and scope.is_empty:
        return []

    key = func.lower(Attendance.status)
    q = (
        db.session.query(
            Employee.id,
            Employee.first_name,
            Employee.last_name,
            func.count(Attendance.id),
            func.sum(case((key == AttendanceStatus.PRESENT.value, 1), else_=0)),
            func.sum(case((key == AttendanceStatus.ABSENT.value, 1), else_=0)),
            func.sum(case((key == AttendanceStatus.LATE.value, 1), else_=0)),
            func.coalesce(func.sum(Attendance.working_minutes), 0),
            func.coalesce(func.sum(Attendance.overtime_minutes), 0),
        )
        .select_from(Attendance)
        .join(Employee, Employee.id == Attendance.employee_id)
    )
    if first is not None:
        q = q.filter(Attendance.work_date >= first)
    if last is not None:
        q = q.filter(Attendance.work_date <= last)
    if scope is not None and scope.is_filtered:
        q = q.filter(Attendance.employee_id.in_(scope.ids))
    q = q.group_by(Employee.id, Employee.first_name, Employee.last_name).order_by(Employee.id)

    out = []
    for emp_id, fn, ln, total, present, absent, late, worked, overtime in q.all():
        total = int(total or 0)
        present = int(present or 0)
        out.append({
            "employeeId": emp_id,
            "employeeName": " ".join(p for p in (fn, ln) if p),
            "totalDays": total,
            "presentDays": present,
            "absentDays": int(absent or 0),
            "lateDays": int(late or 0),
            "totalWorkingMinutes": int(worked or 0),
            "totalOvertimeMinutes": int(overtime or 0),
            "attendanceRate": round(present / total * 100, 2) if total else 0,
        })
    return out
