# ems_api/blueprints/attendance.py
from __future__ import annotations

from datetime import date

from flask import Blueprint, request
from flask_jwt_extended import jwt_required

from ems_api.common.auth import requires_roles, current_employee_id
from ems_api.common.errors import ValidationError
from ems_api.common.http import ok, ok_page
from ems_api.common.paging import page_limit, page_meta
from ems_api.models.attendance import AttendanceStatus
from ems_api.services import attendance_service as svc
from ems_api.services.attendance_report import normalize_range, parse_day, resolve_scope
from ems_api.services.cache import get_cache
from ems_api.services.schemas import (
    AttendanceUpdate,
    CheckInRequest,
    CheckOutRequest,
    as_int,
)

bp = Blueprint("attendance", __name__, url_prefix="/api/attendance")


# ---------- tiny helpers ----------
def _range_from_args():
    """?date=YYYY-MM-DD, or ?startDate&endDate; defaults to today."""
    one = request.args.get("date")
    if one:
        return normalize_range(one, one)
    start, end = request.args.get("startDate"), request.args.get("endDate")
    if start or end:
        return normalize_range(start, end)
    today = svc.utcnow().date().isoformat()
    return normalize_range(today, today)


def _int_arg(name):
    try:
        return as_int(request.args.get(name), name)
    except ValueError as e:
        raise ValidationError(str(e), errors={name: str(e)})


def _status_arg():
    raw = request.args.get("status")
    if not raw:
        return None
    try:
        return AttendanceStatus.normalize(raw)
    except ValueError as e:
        raise ValidationError(str(e), errors={"status": str(e)})


def _caller():
    emp_id = current_employee_id()
    if emp_id is None:
        raise ValidationError("Token is not bound to an employee")
    return emp_id


# ---------- admin ----------
@bp.route("", methods=["GET"])
@requires_roles("admin")
def list_attendance():
    rng = _range_from_args()
    page, size = page_limit()
    items, total, stats = svc.list_attendance(
        rng,
        employee_id=_int_arg("employee"),
        status=_status_arg(),
        page=page,
        size=size,
    )
    return ok_page([r.to_dict() for r in items], page_meta(page, size, total), stats=stats)


@bp.route("/<int:attendance_id>", methods=["PUT"])
@requires_roles("admin")
def update_attendance(attendance_id: int):
    upd = AttendanceUpdate.from_payload(request.get_json(silent=True))
    rec = svc.update_attendance(attendance_id, upd.changes, cache=get_cache())
    return ok(rec.to_dict(), message="Attendance updated successfully")


@bp.route("/reports", methods=["GET"])
@requires_roles("admin", "hr")
def employee_reports():
    start, end = request.args.get("startDate"), request.args.get("endDate")
    first = last = None
    if start or end:
        rng = normalize_range(start, end)
        first, last = rng.first_day, rng.last_day
    department = _int_arg("department")
    scope = resolve_scope(department) if department is not None else None
    return ok(svc.employee_summaries(first, last, scope=scope))


# ---------- self service ----------
@bp.route("/check-in", methods=["POST"])
@jwt_required()
def check_in():
    body = CheckInRequest.from_payload(request.get_json(silent=True))
    rec = svc.check_in(_caller(), body.location, cache=get_cache())
    return ok(rec.to_dict(), message="Check-in successful")


@bp.route("/check-out", methods=["POST"])
@jwt_required()
def check_out():
    body = CheckOutRequest.from_payload(request.get_json(silent=True))
    rec = svc.check_out(_caller(), body.location, cache=get_cache())
    return ok(rec.to_dict(), message="Check-out successful")


@bp.route("/me", methods=["GET"])
@jwt_required()
def my_attendance():
    emp_id = _caller()
    today = svc.utcnow().date()
    start = request.args.get("startDate")
    end = request.args.get("endDate")
    first = parse_day(start, "startDate") if start else date(today.year, today.month, 1)
    last = parse_day(end, "endDate") if end else today
    rng = normalize_range(first, last)
    page, size = page_limit()
    items, total, _ = svc.list_attendance(rng, employee_id=emp_id, page=page, size=size)
    return ok_page(
        {
            "summary": svc.my_summary(emp_id, first, last),
            "history": [r.to_dict() for r in items],
        },
        page_meta(page, size, total),
    )
