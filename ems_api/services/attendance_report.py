# ems_api/services/attendance_report.py
"""
Attendance report pipeline.

    normalize_range   -> DateRange (UTC day boundaries)
    resolve_scope     -> EmployeeScope (department filter, or all employees)
    aggregate_statuses-> StatusTotals (counts per status + grand total)
    build_daily_series-> [SeriesRow] (per-day counts, ascending by date)
    generate_attendance_report -> {"kpis": {...}, "series": [...]}

Everything is request scoped and read-only. "late" is its own bucket and is
never folded into "present".
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, time, timezone
from typing import Optional, List, Dict

from sqlalchemy import func

from ems_api.common.errors import InvalidRangeError
from ems_api.extensions import db
from ems_api.models.attendance import Attendance, AttendanceStatus
from ems_api.models.employee import Employee

log = logging.getLogger(__name__)

CACHE_PREFIX = "attendance-report:"
ALL_EMPLOYEES = "All"

_DAY_START = time(0, 0, 0, 0)
_DAY_END = time(23, 59, 59, 999000)


# ---------- date range ----------

@dataclass(frozen=True)
class DateRange:
    start: datetime   # 00:00:00.000 UTC of the first day
    end: datetime     # 23:59:59.999 UTC of the last day

    @property
    def first_day(self) -> date:
        return self.start.date()

    @property
    def last_day(self) -> date:
        return self.end.date()


def parse_day(raw, field_name: str) -> date:
    """'YYYY-MM-DD' or a full ISO timestamp; only the calendar day is kept."""
    if isinstance(raw, datetime):
        return raw.date()
    if isinstance(raw, date):
        return raw
    s = str(raw or "").strip()
    if not s:
        raise InvalidRangeError("startDate and endDate are required")
    # the whole string must parse; "2025-01-01junk" is not a date
    try:
        return date.fromisoformat(s)
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(s.replace("Z", "+00:00")).date()
    except ValueError:
        raise InvalidRangeError(f"{field_name} must be a date (YYYY-MM-DD)") from None


def normalize_range(start_raw, end_raw) -> DateRange:
    if start_raw in (None, "") or end_raw in (None, ""):
        raise InvalidRangeError("startDate and endDate are required")

    first = parse_day(start_raw, "startDate")
    last = parse_day(end_raw, "endDate")
    if last < first:
        raise InvalidRangeError("endDate must not be before startDate")

    return DateRange(
        start=datetime.combine(first, _DAY_START, tzinfo=timezone.utc),
        end=datetime.combine(last, _DAY_END, tzinfo=timezone.utc),
    )


@dataclass(frozen=True)
class ReportQuery:
    range: DateRange
    department_id: Optional[int] = None

    @property
    def start_label(self) -> str:
        return self.range.first_day.isoformat()

    @property
    def end_label(self) -> str:
        return self.range.last_day.isoformat()

    def cache_key(self) -> str:
        dept = self.department_id if self.department_id is not None else "all"
        return f"{CACHE_PREFIX}{self.start_label}:{self.end_label}:{dept}"


# ---------- scope ----------

@dataclass(frozen=True)
class EmployeeScope:
    # None -> no department filter; [] -> filter that matches nothing
    ids: Optional[tuple] = None

    @classmethod
    def all(cls) -> "EmployeeScope":
        return cls(ids=None)

    @property
    def is_filtered(self) -> bool:
        return self.ids is not None

    @property
    def is_empty(self) -> bool:
        return self.ids is not None and len(self.ids) == 0

    def describe(self):
        return ALL_EMPLOYEES if self.ids is None else len(self.ids)


def resolve_scope(department_id: Optional[int]) -> EmployeeScope:
    if department_id in (None, ""):
        return EmployeeScope.all()
    rows = (
        db.session.query(Employee.id)
        .filter(Employee.department_id == department_id)
        .order_by(Employee.id)
        .all()
    )
    ids = tuple(r[0] for r in rows)
    log.debug("department %s resolved to %d employees", department_id, len(ids))
    return EmployeeScope(ids=ids)


def _scoped(q, rng: DateRange, scope: EmployeeScope):
    q = q.filter(
        Attendance.work_date >= rng.first_day,
        Attendance.work_date <= rng.last_day,
    )
    if scope.is_filtered:
        q = q.filter(Attendance.employee_id.in_(scope.ids))
    return q


def _status_key():
    return func.lower(Attendance.status)


# ---------- totals ----------

@dataclass
class StatusTotals:
    by_status: Dict[str, int] = field(default_factory=dict)
    total: int = 0

    @property
    def present(self) -> int:
        return self.by_status.get(AttendanceStatus.PRESENT.value, 0)

    @property
    def absent(self) -> int:
        return self.by_status.get(AttendanceStatus.ABSENT.value, 0)

    @property
    def late(self) -> int:
        return self.by_status.get(AttendanceStatus.LATE.value, 0)

    @property
    def average_attendance(self) -> float:
        if not self.total:
            return 0
        return round(self.present / self.total * 100, 2)


def aggregate_statuses(rng: DateRange, scope: EmployeeScope) -> StatusTotals:
    totals = StatusTotals()
    if scope.is_empty:
        return totals

    key = _status_key()
    q = _scoped(db.session.query(key, func.count(Attendance.id)), rng, scope).group_by(key)
    for status, count in q.all():
        s = (status or "").strip().lower()
        totals.by_status[s] = totals.by_status.get(s, 0) + int(count)
        totals.total += int(count)
    return totals


# ---------- daily series ----------

@dataclass
class SeriesRow:
    day: date
    present: int = 0
    absent: int = 0
    late: int = 0
    total: int = 0

    def add(self, status: str, count: int):
        if status == AttendanceStatus.PRESENT.value:
            self.present += count
        elif status == AttendanceStatus.ABSENT.value:
            self.absent += count
        elif status == AttendanceStatus.LATE.value:
            self.late += count
        self.total += count

    def to_dict(self) -> dict:
        return {
            "date": self.day.isoformat(),
            "Present": self.present,
            "Absent": self.absent,
            "Late": self.late,
            "Total": self.total,
        }


def build_daily_series(rng: DateRange, scope: EmployeeScope) -> List[SeriesRow]:
    if scope.is_empty:
        return []

    key = _status_key()
    q = (
        _scoped(db.session.query(Attendance.work_date, key, func.count(Attendance.id)), rng, scope)
        .group_by(Attendance.work_date, key)
        .order_by(Attendance.work_date)
    )

    rows: Dict[date, SeriesRow] = {}
    for day, status, count in q.all():
        if isinstance(day, str):
            day = date.fromisoformat(day)
        row = rows.get(day)
        if row is None:
            row = rows[day] = SeriesRow(day=day)
        row.add((status or "").strip().lower(), int(count))

    return [rows[d] for d in sorted(rows)]


# ---------- assembly ----------

def assemble_report(totals: StatusTotals, series: List[SeriesRow], scope: EmployeeScope) -> dict:
    return {
        "kpis": {
            "averageAttendance": totals.average_attendance,
            "presentCount": totals.present,
            "absentCount": totals.absent,
            "lateCount": totals.late,
            "totalMarked": totals.total,
            "employeeScope": scope.describe(),
        },
        "series": [r.to_dict() for r in series],
    }


def generate_attendance_report(query: ReportQuery, cache=None) -> dict:
    if cache is not None:
        hit = cache.get(query.cache_key())
        if hit is not None:
            return hit

    scope = resolve_scope(query.department_id)
    totals = aggregate_statuses(query.range, scope)
    series = build_daily_series(query.range, scope)
    report = assemble_report(totals, series, scope)
    log.debug(
        "attendance report %s..%s: %d marked over %d days",
        query.start_label, query.end_label, totals.total, len(series),
    )

    if cache is not None:
        cache.set(query.cache_key(), report)
    return report
