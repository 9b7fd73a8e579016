# ems_api/models/attendance.py
from __future__ import annotations

import enum
from datetime import date, datetime
from typing import Optional, Dict, Any

from sqlalchemy import Index, UniqueConstraint, CheckConstraint, ForeignKey, func
from sqlalchemy.orm import Mapped, mapped_column, relationship, validates

from ems_api.extensions import db


class AttendanceStatus(str, enum.Enum):
    PRESENT = "present"
    ABSENT = "absent"
    LATE = "late"

    @property
    def label(self) -> str:
        return self.value.capitalize()

    @classmethod
    def normalize(cls, raw) -> "AttendanceStatus":
        """Accept any casing / surrounding whitespace; anything else is a ValueError."""
        if isinstance(raw, cls):
            return raw
        s = str(raw or "").strip().lower()
        try:
            return cls(s)
        except ValueError:
            raise ValueError(f"status must be one of {[m.value for m in cls]}") from None


class Attendance(db.Model):
    """
    One row per (employee, calendar day).

    Created by the first check-in of the day, completed by check-out.
    Timestamps are naive UTC; work_date is the UTC calendar day.
      working_minutes  -> minutes between check-in and check-out
      overtime_minutes -> minutes beyond the standard work day
    """

    __tablename__ = "attendance"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    employee_id: Mapped[int] = mapped_column(
        ForeignKey("employees.id", ondelete="CASCADE"), index=True, nullable=False
    )
    work_date: Mapped[date] = mapped_column(db.Date, index=True, nullable=False)
    status: Mapped[str] = mapped_column(db.String(16), nullable=False, default="present")

    check_in_at: Mapped[Optional[datetime]] = mapped_column(db.DateTime, nullable=True)
    check_in_lat: Mapped[Optional[float]] = mapped_column(db.Float, nullable=True)
    check_in_lon: Mapped[Optional[float]] = mapped_column(db.Float, nullable=True)
    check_out_at: Mapped[Optional[datetime]] = mapped_column(db.DateTime, nullable=True)
    check_out_lat: Mapped[Optional[float]] = mapped_column(db.Float, nullable=True)
    check_out_lon: Mapped[Optional[float]] = mapped_column(db.Float, nullable=True)

    working_minutes: Mapped[Optional[int]] = mapped_column(nullable=True)
    overtime_minutes: Mapped[Optional[int]] = mapped_column(nullable=True)

    created_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        server_default=func.now(), onupdate=func.now(), nullable=False
    )

    employee = relationship("Employee", lazy="joined")

    __table_args__ = (
        CheckConstraint("status in ('present','absent','late')", name="ck_attendance_status"),
        UniqueConstraint("employee_id", "work_date", name="uq_attendance_employee_day"),
        Index("ix_attendance_day_status", "work_date", "status"),
    )

    @validates("status")
    def _normalize_status(self, _key, value):
        return AttendanceStatus.normalize(value).value

    def computed_working_minutes(self) -> int:
        """Stored value if present, else derived from the check-in/out pair."""
        if self.working_minutes is not None:
            return self.working_minutes
        return minutes_between(self.check_in_at, self.check_out_at)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "employee": self.employee.brief() if self.employee else {"id": self.employee_id},
            "date": self.work_date.isoformat(),
            "status": self.status,
            "checkIn": _point(self.check_in_at, self.check_in_lon, self.check_in_lat),
            "checkOut": _point(self.check_out_at, self.check_out_lon, self.check_out_lat),
            "workingMinutes": self.computed_working_minutes(),
            "overtimeMinutes": self.overtime_minutes or 0,
        }


def minutes_between(start: datetime | None, end: datetime | None) -> int:
    if not start or not end or end <= start:
        return 0
    return int((end - start).total_seconds() // 60)


def _point(at, lon, lat):
    if at is None:
        return None
    loc = None
    if lon is not None and lat is not None:
        loc = {"type": "Point", "coordinates": [lon, lat]}
    return {"time": at.isoformat(), "location": loc}
