# ems_api/services/schemas.py
"""Request bodies validated at the HTTP boundary, before any service code runs."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from ems_api.common.errors import ValidationError
from ems_api.models.attendance import AttendanceStatus
from ems_api.services.attendance_report import ReportQuery, normalize_range


def as_int(val, field):
    if val in (None, "", "null"):
        return None
    if isinstance(val, bool):
        raise ValueError(f"{field} must be integer")
    try:
        return int(val)
    except Exception:
        raise ValueError(f"{field} must be integer")


def _parse_ts(s):
    if s in (None, ""):
        return None
    if isinstance(s, datetime):
        return s
    try:
        ts = datetime.fromisoformat(str(s).strip().replace("Z", "+00:00").replace(" ", "T"))
    except ValueError:
        raise ValueError("must be an ISO timestamp")
    if ts.tzinfo is not None:
        ts = ts.astimezone(timezone.utc).replace(tzinfo=None)
    return ts


@dataclass(frozen=True)
class ReportRequest:
    start_date: str
    end_date: str
    department_id: Optional[int] = None

    @classmethod
    def from_payload(cls, body) -> "ReportRequest":
        if not isinstance(body, dict):
            raise ValidationError("Request body must be a JSON object")
        try:
            dept = as_int(body.get("departmentId"), "departmentId")
        except ValueError as e:
            raise ValidationError(str(e), errors={"departmentId": str(e)})
        return cls(
            start_date=body.get("startDate"),
            end_date=body.get("endDate"),
            department_id=dept,
        )

    def to_query(self) -> ReportQuery:
        # InvalidRangeError propagates for missing / malformed dates
        return ReportQuery(
            range=normalize_range(self.start_date, self.end_date),
            department_id=self.department_id,
        )


@dataclass(frozen=True)
class GeoPoint:
    lon: float
    lat: float

    @classmethod
    def from_payload(cls, raw, required: bool = True) -> Optional["GeoPoint"]:
        """GeoJSON-ish {type, coordinates: [lon, lat]}."""
        if raw in (None, {}):
            if required:
                raise ValidationError(
                    "Location is required (type & coordinates)",
                    errors={"location": "required"},
                )
            return None
        if not isinstance(raw, dict) or not raw.get("type") or raw.get("coordinates") is None:
            raise ValidationError(
                "Location is required (type & coordinates)",
                errors={"location": "type and coordinates are required"},
            )
        coords = raw.get("coordinates")
        try:
            lon, lat = (float(c) for c in coords)
        except (TypeError, ValueError):
            raise ValidationError(
                "Invalid location coordinates",
                errors={"location": "coordinates must be [longitude, latitude]"},
            )
        if not (-180 <= lon <= 180 and -90 <= lat <= 90):
            raise ValidationError(
                "Invalid location coordinates",
                errors={"location": "coordinates out of range"},
            )
        return cls(lon=lon, lat=lat)


@dataclass(frozen=True)
class CheckInRequest:
    location: GeoPoint

    @classmethod
    def from_payload(cls, body) -> "CheckInRequest":
        body = body if isinstance(body, dict) else {}
        return cls(location=GeoPoint.from_payload(body.get("location"), required=True))


@dataclass(frozen=True)
class CheckOutRequest:
    location: Optional[GeoPoint] = None

    @classmethod
    def from_payload(cls, body) -> "CheckOutRequest":
        body = body if isinstance(body, dict) else {}
        return cls(location=GeoPoint.from_payload(body.get("location"), required=False))


@dataclass(frozen=True)
class AttendanceUpdate:
    """Admin correction. Only the keys present in the body are applied."""
    changes: dict

    _TS_FIELDS = {"checkInTime": "check_in_at", "checkOutTime": "check_out_at"}

    @classmethod
    def from_payload(cls, body) -> "AttendanceUpdate":
        if not isinstance(body, dict) or not body:
            raise ValidationError("Nothing to update")

        errors = {}
        changes = {}
        if "status" in body:
            try:
                changes["status"] = AttendanceStatus.normalize(body.get("status")).value
            except ValueError as e:
                errors["status"] = str(e)

        for key, attr in cls._TS_FIELDS.items():
            if key in body:
                try:
                    changes[attr] = _parse_ts(body.get(key))
                except ValueError as e:
                    errors[key] = str(e)

        if errors:
            raise ValidationError("Invalid attendance update", errors=errors)
        if not changes:
            raise ValidationError("Nothing to update")
        return cls(changes=changes)
