# ems_api/blueprints/reports.py
from __future__ import annotations

from flask import Blueprint, Response, current_app, request, stream_with_context
from sqlalchemy.exc import SQLAlchemyError

from ems_api.common.auth import requires_roles
from ems_api.common.errors import error_detail
from ems_api.common.http import ok, fail
from ems_api.extensions import db
from ems_api.services.attendance_report import generate_attendance_report
from ems_api.services.cache import get_cache
from ems_api.services.report_export import get_formatter, export_filename
from ems_api.services.schemas import ReportRequest

bp = Blueprint("reports", __name__, url_prefix="/api/reports")


def _report_for(body):
    """Validate the body and run the pipeline. APIError (400) propagates to the handlers."""
    query = ReportRequest.from_payload(body).to_query()
    return query, generate_attendance_report(query, cache=get_cache())


@bp.route("/attendance", methods=["POST"])
@requires_roles("admin", "hr")
def attendance_report():
    """
    body: {startDate: "YYYY-MM-DD", endDate: "YYYY-MM-DD", departmentId?: int}
    → {success, data: {kpis, series}}
    """
    try:
        _, data = _report_for(request.get_json(silent=True) or {})
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.exception("attendance report failed")
        return fail("Server error", status=500, detail=error_detail(e))
    return ok(data)


@bp.route("/attendance/export/<fmt>", methods=["POST"])
@requires_roles("admin", "hr")
def export_attendance_report(fmt):
    # unknown format is rejected before any query runs
    formatter = get_formatter(fmt)

    try:
        query, data = _report_for(request.get_json(silent=True) or {})
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.exception("attendance export failed")
        return fail("Export failed", status=500, detail=error_detail(e))

    rows = data["series"]
    filename = export_filename(formatter, query)
    current_app.logger.info(
        "exporting attendance %s..%s as %s (%d rows)",
        query.start_label, query.end_label, formatter.name, len(rows),
    )

    chunk_size = int(current_app.config.get("EXPORT_CHUNK_SIZE") or 64 * 1024)
    try:
        body = formatter.stream(rows, chunk_size)
    except Exception as e:
        current_app.logger.exception("rendering %s export failed", formatter.name)
        return fail("Export failed", status=500, detail=error_detail(e))

    resp = Response(stream_with_context(body), mimetype=formatter.mimetype)
    resp.headers["Content-Disposition"] = f'attachment; filename="{filename}"'
    return resp
