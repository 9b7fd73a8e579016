# ems_api/common/http.py
from flask import jsonify


def ok(data=None, status=200, **meta):
    payload = {"success": True, "data": data}
    if meta:
        payload["meta"] = meta
    return jsonify(payload), status


def fail(message="Bad Request", status=400, code=None, detail=None, errors=None):
    payload = {"success": False, "message": message}
    if code: payload["code"] = code
    if detail: payload["error"] = detail
    if errors: payload["errors"] = errors
    return jsonify(payload), status


def ok_page(data, pagination, status=200, **extra):
    """List responses: pagination (and e.g. stats) sit beside data, not under meta."""
    payload = {"success": True, "data": data, "pagination": pagination}
    payload.update(extra)
    return jsonify(payload), status
