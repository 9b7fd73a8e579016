# ems_api/common/auth.py
from __future__ import annotations

from functools import wraps

from flask_jwt_extended import jwt_required, get_jwt, get_jwt_identity

from ems_api.common.http import fail


def current_roles() -> set[str]:
    claims = get_jwt() or {}
    return {str(r).lower() for r in (claims.get("roles") or [])}


def current_employee_id() -> int | None:
    """
    Employee id of the caller. Prefers an explicit 'employee_id' claim,
    falls back to the token identity.
    """
    claims = get_jwt() or {}
    raw = claims.get("employee_id")
    if raw is None:
        raw = get_jwt_identity()
    try:
        return int(raw)
    except (TypeError, ValueError):
        return None


def requires_roles(*codes: str):
    """
    Require that the current user has AT LEAST ONE of the given role codes.
    Roles come from the 'roles' claim of the access token; 'admin' always passes.
    """
    wanted = {c.lower() for c in codes}

    def outer(fn):
        @wraps(fn)
        @jwt_required()
        def inner(*args, **kwargs):
            if get_jwt_identity() is None:
                return fail("Unauthorized", status=401)

            roles = current_roles()
            if "admin" in roles:
                return fn(*args, **kwargs)

            if wanted and not (roles & wanted):
                return fail("Forbidden", status=403)

            return fn(*args, **kwargs)
        return inner
    return outer
