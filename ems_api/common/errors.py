# ems_api/common/errors.py
from flask import current_app
from werkzeug.exceptions import HTTPException
from sqlalchemy.exc import IntegrityError

from ems_api.common.http import fail


class APIError(Exception):
    """Custom API Error class."""
    def __init__(self, code, message, status_code=400, payload=None):
        super().__init__(message)
        self.code = code
        self.message = message
        self.status_code = status_code
        self.payload = payload


class ValidationError(APIError):
    def __init__(self, message="Invalid request", errors=None):
        super().__init__("VALIDATION_ERROR", message, 400, payload=errors)


class InvalidRangeError(APIError):
    def __init__(self, message="Invalid date range"):
        super().__init__("INVALID_RANGE", message, 400)


class ExportFormatError(APIError):
    def __init__(self, message="Invalid format. Use csv | excel | pdf"):
        super().__init__("INVALID_FORMAT", message, 400)


class NotFoundError(APIError):
    def __init__(self, message="Not found"):
        super().__init__("NOT_FOUND", message, 404)



def error_detail(e: Exception):
    """Underlying error text, only when the app is configured to expose it."""
    if current_app.config.get("EXPOSE_ERROR_DETAIL"):
        return str(e)
    return None


def register_error_handlers(app):
    @app.errorhandler(APIError)
    def _api_error(e: APIError):
        errors = e.payload if isinstance(e.payload, dict) else None
        return fail(e.message, status=e.status_code, code=e.code, errors=errors)

    @app.errorhandler(HTTPException)
    def _http(e: HTTPException):
        return fail(e.description or e.name, status=e.code or 500)

    @app.errorhandler(IntegrityError)
    def _integrity(e: IntegrityError):
        # 409 for unique/FK violations
        return fail("Duplicate or FK constraint failed", status=409,
                    code="CONSTRAINT_ERROR", detail=error_detail(e))

    @app.errorhandler(Exception)
    def _500(e: Exception):
        app.logger.exception(e)
        return fail("Server error", status=500, detail=error_detail(e))
