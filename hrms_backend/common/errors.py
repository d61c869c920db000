# hrms_backend/common/errors.py
from sqlalchemy.exc import IntegrityError
from werkzeug.exceptions import HTTPException

from hrms_backend.common.http import fail


class APIError(Exception):
    """Custom API Error class."""
    status_code = 400
    code = "BAD_REQUEST"

    def __init__(self, message, code=None, status_code=None, payload=None):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        if status_code is not None:
            self.status_code = status_code
        self.payload = payload


class NotFound(APIError):
    status_code = 404
    code = "NOT_FOUND"


class Conflict(APIError):
    status_code = 409
    code = "CONFLICT"


class Forbidden(APIError):
    status_code = 403
    code = "FORBIDDEN"


class ValidationFailed(APIError):
    status_code = 422
    code = "VALIDATION_FAILED"


def register_error_handlers(app):
    @app.errorhandler(APIError)
    def _api_error(e: APIError):
        return fail(message=e.message, status=e.status_code, code=e.code, detail=e.payload)

    @app.errorhandler(HTTPException)
    def _http(e: HTTPException):
        return fail(e.description or e.name, status=e.code or 500)

    @app.errorhandler(IntegrityError)
    def _integrity(e: IntegrityError):
        # 409 for unique/FK violations
        return fail("Duplicate or FK constraint failed", status=409, code="CONSTRAINT_ERROR",
                    detail=str(e.orig) if getattr(e, "orig", None) else None)

    @app.errorhandler(Exception)
    def _500(e: Exception):
        app.logger.exception(e)
        return fail("Internal server error", status=500)
