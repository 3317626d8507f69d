# payouts_api/common/errors.py
from flask import current_app
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm.exc import StaleDataError
from werkzeug.exceptions import HTTPException

from payouts_api.common.http import fail


class APIError(Exception):
    """Raised from views; rendered as the fail() envelope with `code` and `status_code`."""
    def __init__(self, code, message, status_code=400, payload=None):
        super().__init__(message)
        self.code = code
        self.message = message
        self.status_code = status_code
        self.payload = payload

    def to_response(self):
        return fail(self.message, status=self.status_code, code=self.code, detail=self.payload)


def _api_error(e: APIError):
    if e.status_code >= 500:
        current_app.logger.error("API error %s: %s", e.code, e.message)
    return e.to_response()


def _http_error(e: HTTPException):
    return fail(e.description or e.name, status=e.code or 500)


def _constraint(e: IntegrityError):
    return fail("Conflict / integrity error", status=409, code="CONSTRAINT_ERROR",
                detail=str(getattr(e, "orig", None) or e))


def _stale_calendar(e: StaleDataError):
    # version_id_col mismatch: someone else wrote the calendar first
    current_app.logger.warning("Concurrent calendar update rejected: %s", e)
    return fail("Calendar was modified concurrently, reload and retry", status=409, code="STALE_CALENDAR")


def _unhandled(e: Exception):
    current_app.logger.exception(e)
    return fail("Internal server error", status=500)


def register_error_handlers(app):
    app.register_error_handler(APIError, _api_error)
    app.register_error_handler(HTTPException, _http_error)
    app.register_error_handler(IntegrityError, _constraint)
    app.register_error_handler(StaleDataError, _stale_calendar)
    app.register_error_handler(Exception, _unhandled)
