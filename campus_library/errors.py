import logging

from flask import jsonify


class LibraryError(Exception):
    """Base class for every rejection raised by the circulation core."""

    status_code = 400
    error = "library_error"
    log_level = logging.INFO

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(LibraryError):
    status_code = 400
    error = "validation_error"


class AuthorizationError(LibraryError):
    status_code = 403
    error = "forbidden"


class NotFoundError(LibraryError):
    status_code = 404
    error = "not_found"


class ConflictError(LibraryError):
    status_code = 409
    error = "conflict"


class NoAvailableCopyError(LibraryError):
    status_code = 409
    error = "no_available_copy"


class InvalidStateError(LibraryError):
    status_code = 409
    error = "invalid_state"
    log_level = logging.WARNING


class InvariantViolation(LibraryError):
    """
    The cached availability counter left its valid range, or no longer matches
    the copy statuses. Treated as an alerting condition, never a normal rejection.
    """

    status_code = 500
    error = "invariant_violation"
    log_level = logging.CRITICAL


def register_error_handlers(app):
    @app.errorhandler(LibraryError)
    def _library_error(e: LibraryError):
        app.logger.log(e.log_level, f"[error] {e.error}: {e.message}")
        return jsonify({"success": False, "error": e.error, "message": e.message}), e.status_code
