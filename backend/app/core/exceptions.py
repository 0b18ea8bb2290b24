"""Domain errors raised by the progress metrics core.

Each error carries the HTTP status and machine-readable code the API layer
uses when rendering it as an ``ErrorResponse``.
"""


class ProgressError(Exception):
    """Base class for every error the metrics core raises on purpose."""

    status_code: int = 500
    error_code: str = "progress_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidInputError(ProgressError, ValueError):
    """Input rejected before touching the database."""

    status_code = 400
    error_code = "invalid_input"


class InvalidIdentifierError(InvalidInputError):
    """An id argument was empty, not a string, or not a UUID."""

    error_code = "invalid_identifier"


class NotFoundError(ProgressError, LookupError):
    """A student, topic, lesson or alert lookup came back empty."""

    status_code = 404
    error_code = "not_found"


class TenantAccessError(ProgressError, PermissionError):
    """The student does not belong to the calling teacher."""

    status_code = 403
    error_code = "access_denied"
