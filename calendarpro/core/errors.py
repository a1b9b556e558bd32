"""Domain errors raised by the scheduling core and mapped to HTTP statuses at the boundary."""


class CalendarError(Exception):
    status_code = 500
    default_detail = 'Unexpected error.'

    def __init__(self, detail: str | None = None):
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class ValidationError(CalendarError):
    """Malformed or out-of-catalog input. Always correctable by the caller."""
    status_code = 400
    default_detail = 'Invalid request.'


class Unauthorized(CalendarError):
    status_code = 401
    default_detail = 'Not authenticated.'


class Forbidden(CalendarError):
    status_code = 403
    default_detail = 'Permission denied.'


class InvalidInvitation(CalendarError):
    """Token not found, already used or expired."""
    status_code = 404
    default_detail = 'No valid invitation found.'


class StorageUnavailable(CalendarError):
    """Backing store or transport failure. Retryable by the caller."""
    status_code = 502
    default_detail = 'Storage unavailable. Please retry.'
