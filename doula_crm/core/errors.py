"""Domain exceptions mapped to HTTP responses by the application."""


class CRMError(Exception):
    """Base class for business-rule violations."""

    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidOperationError(CRMError):
    """The requested change is not allowed in the record's current state."""

    status_code = 400


class AccessDeniedError(CRMError):
    status_code = 403


class NotFoundError(CRMError):
    status_code = 404


class ConflictError(CRMError):
    status_code = 409
