"""Domain errors raised by the service layer.

Every error subclasses ValueError so callers that only care about
"the operation was refused" can keep catching ValueError. The API layer maps
``status_code`` onto the HTTP response and shows ``message`` verbatim.
"""


class PortalError(ValueError):
    status_code = 400
    message = "Request failed"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.message)
        if message:
            self.message = message


class NotFoundError(PortalError):
    status_code = 404
    message = "Not found"


class AccessDenied(PortalError):
    status_code = 403
    message = "You do not have access to this content"


class InvalidOrExpiredPassword(PortalError):
    status_code = 400
    message = "Invalid or expired course password"


class InvalidTransition(PortalError):
    status_code = 409
    message = "Operation not allowed in the current state"


class ValidationFailed(PortalError):
    status_code = 400
    message = "Invalid input"


class StorageError(PortalError):
    status_code = 502
    message = "Storage operation failed"
