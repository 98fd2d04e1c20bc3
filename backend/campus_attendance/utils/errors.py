"""Application exceptions translated to HTTP responses by the app factory."""

class AppError(Exception):
    """Business error with the HTTP status it maps to."""

    status_code = 500

    def __init__(self, message: str, status_code: int = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code

class ValidationError(AppError):
    """Malformed or missing input."""
    status_code = 400

class AuthenticationError(AppError):
    status_code = 401

class ForbiddenError(AppError):
    status_code = 403

class NotFoundError(AppError):
    status_code = 404

class ConflictError(AppError):
    status_code = 409

class ScanRejected(AppError):
    """A QR scan failed one of the verification gates."""

    def __init__(self, message: str, status_code: int, error_type: str):
        super().__init__(message, status_code)
        self.error_type = error_type
