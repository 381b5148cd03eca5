class AppError(Exception):
    status_code = 400
    default_message = "Request failed"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class NotFoundError(AppError):
    status_code = 404
    default_message = "Resource not found"


class ConflictError(AppError):
    status_code = 409
    default_message = "Conflict"


class ForbiddenError(AppError):
    status_code = 403
    default_message = "Forbidden"


class InvalidStateError(AppError):
    status_code = 409
    default_message = "Operation not allowed in the current state"


class InvalidCredentialsError(AppError):
    status_code = 401
    default_message = "Invalid credentials"


class EmailNotConfirmedError(AppError):
    status_code = 403
    default_message = "Email address has not been confirmed"


class InvalidOrExpiredTokenError(AppError):
    status_code = 400
    default_message = "Invalid or expired token"


class RefreshTokenNotFoundError(InvalidOrExpiredTokenError):
    status_code = 401
    default_message = "Invalid refresh token"


class RefreshTokenRevokedError(InvalidOrExpiredTokenError):
    status_code = 401
    default_message = "Refresh token has been revoked"


class RefreshTokenExpiredError(InvalidOrExpiredTokenError):
    status_code = 401
    default_message = "Refresh token has expired"


class AccessTokenError(AppError):
    status_code = 401
    default_message = "Invalid access token"


class InvalidSignatureError(AccessTokenError):
    default_message = "Invalid token signature"


class TokenExpiredError(AccessTokenError):
    default_message = "Token has expired"


class MalformedTokenError(AccessTokenError):
    default_message = "Malformed token"


class ServiceUnavailableError(AppError):
    status_code = 503
    default_message = "Service temporarily unavailable"


class EmailDeliveryError(Exception):
    """Raised by email senders; callers log it instead of failing the request."""


class ValidationFailedError(AppError):
    status_code = 422
    default_message = "Validation failed"
