class AuthError(Exception):
    """Базовая ошибка, которую сервис отдаёт клиенту."""
    status_code = 500
    message = "Internal server error"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.message)
        if message:
            self.message = message


class ValidationError(AuthError):
    status_code = 400
    message = "Validation failed"


class InvalidCredentials(AuthError):
    status_code = 401
    message = "Invalid credentials"


class Unauthorized(AuthError):
    status_code = 401
    message = "Not authorized"


class TokenInvalid(Unauthorized):
    message = "Invalid token"


class TokenExpired(Unauthorized):
    message = "Token expired"


class InvalidRefreshToken(AuthError):
    status_code = 401
    message = "Invalid refresh token"


class Forbidden(AuthError):
    status_code = 403
    message = "Insufficient permissions"


class NotFound(AuthError):
    status_code = 404
    message = "Not found"


class InternalError(AuthError):
    pass
