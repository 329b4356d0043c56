"""Custom application exceptions."""


class AppException(Exception):
    """Base application exception."""

    code = "error"

    def __init__(self, message: str, status_code: int = 500):
        """Initialize exception with message and status code."""
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)


class NotFoundException(AppException):
    """Resource not found exception."""

    code = "not_found"

    def __init__(self, message: str = "Resource not found"):
        """Initialize with 404 status code."""
        super().__init__(message, status_code=404)


class UnauthorizedException(AppException):
    """Unauthenticated exception: bad password, unknown email, no usable credential."""

    code = "unauthenticated"

    def __init__(self, message: str = "Unauthorized"):
        """Initialize with 401 status code."""
        super().__init__(message, status_code=401)


class TokenInvalidException(UnauthorizedException):
    """Token is absent, already rotated, revoked, tampered with or malformed."""

    code = "token_invalid"

    def __init__(self, message: str = "Invalid token"):
        """Initialize with 401 status code."""
        super().__init__(message)


class TokenExpiredException(UnauthorizedException):
    """Token signature is valid but the token is past its expiry."""

    code = "token_expired"

    def __init__(self, message: str = "Token expired"):
        """Initialize with 401 status code."""
        super().__init__(message)


class ForbiddenException(AppException):
    """Forbidden access exception."""

    code = "forbidden"

    def __init__(self, message: str = "Forbidden"):
        """Initialize with 403 status code."""
        super().__init__(message, status_code=403)


class ConflictException(AppException):
    """Conflict exception."""

    code = "conflict"

    def __init__(self, message: str = "Conflict"):
        """Initialize with 409 status code."""
        super().__init__(message, status_code=409)


class InternalException(AppException):
    """Unexpected collaborator failure (credential store, password hasher)."""

    code = "internal"

    def __init__(self, message: str = "Internal server error"):
        """Initialize with 500 status code."""
        super().__init__(message, status_code=500)
