from typing import Optional, Any


class TreinAIError(Exception):
    """
    Base exception for TreinAI application.
    """
    def __init__(self, message: str, code: str = "INTERNAL_ERROR", status_code: int = 500, details: Optional[Any] = None):
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details
        super().__init__(self.message)


class BadRequestError(TreinAIError):
    """
    Raised when a request is well-formed but breaks a business rule.
    """
    def __init__(self, message: str = "Bad request", code: str = "BAD_REQUEST", details: Optional[Any] = None):
        super().__init__(message, code=code, status_code=400, details=details)


class ResourceNotFoundError(TreinAIError):
    """
    Raised when a requested resource is not found.
    """
    def __init__(self, message: str = "Resource not found", details: Optional[Any] = None):
        super().__init__(message, code="NOT_FOUND", status_code=404, details=details)


class AuthenticationError(TreinAIError):
    """
    Raised when authentication fails.
    """
    def __init__(self, message: str = "Authentication failed", details: Optional[Any] = None):
        super().__init__(message, code="AUTHENTICATION_FAILED", status_code=401, details=details)


class InvalidTokenError(TreinAIError):
    """
    Raised when a bearer token is present but invalid or expired.
    """
    def __init__(self, message: str = "Invalid or expired token", details: Optional[Any] = None):
        super().__init__(message, code="INVALID_TOKEN", status_code=403, details=details)


class PermissionDeniedError(TreinAIError):
    """
    Raised when the caller may not act on a resource.
    """
    def __init__(self, message: str = "Permission denied", code: str = "FORBIDDEN", details: Optional[Any] = None):
        super().__init__(message, code=code, status_code=403, details=details)


class ConflictError(TreinAIError):
    """
    Raised when the request conflicts with the current state of a resource.
    """
    def __init__(self, message: str = "Conflict", code: str = "CONFLICT", details: Optional[Any] = None):
        super().__init__(message, code=code, status_code=409, details=details)


class ValidationError(TreinAIError):
    """
    Raised when input validation fails.
    """
    def __init__(self, message: str = "Validation error", code: str = "VALIDATION_ERROR", details: Optional[Any] = None):
        super().__init__(message, code=code, status_code=422, details=details)


class PayloadTooLargeError(TreinAIError):
    """
    Raised when an uploaded file exceeds its size limit.
    """
    def __init__(self, message: str = "File too large", details: Optional[Any] = None):
        super().__init__(message, code="PAYLOAD_TOO_LARGE", status_code=413, details=details)


class RateLimitError(TreinAIError):
    """
    Raised when a per-user business quota is exceeded.
    """
    def __init__(self, message: str = "Too many requests", code: str = "RATE_LIMITED", details: Optional[Any] = None):
        super().__init__(message, code=code, status_code=429, details=details)


class ExternalServiceError(TreinAIError):
    """
    Raised when an external service (e.g., OpenAI, Stripe) fails.
    """
    def __init__(self, message: str = "External service error", code: str = "EXTERNAL_SERVICE_ERROR", details: Optional[Any] = None):
        super().__init__(message, code=code, status_code=502, details=details)
