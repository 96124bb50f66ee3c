from typing import Any, Dict, Optional


class ECommerceException(Exception):
    """Base exception class for all e-commerce admin related exceptions.

    This serves as the parent class for all custom exceptions in the admin client,
    allowing callers to catch every library specific failure in a single except block.
    """
    pass


class InvalidArgument(ECommerceException, ValueError):
    """Exception raised when an input violates a stated invariant.

    Raised synchronously by the discount calculator for negative amounts or an
    out-of-range percentage, and by services for arguments they cannot act on
    (an empty coupon code, a cart quantity below one, a missing user id).
    """
    pass


class FormValidationError(ECommerceException):
    """Exception raised when a form payload fails local validation.

    Carries a mapping of field name to a human readable message so a caller can
    surface each problem next to the field that caused it.
    """

    def __init__(self, errors: Dict[str, str]):
        self.errors = errors
        super().__init__("Please fix the validation errors")


class ApiError(ECommerceException):
    """Normalized failure of a call to the backend REST API.

    Attributes:
        message: Message taken from the response body, or a generic fallback
        status: HTTP status code, ``None`` when no response was received
        data: Decoded response body, if any
    """

    def __init__(self, message: str, status: Optional[int] = None, data: Any = None):
        self.message = message
        self.status = status
        self.data = data
        super().__init__(message)


class Unauthorized(ApiError):
    """The backend rejected the bearer token; the session has been cleared."""
    pass


class NotFound(ApiError):
    """The requested resource does not exist on the backend."""
    pass


class NoResponse(ApiError):
    """The request was sent but no response came back from the server."""
    pass
