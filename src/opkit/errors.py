"""
Structured error types for the operation layer.

Control checks, operation resolution and the lifecycle itself raise typed
errors that carry the HTTP status code they map to. The lifecycle converts
any exception raised while controlling, validating or processing into the
response status, then re-raises it wrapped in a :class:`Failure`.

Architecture:
    ::

        OperationError (status_code, category)
         ├── HTTPError
         │    ├── BadRequest           400
         │    ├── Unauthorized         401
         │    │    └── PermissionRequired
         │    ├── NotFound             404
         │    └── MethodNotAllowed     405
         ├── FormNotFound              500  (carries the operation)
         ├── FormHasExpired            500  (recoverable for non-XHR requests)
         └── Failure                   response status (carries the operation)

Guardrails:
    ❌ DON'T: Swallow the original exception when wrapping
    ✅ DO: Pass it as ``previous`` so rescue hooks can inspect it

Tags:
    error-handling, exception-hierarchy, http-status, opkit

Doc-Types:
    - API Reference
    - Error Handling Guide
"""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING, Any

from starlette import status

if TYPE_CHECKING:
    from opkit.operation import Operation


class ErrorCategory(str, Enum):
    """Standard error categories for classification and routing."""

    REQUEST = "REQUEST"           # Malformed or incomplete operation request
    AUTH = "AUTH"                 # Authentication, authorization, ownership
    NOT_FOUND = "NOT_FOUND"       # Unknown operation, module or record
    VALIDATION = "VALIDATION"     # Operation validation failed
    FORM = "FORM"                 # Missing or expired form
    OPERATION = "OPERATION"       # Operation ended with an error response
    INTERNAL = "INTERNAL"         # Bugs, unexpected state


class OperationError(Exception):
    """Base exception for all opkit errors.

    Subclasses set ``default_status_code`` and ``default_category``.
    """

    default_status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_category: ErrorCategory = ErrorCategory.INTERNAL

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        category: ErrorCategory | None = None,
        cause: BaseException | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code if status_code is not None else self.default_status_code
        self.category = category or self.default_category
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    @property
    def code(self) -> int:
        return self.status_code

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "status_code": self.status_code,
            "category": self.category.value,
        }
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, status_code={self.status_code})"


# =============================================================================
# HTTP ERRORS
# =============================================================================


class HTTPError(OperationError):
    """Error that maps directly to an HTTP error status."""

    default_category = ErrorCategory.REQUEST


class BadRequest(HTTPError):
    default_status_code = status.HTTP_400_BAD_REQUEST


class Unauthorized(HTTPError):
    default_status_code = status.HTTP_401_UNAUTHORIZED
    default_category = ErrorCategory.AUTH


class PermissionRequired(Unauthorized):
    """The user lacks the permission required by the operation."""


class NotFound(HTTPError):
    default_status_code = status.HTTP_404_NOT_FOUND
    default_category = ErrorCategory.NOT_FOUND


class MethodNotAllowed(HTTPError):
    default_status_code = status.HTTP_405_METHOD_NOT_ALLOWED


# =============================================================================
# FORM ERRORS
# =============================================================================


class FormNotFound(OperationError):
    """Raised when the form control is enabled but no hook supplied a form."""

    default_category = ErrorCategory.FORM

    def __init__(self, operation: Operation, message: str | None = None, **kwargs: Any):
        self.operation = operation
        super().__init__(
            message or f"Unable to retrieve form for operation {type(operation).__name__}.",
            **kwargs,
        )


class FormHasExpired(OperationError):
    """Raised when the form associated with the request has expired.

    The condition is recoverable when the request is not an XHR: the page
    holding the form can simply be rendered again.
    """

    default_category = ErrorCategory.FORM

    def __init__(self, message: str = "The form associated with the request has expired.", **kwargs: Any):
        super().__init__(message, **kwargs)


# =============================================================================
# FAILURE
# =============================================================================


class Failure(OperationError):
    """Raised when an operation ends with a client or server error response.

    Attributes:
        operation: The operation that failed; its ``response`` holds the
            status, message and errors.
        previous: The exception raised during control, validation or
            processing, if any.
    """

    default_category = ErrorCategory.OPERATION

    def __init__(self, operation: Operation, previous: BaseException | None = None):
        self.operation = operation
        super().__init__(
            self.format_message(operation),
            status_code=operation.response.status.code,
            cause=previous,
        )

    @property
    def previous(self) -> BaseException | None:
        return self.cause

    @staticmethod
    def format_message(operation: Operation) -> str:
        response = operation.response
        message = str(response.message) if response.message else "The operation failed."
        bullets = [f"\n- {error}" for _, error in response.errors if error is not True]

        if bullets:
            message += "\n\nThe following errors were raised:" + "".join(bullets)

        return message
