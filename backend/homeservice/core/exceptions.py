# backend/homeservice/core/exceptions.py
"""
Domain-specific exceptions for the HomeService booking core.

These exceptions carry a stable error code and are converted to HTTP
responses at the API layer. None of them are retried by the core.
"""

from typing import Any, Dict, NoReturn, Optional

from fastapi import HTTPException, status

HTTP_422_UNPROCESSABLE: int = getattr(status, "HTTP_422_UNPROCESSABLE_CONTENT", 422)


class DomainException(Exception):
    """Base exception for all domain-specific errors."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_code: Optional[str] = None

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.code = code or self.default_code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "message": self.message,
            "code": self.code,
            "details": self.details,
        }

    def to_http_exception(self) -> HTTPException:
        return HTTPException(status_code=self.status_code, detail=self.to_dict())


class ValidationException(DomainException):
    """Raised when required input is missing or malformed."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_code = "VALIDATION_FAILED"


class NotFoundException(DomainException):
    """Raised when a referenced entity does not exist."""

    status_code = status.HTTP_404_NOT_FOUND
    default_code = "NOT_FOUND"


class ConflictException(DomainException):
    """Raised when there's a conflict with existing data."""

    status_code = status.HTTP_409_CONFLICT


class BusinessRuleException(DomainException):
    """Raised when a business rule is violated."""

    status_code = HTTP_422_UNPROCESSABLE


class UnauthorizedException(DomainException):
    """Raised when the actor lacks rights for the requested mutation."""

    status_code = status.HTTP_403_FORBIDDEN
    default_code = "UNAUTHORIZED"


class ServiceException(DomainException):
    """Raised when a service operation fails."""

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=self.status_code,
            detail={
                "message": self.message or "An error occurred processing your request",
                "code": self.code,
                "details": self.details if self.details else {},
            },
        )


# Specific business exceptions


class CapabilityMismatchException(ValidationException):
    """Raised when a provider does not offer the requested category/subcategory."""

    default_code = "CAPABILITY_MISMATCH"

    def __init__(self, provider_id: str, category_id: str, subcategory_id: Optional[str] = None):
        if subcategory_id:
            message = (
                f"Provider {provider_id} does not offer subcategory {subcategory_id} "
                f"in category {category_id}"
            )
        else:
            message = f"Provider {provider_id} does not offer services in category {category_id}"
        super().__init__(
            message=message,
            details={
                "provider_id": provider_id,
                "category_id": category_id,
                "subcategory_id": subcategory_id,
            },
        )


class InvalidTransitionException(BusinessRuleException):
    """Raised when a status change is not reachable from the current state."""

    default_code = "INVALID_TRANSITION"

    def __init__(
        self,
        current_status: str,
        requested_status: str,
        message: Optional[str] = None,
    ):
        super().__init__(
            message=message
            or f"Cannot change booking status from {current_status} to {requested_status}",
            details={"current_status": current_status, "requested_status": requested_status},
        )


class NotCompletedException(BusinessRuleException):
    """Raised when a review is attempted on a booking that is not completed."""

    default_code = "NOT_COMPLETED"

    def __init__(self, booking_id: str, current_status: str):
        super().__init__(
            message="You can only review completed bookings",
            details={"booking_id": booking_id, "status": current_status},
        )


class DuplicateReviewException(ConflictException):
    """Raised when the customer already reviewed the booking."""

    default_code = "DUPLICATE_REVIEW"

    def __init__(self, booking_id: str):
        super().__init__(
            message="You have already reviewed this booking",
            details={"booking_id": booking_id},
        )


class RepositoryException(Exception):
    """
    Exception raised for repository layer errors.

    This exception is used when data access operations fail,
    such as database connection issues or query failures.
    """


class IntegrityConstraintException(RepositoryException):
    """Raised when a write violates a unique or check constraint."""


def handle_domain_exception(exc: DomainException) -> NoReturn:
    """Convert domain exceptions to HTTP exceptions."""
    if hasattr(exc, "to_http_exception"):
        raise exc.to_http_exception()
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))
