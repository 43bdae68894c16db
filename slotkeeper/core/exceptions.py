# slotkeeper/core/exceptions.py
"""
Domain-specific exceptions for the booking subsystem.

These exceptions carry a business-facing message plus a machine code, and can
be converted to HTTP errors at the API layer.
"""

from typing import Any, Dict, Optional

from fastapi import HTTPException, status


class DomainException(Exception):
    """Base exception for all domain-specific errors."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=self.status_code,
            detail={
                "message": self.message,
                "code": self.code,
                "details": self.details,
            },
        )


class ValidationException(DomainException):
    """Raised when input validation fails."""

    status_code = status.HTTP_400_BAD_REQUEST


class UnauthorizedException(DomainException):
    """Raised when the admin token is missing or wrong."""

    status_code = status.HTTP_401_UNAUTHORIZED


class NotFoundException(DomainException):
    """Raised when a requested resource is not found."""

    status_code = status.HTTP_404_NOT_FOUND


class ServiceException(DomainException):
    """Raised when a service operation fails."""


class RepositoryException(DomainException):
    """Raised when a data access operation fails."""


class DeliveryException(DomainException):
    """Raised when an outbound push or email call fails."""

    status_code = status.HTTP_502_BAD_GATEWAY
