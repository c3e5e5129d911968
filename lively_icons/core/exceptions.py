# lively_icons/core/exceptions.py
"""
Domain-specific exceptions for the Lively Icons platform.

Services raise these; ``lively_icons.errors`` renders them as JSON error responses.
"""

from typing import Any, Dict, Optional

from fastapi import status


class DomainException(Exception):
    """Base exception for all domain-specific errors."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        fields: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}
        # merged into the top level of the error body
        self.fields = fields or {}
        super().__init__(self.message)

    def headers(self) -> Optional[Dict[str, str]]:
        return None


class ValidationException(DomainException):
    """Raised when request or business validation fails."""

    status_code = status.HTTP_400_BAD_REQUEST


class UnauthorizedException(DomainException):
    """Raised when the caller is not authenticated."""

    status_code = status.HTTP_401_UNAUTHORIZED


class ForbiddenException(DomainException):
    """Raised when the caller lacks permission or plan access for an action."""

    status_code = status.HTTP_403_FORBIDDEN


class NotFoundException(DomainException):
    """Raised when a requested resource is not found."""

    status_code = status.HTTP_404_NOT_FOUND


class ConflictException(DomainException):
    """Raised when there's a conflict with existing data."""

    status_code = status.HTTP_409_CONFLICT


class GoneException(DomainException):
    """Raised when a resource existed but is no longer usable (expired invitations)."""

    status_code = status.HTTP_410_GONE


class BusinessRuleException(DomainException):
    """Raised when a business rule is violated."""

    status_code = 422


class RateLimitException(DomainException):
    """Raised when a caller exceeds the hourly generation limit."""

    status_code = status.HTTP_429_TOO_MANY_REQUESTS

    def __init__(
        self,
        message: str,
        retry_after: int,
        remaining: int = 0,
        reset_epoch: Optional[int] = None,
    ) -> None:
        super().__init__(message, code="rate_limited", details={"retry_after": retry_after})
        self.retry_after = retry_after
        self.remaining = remaining
        self.reset_epoch = reset_epoch

    def headers(self) -> Optional[Dict[str, str]]:
        headers = {
            "Retry-After": str(self.retry_after),
            "X-RateLimit-Remaining": str(self.remaining),
        }
        if self.reset_epoch is not None:
            headers["X-RateLimit-Reset"] = str(self.reset_epoch)
        return headers


class ServiceException(DomainException):
    """Raised when a service operation fails unexpectedly."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


class NotImplementedFeatureException(DomainException):
    """Raised for accepted-but-unsupported options (GIF export)."""

    status_code = status.HTTP_501_NOT_IMPLEMENTED


class UpstreamServiceException(DomainException):
    """Raised when an external provider (AI, Slack, Stripe) fails."""

    status_code = status.HTTP_502_BAD_GATEWAY


class RepositoryException(Exception):
    """Raised when a repository operation fails."""
