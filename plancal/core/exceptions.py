"""
Custom exceptions for the application.

Every error carries a machine-readable ``code`` and the HTTP status class used
when it reaches the API layer.
"""

from typing import Any, Optional


class PlanCalError(Exception):
    """Base exception for plancal."""

    code: str = "INTERNAL_ERROR"
    status_code: int = 500

    def __init__(
        self,
        message: str,
        details: Optional[Any] = None,
        code: Optional[str] = None,
    ):
        self.message = message
        self.details = details
        if code:
            self.code = code
        super().__init__(message)

    def to_payload(self) -> dict:
        payload: dict[str, Any] = {"error": self.code, "message": self.message}
        if self.details is not None:
            payload["details"] = self.details
        return payload


class NotFoundError(PlanCalError):
    """Resource not found."""

    code = "NOT_FOUND"
    status_code = 404


class ValidationError(PlanCalError):
    """Validation error."""

    code = "VALIDATION_ERROR"
    status_code = 400


class AuthenticationError(PlanCalError):
    """Authentication failed."""

    code = "UNAUTHORIZED"
    status_code = 401


class ConflictError(PlanCalError):
    """Concurrent writer or occupied slot."""

    code = "CONFLICT"
    status_code = 409


class UsageLimitExceededError(PlanCalError):
    """Credit reservation rejected because the quota is exhausted."""

    code = "USAGE_LIMIT_EXCEEDED"
    status_code = 429

    def __init__(self, metric: str, remaining: int):
        super().__init__(
            f"Usage limit exceeded for {metric}",
            details={"metric": metric, "remaining": remaining},
        )
        self.metric = metric
        self.remaining = remaining

    def to_payload(self) -> dict:
        payload = super().to_payload()
        payload["remaining"] = self.remaining
        return payload


class ContentGenerationError(PlanCalError):
    """External content generator failed or returned unusable output."""

    code = "CONTENT_GENERATION_FAILED"


class InfrastructureError(PlanCalError):
    """Infrastructure-related error (DB, external services, etc.)."""

    pass


class BusinessLogicError(PlanCalError):
    """Business logic constraint violation."""

    code = "BUSINESS_RULE_VIOLATION"
    status_code = 422


class RegenerationError(PlanCalError):
    """A plan regeneration saga failed and has been compensated."""

    code = "REGENERATION_FAILED"
