"""
Custom exception classes and error handling.

Provides consistent error responses across the API. Every error that reaches
the boundary is rendered as {"error": str, "details"?: str} by the handlers
registered in main.py.
"""
from fastapi import HTTPException, status
from typing import Optional, Dict, Any, List


class APIException(HTTPException):
    """Base API exception with consistent structure."""

    def __init__(
        self,
        status_code: int,
        error: str,
        details: Optional[str] = None,
        error_code: Optional[str] = None,
        headers: Optional[Dict[str, Any]] = None
    ):
        super().__init__(status_code=status_code, detail=error, headers=headers)
        self.error = error
        self.details = details
        self.error_code = error_code

    def to_body(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"error": self.error}
        if self.details:
            body["details"] = self.details
        if self.error_code:
            body["code"] = self.error_code
        return body


class NotFoundError(APIException):
    """
    Resource not found.

    Also used when a record exists but belongs to another user, so that the
    existence of other users' records is never revealed.
    """

    def __init__(self, resource: str):
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            error=f"{resource} not found",
            error_code="NOT_FOUND"
        )


class ValidationError(APIException):
    """Validation error."""

    def __init__(self, detail: str, field: Optional[str] = None):
        error_code = f"VALIDATION_ERROR_{field.upper()}" if field else "VALIDATION_ERROR"
        super().__init__(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            error="Validation error",
            details=detail,
            error_code=error_code
        )
        self.field = field


class InsufficientCreditsError(APIException):
    """Not enough credits for the requested action (expected business outcome)."""

    def __init__(self, balance: int, required: int):
        super().__init__(
            status_code=status.HTTP_402_PAYMENT_REQUIRED,
            error="Insufficient credits",
            details=f"{required} credits required, {balance} available. Purchase more credits to continue.",
            error_code="INSUFFICIENT_CREDITS"
        )
        self.balance = balance
        self.required = required


class ProviderFailure(APIException):
    """The text-generation provider failed; the upstream status is kept when known."""

    def __init__(self, summary: str, upstream_status: Optional[int] = None):
        super().__init__(
            status_code=upstream_status or status.HTTP_502_BAD_GATEWAY,
            error="Insight generation failed",
            details=summary,
            error_code="PROVIDER_ERROR"
        )


class ConfigurationError(APIException):
    """Required external credentials are missing; the feature is switched off."""

    def __init__(self, feature: str, missing: List[str]):
        super().__init__(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            error=f"{feature.capitalize()} is not configured on this server",
            error_code="CONFIGURATION_ERROR"
        )
        self.feature = feature
        self.missing = list(missing)


class UnauthorizedError(APIException):
    """Authentication required."""

    def __init__(self, detail: str = "Authentication required"):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            error=detail,
            error_code="UNAUTHORIZED",
            headers={"WWW-Authenticate": "Bearer"}
        )
