"""
Custom Exceptions for Trade Card Builder

Hierarchical exception classes for proper error handling across layers.
"""

from typing import Optional, Dict, Any


class TradeCardError(Exception):
    """Base exception for all Trade Card Builder errors."""

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        original_error: Optional[Exception] = None
    ):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.original_error = original_error

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for API responses."""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "details": self.details
        }


class ValidationError(TradeCardError):
    """Raised when input validation fails."""
    pass


class InvalidFeatureError(ValidationError):
    """Raised when a quota feature name is not recognized."""

    def __init__(self, feature: str):
        super().__init__(
            f"Unknown feature: {feature}",
            details={"feature": feature},
        )
        self.feature = feature


class UnauthorizedError(TradeCardError):
    """Raised when the session is missing or invalid."""
    pass


class DatabaseError(TradeCardError):
    """Raised when database operations fail."""

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        table: Optional[str] = None,
        original_error: Optional[Exception] = None
    ):
        details = {}
        if operation:
            details["operation"] = operation
        if table:
            details["table"] = table
        super().__init__(message, details, original_error)


class NotFoundError(DatabaseError):
    """Raised when a requested resource is not found."""
    pass


class QuotaExceededError(TradeCardError):
    """Raised when a feature's per-period allowance is used up."""

    code = "QUOTA_EXCEEDED"

    def __init__(self, feature: str, current: int, limit: int, plan: str):
        super().__init__(
            f"Quota exceeded for {feature}",
            details={
                "feature": feature,
                "current": current,
                "limit": limit,
                "plan": plan,
            },
        )
        self.feature = feature
        self.current = current
        self.limit = limit
        self.plan = plan

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["code"] = self.code
        return data


class ProviderError(TradeCardError):
    """Raised when a billing provider API call fails."""

    def __init__(
        self,
        message: str,
        provider: Optional[str] = None,
        operation: Optional[str] = None,
        original_error: Optional[Exception] = None
    ):
        details = {}
        if provider:
            details["provider"] = provider
        if operation:
            details["operation"] = operation
        super().__init__(message, details, original_error)


class WebhookVerificationError(ProviderError):
    """Raised when a webhook payload fails signature verification."""
    pass


class AIServiceError(TradeCardError):
    """Raised when AI (OpenAI) operations fail."""

    def __init__(
        self,
        message: str,
        model: Optional[str] = None,
        operation: Optional[str] = None,
        original_error: Optional[Exception] = None
    ):
        details = {}
        if model:
            details["model"] = model
        if operation:
            details["operation"] = operation
        super().__init__(message, details, original_error)


class ConfigurationError(TradeCardError):
    """Raised when configuration is missing or invalid."""

    def __init__(
        self,
        message: str,
        missing_keys: Optional[list] = None,
        original_error: Optional[Exception] = None
    ):
        details = {}
        if missing_keys:
            details["missing_keys"] = missing_keys
        super().__init__(message, details, original_error)
