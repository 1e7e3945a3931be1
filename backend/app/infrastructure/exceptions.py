"""
Custom Exceptions for HaircutFun

Hierarchical exception classes for proper error handling across layers.
"""

from typing import Optional, Dict, Any


class HaircutFunError(Exception):
    """Base exception for all HaircutFun errors."""

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


class ValidationError(HaircutFunError):
    """Raised when input validation fails."""
    pass


class ConflictError(HaircutFunError):
    """Raised when the requested change conflicts with current state."""
    pass


class PaymentRequiredError(HaircutFunError):
    """Raised when the caller has no remaining generation entitlement."""
    pass


class PermissionDeniedError(HaircutFunError):
    """Raised when a resource belongs to another user."""
    pass


class DatabaseError(HaircutFunError):
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


class AIServiceError(HaircutFunError):
    """Raised when generative image API operations fail."""

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


class ContentBlockedError(AIServiceError):
    """Raised when the model refuses a request on content-policy grounds."""

    def __init__(
        self,
        finish_reason: str,
        model: Optional[str] = None,
    ):
        super().__init__(
            f"Image generation was blocked. Reason: {finish_reason}.",
            model=model,
            operation="generate_content",
        )
        self.finish_reason = finish_reason
        self.details["finish_reason"] = finish_reason


class UpstreamUnavailableError(AIServiceError):
    """Raised when upstream server errors persist after all retries."""

    def __init__(
        self,
        message: str = "The image service is temporarily unavailable",
        attempts: int = 0,
        original_error: Optional[Exception] = None
    ):
        super().__init__(message, operation="generate_content", original_error=original_error)
        self.details["attempts"] = attempts


class CheckoutError(HaircutFunError):
    """Raised when a checkout or portal session cannot be created."""
    pass


class ReconciliationError(HaircutFunError):
    """Raised when a subscription cannot be reconciled with Stripe."""

    def __init__(
        self,
        message: str,
        event_type: Optional[str] = None,
        original_error: Optional[Exception] = None
    ):
        details = {}
        if event_type:
            details["event_type"] = event_type
        super().__init__(message, details, original_error)


class ConfigurationError(HaircutFunError):
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
