"""
Client streaming error taxonomy.

Every failure reaches the UI as one ChatStreamError whose category decides
how it is presented: rate limit and payment as recoverable toasts,
cancellation as a neutral notice, transport and validation as errors.
"""

from enum import Enum


class ErrorCategory(str, Enum):
    TRANSPORT = "transport"
    RATE_LIMITED = "rate_limited"
    PAYMENT_REQUIRED = "payment_required"
    CANCELLED = "cancelled"
    VALIDATION = "validation"


RATE_LIMITED_MESSAGE = "Too many requests right now. Please wait a minute and try again."
PAYMENT_REQUIRED_MESSAGE = "AI credits are exhausted. Add funds or credit to keep chatting."
STOPPED_MESSAGE = "Generation stopped by user"
GENERIC_FAILURE_MESSAGE = "Failed to start stream"

SEVERITY = {
    ErrorCategory.TRANSPORT: "error",
    ErrorCategory.RATE_LIMITED: "warning",
    ErrorCategory.PAYMENT_REQUIRED: "warning",
    ErrorCategory.CANCELLED: "info",
    ErrorCategory.VALIDATION: "warning",
}


class ChatStreamError(Exception):
    def __init__(self, message: str, category: ErrorCategory = ErrorCategory.TRANSPORT):
        super().__init__(message)
        self.message = message
        self.category = category

    @property
    def severity(self) -> str:
        return SEVERITY[self.category]

    @property
    def recoverable(self) -> bool:
        return self.category != ErrorCategory.TRANSPORT

    @classmethod
    def from_status(cls, status_code: int) -> "ChatStreamError":
        """Map a non-2xx chat endpoint status to an error."""
        if status_code == 429:
            return cls(RATE_LIMITED_MESSAGE, ErrorCategory.RATE_LIMITED)
        if status_code == 402:
            return cls(PAYMENT_REQUIRED_MESSAGE, ErrorCategory.PAYMENT_REQUIRED)
        return cls(f"{GENERIC_FAILURE_MESSAGE} (HTTP {status_code})", ErrorCategory.TRANSPORT)

    @classmethod
    def stopped(cls) -> "ChatStreamError":
        return cls(STOPPED_MESSAGE, ErrorCategory.CANCELLED)

    def __repr__(self) -> str:
        return f"ChatStreamError({self.message!r}, category={self.category.value})"
