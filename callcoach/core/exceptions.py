"""
Interview Call Coach - Custom Exceptions.

Defines a hierarchy of domain-specific exceptions for clean error handling.
"""


class CallCoachError(Exception):
    """Base exception for all Interview Call Coach errors."""

    def __init__(self, message: str, details: str | None = None):
        self.message = message
        self.details = details
        super().__init__(self.message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message}: {self.details}"
        return self.message


# -----------------------------------------------------------------------------
# Configuration Errors
# -----------------------------------------------------------------------------

class ConfigurationError(CallCoachError):
    """Raised when configuration is invalid or missing."""
    pass


class MissingAPIKeyError(ConfigurationError):
    """Raised when a required API key is missing."""

    def __init__(self, key_name: str):
        super().__init__(
            message=f"Missing required API key: {key_name}",
            details="Please set this in your .env file or environment variables",
        )


# -----------------------------------------------------------------------------
# LLM Errors
# -----------------------------------------------------------------------------

class LLMError(CallCoachError):
    """Base exception for LLM-related errors."""
    pass


class LLMConnectionError(LLMError):
    """Raised when unable to connect to the LLM service."""

    def __init__(self, service: str, reason: str):
        super().__init__(
            message=f"Failed to connect to {service}",
            details=reason,
        )


class LLMRateLimitError(LLMError):
    """Raised when rate limited (or out of quota) by the LLM service."""

    def __init__(self, service: str, retry_after: int | None = None):
        self.retry_after = retry_after
        super().__init__(
            message=f"Rate limited by {service}",
            details=f"Retry after {retry_after}s" if retry_after else None,
        )


class LLMResponseError(LLMError):
    """Raised when the LLM returns an invalid or blocked response."""
    pass


class FeedbackFormatError(LLMResponseError):
    """Raised when a generated report contains no parseable JSON object."""

    def __init__(self, preview: str):
        super().__init__(
            message="Invalid response format from AI",
            details=preview[:120] if preview else "empty response",
        )


# -----------------------------------------------------------------------------
# Transport Errors
# -----------------------------------------------------------------------------

class TransportError(CallCoachError):
    """Base exception for call transport errors."""
    pass


class TransportStartError(TransportError):
    """Raised when the transport rejects a call start request."""

    def __init__(self, reason: str):
        super().__init__(
            message="Failed to start call",
            details=reason,
        )


class TransportSendError(TransportError):
    """Raised when an in-band message cannot be delivered."""

    def __init__(self, role: str, reason: str):
        super().__init__(
            message=f"Failed to send {role} message",
            details=reason,
        )


# -----------------------------------------------------------------------------
# Call Session Errors
# -----------------------------------------------------------------------------

class SessionError(CallCoachError):
    """Base exception for call session errors."""
    pass


class InvalidSessionStateError(SessionError):
    """Raised when an operation is invalid for the current session state."""

    def __init__(self, current_state: str, required_state: str):
        super().__init__(
            message=f"Invalid session state",
            details=f"Current: {current_state}, Required: {required_state}",
        )


class UnreconcilableSessionError(SessionError):
    """Raised (and recorded) when a call ended without any recoverable call ID."""

    def __init__(self, session_id: str):
        self.session_id = session_id
        super().__init__(
            message="No call ID available for saving",
            details=f"Session {session_id} ended without a transport call ID",
        )


# -----------------------------------------------------------------------------
# Call Data Errors
# -----------------------------------------------------------------------------

class CallDataError(CallCoachError):
    """Base exception for backend call-data errors."""
    pass


class MissingCallIdError(CallDataError):
    """Raised when a call-data operation is requested without a call ID."""

    def __init__(self):
        super().__init__(message="callId parameter is required")


class CallRecordNotFoundError(CallDataError):
    """Raised when the backend has no record for a call ID (yet)."""

    def __init__(self, call_id: str):
        self.call_id = call_id
        super().__init__(message=f"Call not found: {call_id}")


class CallDataFetchError(CallDataError):
    """Raised on transient failures fetching call data (network, 5xx)."""

    def __init__(self, call_id: str | None, reason: str):
        self.call_id = call_id
        super().__init__(
            message=f"Failed to fetch call data{f' for {call_id}' if call_id else ''}",
            details=reason,
        )


# -----------------------------------------------------------------------------
# Feedback Errors
# -----------------------------------------------------------------------------

class FeedbackError(CallCoachError):
    """Base exception for feedback generation errors."""
    pass


class EmptyTranscriptError(FeedbackError):
    """Raised when there is no conversation to analyze."""

    def __init__(self, call_id: str | None = None):
        self.call_id = call_id
        super().__init__(
            message="No conversation transcript available for analysis",
            details=f"Call {call_id}" if call_id else None,
        )
