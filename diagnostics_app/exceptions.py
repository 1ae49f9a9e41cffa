"""
Application exceptions.

Each exception carries the HTTP status it maps to, so routes can let them
propagate and the handler registered in main.py renders a uniform body.
"""

from typing import Any, Dict, Optional


class DiagnosticsError(Exception):
    """Base exception for all service errors."""

    error_code: str = "DIAGNOSTICS_ERROR"
    status_code: int = 500

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Return structured error response dict."""
        response = {
            "error": self.error_code,
            "message": self.message,
        }
        if self.details:
            response["details"] = self.details
        return response


class ValidationError(DiagnosticsError):
    """Request body failed validation."""

    error_code = "VALIDATION_ERROR"
    status_code = 400


class BatchTooLargeError(ValidationError):
    """More IP queries than the upstream batch API accepts."""

    error_code = "BATCH_TOO_LARGE"

    def __init__(self, size: int, limit: int):
        super().__init__(
            f"Too many IPs. Maximum {limit} allowed.",
            details={"size": size, "limit": limit},
        )


class GeoLookupError(DiagnosticsError):
    """The geolocation provider failed or answered with an error."""

    error_code = "GEO_LOOKUP_FAILED"
    status_code = 502

    def __init__(self, reason: str):
        super().__init__("Failed to analyze IP addresses", details={"reason": reason})


class LinkUnavailableError(DiagnosticsError):
    """Tracking link exists but no longer accepts visits."""

    error_code = "LINK_UNAVAILABLE"
    status_code = 410


class LinkCodeGenerationError(DiagnosticsError):
    """No unique link code could be produced."""

    error_code = "LINK_CODE_GENERATION_FAILED"
    status_code = 500
