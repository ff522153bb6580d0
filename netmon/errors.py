"""Structured error taxonomy for the monitoring console."""
#
from enum import Enum
from typing import Dict, Any, Optional
# PURPOSE:
# Gives every failure the console can surface a searchable code, a
# human-readable message and an HTTP status, so the same error reads the
# same way in logs, in the CLI and in the HTTP surface.
#
# ERROR CODE FORMAT:
# - GATEWAY_XXX: Backend command transport/protocol errors
# - MONITOR_XXX: Monitoring session control errors
# - ALERT_XXX: Alert read-state mutation errors
# - TOOL_XXX: Network tool input errors
# - REQUEST_XXX: Invalid API request parameters
#
# USAGE:
#   from netmon.errors import NetMonError, ErrorCode
#
#   raise NetMonError(
#       ErrorCode.MONITOR_ALREADY_RUNNING,
#       "Monitoring session is already running",
#       details={"interval_seconds": 60}
#   )
#
class ErrorCode(Enum):
    # Gateway Errors
    GATEWAY_UNAVAILABLE = "GATEWAY_001"
    GATEWAY_TIMEOUT = "GATEWAY_002"
    GATEWAY_COMMAND_FAILED = "GATEWAY_003"
    GATEWAY_PROTOCOL_ERROR = "GATEWAY_004"

    # Monitoring Session Errors
    MONITOR_ALREADY_RUNNING = "MONITOR_001"
    MONITOR_INVALID_INTERVAL = "MONITOR_002"
    MONITOR_START_FAILED = "MONITOR_003"
    MONITOR_STOP_FAILED = "MONITOR_004"

    # Alert Errors
    ALERT_NOT_FOUND = "ALERT_001"
    ALERT_UPDATE_FAILED = "ALERT_002"

    # Tool Errors
    TOOL_TARGET_INVALID = "TOOL_001"
    TOOL_PORTS_INVALID = "TOOL_002"

    # Request Errors
    REQUEST_INVALID = "REQUEST_001"

    # System Errors
    SYSTEM_INTERNAL_ERROR = "SYSTEM_001"

class NetMonError(Exception):
    """
    Base exception for the monitoring console with structured error information.

    Attributes:
        code: ErrorCode enum value (e.g., "MONITOR_001")
        message: Human-readable error message
        details: Optional dictionary with additional context
        http_status: Suggested HTTP status code for API responses
    """

    # Map error codes to HTTP status codes
    HTTP_STATUS_MAP: Dict[ErrorCode, int] = {
        # Gateway errors
        ErrorCode.GATEWAY_UNAVAILABLE: 503,    # Service Unavailable
        ErrorCode.GATEWAY_TIMEOUT: 504,        # Gateway Timeout
        ErrorCode.GATEWAY_COMMAND_FAILED: 502, # Bad Gateway
        ErrorCode.GATEWAY_PROTOCOL_ERROR: 502,

        # Monitoring errors
        ErrorCode.MONITOR_ALREADY_RUNNING: 409,  # Conflict
        ErrorCode.MONITOR_INVALID_INTERVAL: 400, # Bad Request
        ErrorCode.MONITOR_START_FAILED: 502,
        ErrorCode.MONITOR_STOP_FAILED: 502,

        # Alert errors
        ErrorCode.ALERT_NOT_FOUND: 404,
        ErrorCode.ALERT_UPDATE_FAILED: 502,

        # Tool errors
        ErrorCode.TOOL_TARGET_INVALID: 400,
        ErrorCode.TOOL_PORTS_INVALID: 400,

        # Request errors
        ErrorCode.REQUEST_INVALID: 400,

        # System errors
        ErrorCode.SYSTEM_INTERNAL_ERROR: 500,
    }

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        http_status: Optional[int] = None
    ):
        self.code = code
        self.message = message
        self.details = details or {}
        self.http_status = http_status or self.HTTP_STATUS_MAP.get(code, 500)

        # Build exception message with code for easy debugging
        super().__init__(f"[{code.value}] {message}")

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary for JSON serialization."""
        return {
            "code": self.code.value,
            "message": self.message,
            "details": self.details,
            "http_status": self.http_status
        }

    def to_json(self) -> str:
        """Serialize error to JSON string."""
        import json
        return json.dumps(self.to_dict(), default=str)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "NetMonError":
        """
        Deserialize error from dictionary.

        Args:
            data: Dictionary with code, message, details, http_status

        Returns:
            NetMonError instance
        """
        code = ErrorCode(data["code"])
        message = data["message"]
        details = data.get("details", {})
        http_status = data.get("http_status")
        return cls(code, message, details, http_status)

# ============================================================================
# Convenience Functions
# ============================================================================

def handle_error(error: Exception, context: Optional[str] = None) -> NetMonError:
    """
    Convert a generic exception to a NetMonError.

    Args:
        error: The original exception
        context: Optional context string (e.g., "while fetching devices")

    Returns:
        NetMonError with appropriate code and message
    """
    if isinstance(error, NetMonError):
        return error

    error_type = type(error).__name__

    if "Timeout" in error_type or "timeout" in str(error).lower():
        code = ErrorCode.GATEWAY_TIMEOUT
    elif "Connect" in error_type or "connection" in str(error).lower():
        code = ErrorCode.GATEWAY_UNAVAILABLE
    else:
        code = ErrorCode.SYSTEM_INTERNAL_ERROR

    message = str(error) or error_type
    if context:
        message = f"{context}: {message}"

    return NetMonError(
        code=code,
        message=message,
        details={
            "original_type": error_type,
            "original_message": str(error)
        }
    )

__all__ = ["ErrorCode", "NetMonError", "handle_error"]
