"""
Exception classes for the Fibonacci server.

Two tiers:
1. Request-local errors (FibonacciError): returned to the client as data and
   mirrored into the span status. Never turned into a non-200 response.
2. Startup-fatal errors (TelemetryInitError): the process refuses to serve
   with a half-initialized telemetry stack and exits non-zero.
"""

from enum import Enum
from typing import Any, Dict


class FibonacciServerError(Exception):
    """Base exception for all server errors."""

    error_code: str = "fibonacci_server_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for structured log records"""
        return {
            "error": {
                "code": self.error_code,
                "message": self.message,
                "type": self.__class__.__name__,
            }
        }


# ============================================================================
# REQUEST-LOCAL ERRORS
# ============================================================================

class ErrorKind(str, Enum):
    """Closed set of reasons a computation can be refused."""

    OUT_OF_RANGE = "out_of_range"


class FibonacciError(FibonacciServerError):
    """A computation request that cannot be answered."""

    kind: ErrorKind

    def __init__(self, message: str, kind: ErrorKind):
        super().__init__(message)
        self.kind = kind
        self.error_code = kind.value


class OutOfRangeError(FibonacciError):
    """n lies outside [1, 90]."""

    def __init__(self, n: int, message: str = "n must be between 1 and 90"):
        super().__init__(message, ErrorKind.OUT_OF_RANGE)
        self.n = n


# ============================================================================
# STARTUP-FATAL ERRORS
# ============================================================================

class TelemetryInitError(FibonacciServerError):
    """
    The trace or metrics pipeline could not be initialized.

    Raised at startup only. The CLI turns it into exit code 1 before the
    HTTP listener is created.
    """

    error_code = "telemetry_init_failed"


class ExporterConfigError(TelemetryInitError):
    """Malformed exporter configuration (endpoint, protocol, batching)."""

    error_code = "exporter_config_invalid"


class TelemetryAlreadyInstalledError(TelemetryInitError):
    """A telemetry context was already published as the process-wide globals."""

    error_code = "telemetry_already_installed"
