"""
Fibonacci Server
An HTTP service computing Fibonacci numbers, traced and metered end to end with OpenTelemetry.
"""

__version__ = "0.1.0"
__author__ = "Platform Observability Team"
