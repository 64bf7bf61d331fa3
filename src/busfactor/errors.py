"""
Bus factor engine error classes.

Only configuration problems and unreachable collaborators surface to
callers. Missing organizations, domains or people are reported as ``None``
or empty results, and a failing contribution query degrades to zero
contribution instead of raising.
"""


class BusFactorError(Exception):
    """Base exception for bus factor operations."""

    def __init__(self, message: str, component: str, operation: str):
        super().__init__(message)
        self.component = component
        self.operation = operation


class InvalidConfigurationError(BusFactorError):
    """Raised when caller options fall outside their documented ranges."""

    def __init__(self, message: str, fields: list[str] | None = None):
        super().__init__(message, "options", "validate")
        self.fields = fields or []


class UpstreamUnavailableError(BusFactorError):
    """Raised when the event store or directory cannot be reached at all."""

    def __init__(self, source: str, reason: str = ""):
        message = f"{source} unavailable"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message, source, "connect")
        self.source = source
        self.reason = reason
