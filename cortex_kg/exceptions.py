"""
Error Taxonomy

All errors raised by cortex-kg derive from CortexError.

    ConfigurationError      Missing credentials or settings. Raised when a
                            client is constructed, never in the middle of a query.
    TransientServiceError   Timeout, 5xx, or a model that is still loading after
                            all retries. Consumers degrade to an empty result.
    ParseError              Upstream response could not be interpreted.
    ValidationInconclusive  The fact-checker gave neither verdict.
"""


class CortexError(Exception):
    """Base class for cortex-kg errors."""


class ConfigurationError(CortexError):
    """A required credential or setting is missing."""


class TransientServiceError(CortexError):
    """An external service failed in a way that may succeed later."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ParseError(CortexError):
    """An upstream response was malformed."""


class ValidationInconclusive(CortexError):
    """The validator response matched neither branch of its output contract."""
