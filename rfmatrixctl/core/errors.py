"""Domain-specific errors for rfmatrixctl."""


class RfMatrixError(Exception):
    """Base error for rfmatrixctl."""


class EncodingError(RfMatrixError):
    """Raised when a body cannot be framed as a single-byte ASCII packet."""


class ValidationError(RfMatrixError):
    """Raised when a command violates matrix bounds before any network activity."""


class ConfigValidationError(RfMatrixError):
    """Raised when a configuration document does not conform to schema or semantics."""


class ConfigLoadError(RfMatrixError):
    """Raised when reading configuration sources fails."""


class TransportError(RfMatrixError):
    """Raised on socket-level failures (refused, reset, unreachable)."""


class TransportTimeoutError(TransportError):
    """Raised when no complete reply arrives within the overall timeout."""
