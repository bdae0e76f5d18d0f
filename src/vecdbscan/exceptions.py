"""Exceptions raised by the clustering engine."""


class InputValidationError(ValueError):
    """Raised when vectors or clustering parameters violate the input contract."""


class BackendUnavailableError(RuntimeError):
    """Raised when the accelerated backend cannot be used (no device, not opened)."""
