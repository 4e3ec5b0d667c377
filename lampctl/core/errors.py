"""Domain-specific errors for lampctl."""


class LampctlError(Exception):
    """Base error for lampctl."""


class ConfigError(LampctlError):
    """Raised when the configuration document is missing, unreadable, or invalid."""


class AuthenticationError(LampctlError):
    """Raised when a platform access token cannot be obtained or refreshed."""


class ResolveError(LampctlError):
    """Raised when the asset-to-device relation query fails."""


class MissingDeviceDataError(LampctlError):
    """Raised when a device lacks its UID telemetry or EUI attribute."""


class InvalidInputError(LampctlError):
    """Raised when action parameters or a device UID cannot be encoded."""


class TransportError(LampctlError):
    """Base transport error."""


class TransportTimeoutError(TransportError):
    """Raised when an HTTP call exceeds its configured timeout."""


class SubmissionError(TransportError):
    """Raised when the downlink queue rejects or fails a submission."""
