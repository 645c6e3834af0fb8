class RestyError(Exception):
    """Base exception for the resty package."""


class ConfigurationError(RestyError):
    """Raised when the client cannot be configured for the requested mode."""


class InvalidArgument(RestyError, ValueError):
    """Raised when a URL, mode, endpoint, method or payload is malformed."""


class TransportError(RestyError):
    """Raised when the HTTP round trip fails to complete."""
