from typing import Any


class DomainError(Exception):
    """Base class for domain-specific errors."""

    pass


class RelayError(DomainError):
    """Base class for errors raised while relaying a generation request.

    Each subclass carries the HTTP status the API layer should answer with
    and an optional ``details`` payload passed through to the caller.
    """

    status_code: int = 500
    default_message: str = "Failed to process image generation stream request"

    def __init__(self, message: str | None = None, *, details: Any = None) -> None:
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)


class InvalidInputError(RelayError):
    """Exception raised when the generation request is missing or malformed."""

    status_code = 400
    default_message = "Missing prompt"


class ConfigurationError(RelayError):
    """Exception raised when the upstream credential is not configured."""

    default_message = "API key not configured on server."


class UpstreamError(RelayError):
    """Exception raised when the upstream API rejects the request."""

    default_message = "Upstream image API stream request failed."

    def __init__(self, status_code: int, details: Any = None) -> None:
        super().__init__(details=details)
        self.status_code = status_code


class StreamUnavailableError(RelayError):
    """Exception raised when upstream reports success without a readable body."""

    default_message = "Upstream stream response body was unexpectedly empty."


class UpstreamTransportError(RelayError):
    """Exception raised when the upstream API cannot be reached."""

    default_message = "Failed to reach the upstream image API."
