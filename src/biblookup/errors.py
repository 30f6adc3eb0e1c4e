"""Error taxonomy for the lookup and serialization layers."""

from __future__ import annotations


class LookupServiceError(Exception):
    """Base class for all biblookup errors."""


class TransportError(LookupServiceError):
    """Network or HTTP failure during a provider call."""

    def __init__(self, message: str, *, status: int | None = None, service: str | None = None) -> None:
        super().__init__(message)
        self.status = status
        self.service = service


class DeserializationError(LookupServiceError):
    """Wire data could not be coerced into the declared schema."""


class ProviderTimeout(LookupServiceError):
    """A provider did not answer within its configured timeout."""

    def __init__(self, service: str, timeout: float) -> None:
        super().__init__(f"{service} timed out after {timeout:g}s")
        self.service = service
        self.timeout = timeout


class AggregateTimeout(LookupServiceError):
    """The overall lookup deadline elapsed with providers still in flight."""

    def __init__(self, services: list[str], timeout: float) -> None:
        super().__init__(f"lookup deadline of {timeout:g}s elapsed; discarded {', '.join(services)}")
        self.services = services
        self.timeout = timeout


class ConfigurationError(LookupServiceError):
    """A provider is missing configuration or cannot serve a request."""


class InvalidRequestError(LookupServiceError):
    """The lookup request carries no usable terms."""


class SchemaError(LookupServiceError):
    """A record schema declaration is invalid."""


class ProbeRequiredError(LookupServiceError):
    """A download was attempted before a successful probe."""
