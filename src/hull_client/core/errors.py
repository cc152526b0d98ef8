"""Exception hierarchy for the Hull client.

Construction-time problems (bad configuration, bad claims, unknown verbs)
are raised synchronously. Network problems surface as ``TransportError``
from the awaited operation.
"""


class HullClientError(Exception):
    """Base exception for all client errors."""


class InvalidConfiguration(HullClientError, ValueError):
    """Configuration is malformed or misses a required field."""

    def __init__(self, message: str, field: str | None = None):
        self.field = field
        super().__init__(message)


class MissingConfig(HullClientError, ValueError):
    """Token or signature requested without connector id/secret."""


class InvalidClaim(HullClientError, ValueError):
    """Identity claim does not carry any allowed field."""

    def __init__(self, entity_type: str, allowed: tuple[str, ...]):
        self.entity_type = entity_type
        self.allowed = allowed
        super().__init__(
            f"You need to pass an {entity_type} hash with an {', '.join(allowed)} field"
        )


class MissingClaim(HullClientError, ValueError):
    """Scoping requested without a claim."""


class UnsupportedSubjectType(HullClientError, ValueError):
    """Subject type is neither ``user`` nor ``account``."""


class UnsupportedMethod(HullClientError, ValueError):
    """HTTP verb is not one of get/post/put/delete."""


class UnsupportedScope(HullClientError):
    """Operation is not available for the client's scope."""


class TransportError(HullClientError):
    """Network, timeout or HTTP status failure.

    Attributes:
        status_code: HTTP status returned by the server, None without a response
        cause: Original exception raised by the HTTP layer
        timeout: True when the client gave up waiting for the server
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        cause: Exception | None = None,
        timeout: bool = False,
    ):
        self.status_code = status_code
        self.cause = cause
        self.timeout = timeout
        super().__init__(message)

    @property
    def is_retryable(self) -> bool:
        return self.timeout or (self.status_code is not None and self.status_code >= 500)
