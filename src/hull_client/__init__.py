"""Python client for the Hull customer data platform."""

from hull_client.client import ClientUtils, HullClient, Scope
from hull_client.core.configuration import Configuration
from hull_client.core.errors import (
    HullClientError,
    InvalidClaim,
    InvalidConfiguration,
    MissingClaim,
    MissingConfig,
    TransportError,
    UnsupportedMethod,
    UnsupportedScope,
    UnsupportedSubjectType,
)
from hull_client.core.security import current_user_id, sign
from hull_client.core.services.firehose import BatcherRegistry, get_batcher_registry
from hull_client.core.services.jwt import decode_token, lookup_token
from hull_client.core.services.rest import RetryPolicy
from hull_client.runtime.logging import configure_logging
from hull_client.version import __version__

__all__ = [
    "BatcherRegistry",
    "ClientUtils",
    "Configuration",
    "HullClient",
    "HullClientError",
    "InvalidClaim",
    "InvalidConfiguration",
    "MissingClaim",
    "MissingConfig",
    "RetryPolicy",
    "Scope",
    "TransportError",
    "UnsupportedMethod",
    "UnsupportedScope",
    "UnsupportedSubjectType",
    "__version__",
    "configure_logging",
    "current_user_id",
    "decode_token",
    "get_batcher_registry",
    "lookup_token",
    "sign",
]
