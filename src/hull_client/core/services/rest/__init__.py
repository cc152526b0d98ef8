"""REST invoker and retry policy."""

from .rest_api import RestApiService, format_url, normalize_method
from .retry import DEFAULT_RETRY, RetryPolicy, is_transient

__all__ = [
    "DEFAULT_RETRY",
    "RestApiService",
    "RetryPolicy",
    "format_url",
    "is_transient",
    "normalize_method",
]
