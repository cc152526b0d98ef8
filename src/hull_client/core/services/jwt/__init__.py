"""Identity token services."""

from .jwt_gen import build_token, lookup_token
from .jwt_verify import decode_token

__all__ = ["build_token", "decode_token", "lookup_token"]
