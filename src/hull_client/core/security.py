"""Request signing helpers."""

import hashlib
import hmac
from collections.abc import Mapping
from typing import Any

from hull_client.core.services.jwt.jwt_gen import check_config, signing_secret


def sign(config: Mapping[str, Any], data: str) -> str:
    """Compute the HMAC-SHA1 hex signature of a string.

    Args:
        config: Connector configuration, keyed by ``access_token`` or ``secret``
        data: String to sign

    Returns:
        Hex digest of the signature

    Raises:
        MissingConfig: If the connector id or secret is missing
        TypeError: If ``data`` is not a string
    """
    check_config(config)
    if not isinstance(data, str):
        raise TypeError("Signatures can only be generated for strings")
    key = signing_secret(config).encode("utf-8")
    return hmac.new(key, data.encode("utf-8"), hashlib.sha1).hexdigest()


def current_user_id(config: Mapping[str, Any], user_id: str | None, user_sig: str | None) -> bool:
    """Check a signed user id of the form ``"<time>.<signature>"``."""
    check_config(config)
    if not user_id or not user_sig:
        return False
    timestamp, _, signature = user_sig.partition(".")
    expected = sign(config, f"{timestamp}-{user_id}")
    return hmac.compare_digest(expected, signature)
