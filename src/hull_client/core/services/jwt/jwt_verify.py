from typing import Any

from authlib.jose import JoseError, jwt
from loguru import logger


def decode_token(token: str, secret: str, verify_time: bool = False) -> dict[str, Any]:
    """Decode an identity token and check its signature.

    Args:
        token: Compact JWT produced by ``lookup_token``
        secret: Key the token was signed with (access token or connector secret)
        verify_time: Also validate ``exp``/``nbf``/``iat`` against the clock

    Returns:
        The token claims as a plain dict

    Raises:
        authlib.jose.JoseError: If the signature or time claims are invalid
    """
    try:
        claims = jwt.decode(token, secret)
        if verify_time:
            claims.validate()
    except JoseError as e:
        logger.debug(f"Token verification failed: {e}")
        raise
    return dict(claims)
