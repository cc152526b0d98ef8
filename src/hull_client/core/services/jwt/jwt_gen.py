import time
from collections.abc import Mapping
from typing import Any

from authlib.jose import JoseError, jwt
from loguru import logger

from hull_client.core.claims import Claim, is_empty_claim, resolve_subject
from hull_client.core.errors import MissingConfig, UnsupportedSubjectType
from hull_client.core.models import AdditionalClaims

SUBJECT_TYPES = ("user", "account")
ALGORITHM = "HS256"


def check_config(config: Mapping[str, Any] | None) -> None:
    if not config or not config.get("id") or not config.get("secret"):
        raise MissingConfig("Invalid config: connector id and secret are required")


def signing_secret(config: Mapping[str, Any]) -> str:
    return config.get("access_token") or config["secret"]


def namespaced_claim(entity_type: str) -> str:
    return f"io.hull.as{entity_type.capitalize()}"


def build_token(config: Mapping[str, Any], claims: dict[str, Any] | None = None) -> str:
    """Sign a claim set as the connector.

    Args:
        config: Connector configuration with ``id`` and ``secret``
        claims: Claims to include next to ``iss`` and ``iat``

    Returns:
        Compact HS256 JWT string

    Raises:
        MissingConfig: If the connector id or secret is missing
    """
    check_config(config)
    claims = dict(claims or {})

    # nbf/exp may come in as strings from callers
    for key in ("nbf", "exp"):
        if claims.get(key):
            claims[key] = int(float(claims[key]))

    payload = {"iss": config["id"], "iat": int(time.time()), **claims}
    header = {"alg": ALGORITHM, "typ": "JWT"}

    try:
        token = jwt.encode(header, payload, signing_secret(config))
    except JoseError as e:
        logger.debug(f"Token encoding failed for connector {config['id']}: {e}")
        raise

    return token.decode() if isinstance(token, bytes) else token


def lookup_token(
    config: Mapping[str, Any],
    subject_type: str | None,
    claims_by_type: Mapping[str, Claim | None] | None = None,
    additional_claims: AdditionalClaims | Mapping[str, Any] | None = None,
) -> str:
    """Build the identity token used to act as a user or an account.

    The subject's own claim becomes ``sub`` when it is a string or carries
    an ``id``. Every non-empty object claim is embedded under
    ``io.hull.as<Type>``. String claims of the other entity type are
    embedded as ``{"id": claim}`` to link both entities; the subject's own
    string claim is only carried by ``sub``.

    Args:
        config: Connector configuration (``id``, ``secret``, optional ``access_token``)
        subject_type: ``"user"`` or ``"account"``, case-insensitive
        claims_by_type: Claims keyed by entity type
        additional_claims: ``create``/``scopes``/``active``/``nbf``/``exp`` directives

    Returns:
        Signed token string

    Raises:
        UnsupportedSubjectType: If ``subject_type`` is not user or account
        MissingConfig: If the connector id or secret is missing
    """
    subject_type = (subject_type or "").lower()
    if subject_type not in SUBJECT_TYPES:
        raise UnsupportedSubjectType(
            "Lookup token supports only `user` and `account` types"
        )

    check_config(config)
    claims_by_type = claims_by_type or {}
    claims: dict[str, Any] = {}

    subject = resolve_subject(claims_by_type.get(subject_type))
    if subject:
        claims["sub"] = subject

    for entity_type, claim in claims_by_type.items():
        if is_empty_claim(claim):
            continue
        if isinstance(claim, dict):
            claims[namespaced_claim(entity_type)] = claim
        elif isinstance(claim, str) and entity_type != subject_type:
            claims[namespaced_claim(entity_type)] = {"id": claim}

    if additional_claims is not None and not isinstance(
        additional_claims, AdditionalClaims
    ):
        additional_claims = AdditionalClaims.model_validate(dict(additional_claims))
    if additional_claims is not None:
        claims.update(additional_claims.token_claims())

    claims["io.hull.subjectType"] = subject_type
    return build_token(config, claims)
