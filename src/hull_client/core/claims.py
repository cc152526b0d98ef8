"""Identity claim validation and filtering.

A claim identifies a user or an account on the platform. It is either a
plain string (treated as the entity id) or a mapping restricted to the
fields of the entity's claim schema.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Final, Literal

from hull_client.core.errors import InvalidClaim, UnsupportedSubjectType

EntityType = Literal["user", "account"]
Claim = str | dict[str, Any]

ENTITY_TYPES: Final = ("user", "account")


@dataclass(frozen=True)
class ClaimSchema:
    """Allowed claim fields for one entity type.

    ``multi_value`` fields keep list/dict values as they are; every other
    field is reduced to a scalar.
    """

    allowed: tuple[str, ...]
    multi_value: frozenset[str] = frozenset()


USER_CLAIMS: Final = ("id", "email", "external_id", "anonymous_id")
ACCOUNT_CLAIMS: Final = ("id", "external_id", "domain", "anonymous_id")

CLAIM_SCHEMAS: Final[dict[int, dict[str, ClaimSchema]]] = {
    1: {
        "user": ClaimSchema(USER_CLAIMS),
        "account": ClaimSchema(ACCOUNT_CLAIMS),
    },
    2: {
        "user": ClaimSchema(
            USER_CLAIMS + ("aliases", "service_ids"),
            frozenset({"aliases", "service_ids"}),
        ),
        "account": ClaimSchema(
            ACCOUNT_CLAIMS + ("aliases", "service_ids"),
            frozenset({"aliases", "service_ids"}),
        ),
    },
}
DEFAULT_SCHEMA_VERSION: Final = 1


def get_schema(entity_type: str, version: int = DEFAULT_SCHEMA_VERSION) -> ClaimSchema:
    if entity_type not in ENTITY_TYPES:
        raise UnsupportedSubjectType(
            f"Claims are supported only for `user` and `account` types, got {entity_type!r}"
        )
    return CLAIM_SCHEMAS[version][entity_type]


def is_empty_claim(claim: Any) -> bool:
    return claim is None or (isinstance(claim, (str, dict)) and not claim)


def validate_claim(
    entity_type: str, claim: Claim | None, version: int = DEFAULT_SCHEMA_VERSION
) -> None:
    """Ensure a claim can identify an entity of the given type.

    Empty claims are skipped. Strings are always valid. Mappings must
    share at least one key with the entity's claim schema.

    Raises:
        InvalidClaim: If the claim carries no allowed field
    """
    schema = get_schema(entity_type, version)
    if is_empty_claim(claim) or isinstance(claim, str):
        return
    if not isinstance(claim, dict) or not set(claim).intersection(schema.allowed):
        raise InvalidClaim(entity_type, schema.allowed)


def filter_claim(
    entity_type: str, claim: Claim | None, version: int = DEFAULT_SCHEMA_VERSION
) -> Claim | None:
    """Drop unknown keys from a claim and reduce list values to their first item."""
    if claim is None or isinstance(claim, str):
        return claim

    schema = get_schema(entity_type, version)
    filtered: dict[str, Any] = {}
    for key, value in claim.items():
        if key not in schema.allowed:
            continue
        if isinstance(value, (list, tuple)) and key not in schema.multi_value:
            value = value[0] if value else None
        filtered[key] = value
    return filtered


def resolve_subject(claim: Claim | None) -> str | None:
    """Return the entity id carried by a claim, if any."""
    if isinstance(claim, str):
        return claim or None
    if isinstance(claim, dict) and claim.get("id"):
        return claim["id"]
    return None
