"""Validated client configuration.

The configuration is checked once at construction. Identity claims are
validated and filtered, and the identity token is derived from them so
every scoped client carries its own ``access_token``. Reads return copies,
so callers can never mutate the stored state.
"""

from __future__ import annotations

import copy
import re
from collections.abc import Callable, Mapping
from typing import Any, Final, Literal

from loguru import logger
from pydantic import (
    BaseModel,
    ConfigDict,
    InstanceOf,
    ValidationError,
    ValidationInfo,
    field_validator,
)

from hull_client.core.claims import (
    CLAIM_SCHEMAS,
    DEFAULT_SCHEMA_VERSION,
    Claim,
    filter_claim,
    validate_claim,
)
from hull_client.core.errors import InvalidConfiguration
from hull_client.core.models import AdditionalClaims
from hull_client.core.services.jwt.jwt_gen import lookup_token
from hull_client.version import __version__

DEFAULT_PREFIX: Final = "/api/v1"
DEFAULT_PROTOCOL: Final = "https"

_OBJECT_ID: Final = re.compile(r"^[0-9a-fA-F]{24}$")


def is_object_id(value: Any) -> bool:
    return isinstance(value, str) and bool(_OBJECT_ID.match(value))


def is_non_empty_string(value: Any) -> bool:
    return isinstance(value, str) and len(value) > 0


def is_positive_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and value > 0


def is_claim(value: Any) -> bool:
    return isinstance(value, (str, dict))


REQUIRED_FIELDS: Final[dict[str, Callable[[Any], bool]]] = {
    "id": is_object_id,
    "secret": is_non_empty_string,
    "organization": is_non_empty_string,
}

FIELD_VALIDATORS: Final[dict[str, Callable[[Any], bool]]] = {
    **REQUIRED_FIELDS,
    "prefix": is_non_empty_string,
    "domain": is_non_empty_string,
    "namespace": is_non_empty_string,
    "protocol": is_non_empty_string,
    "firehose_url": is_non_empty_string,
    "user_claim": is_claim,
    "account_claim": is_claim,
    "access_token": is_non_empty_string,
    "flush_at": is_positive_number,
    "flush_after": is_positive_number,
    "connector_name": is_non_empty_string,
    "request_id": is_non_empty_string,
    "user_id": is_non_empty_string,
}


class ConfigData(BaseModel):
    """Configuration fields, in the order they are checked."""

    model_config = ConfigDict(extra="ignore", validate_assignment=True)

    id: str
    secret: str
    organization: str
    prefix: str = DEFAULT_PREFIX
    protocol: str = DEFAULT_PROTOCOL
    domain: str | None = None
    namespace: str | None = None
    firehose_url: str | None = None
    subject_type: Literal["user", "account"] | None = None
    user_claim: str | dict[str, Any] | None = None
    account_claim: str | dict[str, Any] | None = None
    additional_claims: AdditionalClaims | None = None
    access_token: str | None = None
    flush_at: int | None = None
    flush_after: float | None = None
    connector_name: str | None = None
    request_id: str | None = None
    user_id: str | None = None
    sudo: bool = False
    claims_schema_version: int = DEFAULT_SCHEMA_VERSION
    logs: InstanceOf[list] | None = None
    firehose_events: InstanceOf[list] | None = None
    version: str = __version__

    @field_validator("*", mode="before")
    @classmethod
    def _check_field(cls, value: Any, info: ValidationInfo) -> Any:
        check = FIELD_VALIDATORS.get(info.field_name)
        if check is not None and value is not None and not check(value):
            raise ValueError(f"{info.field_name} property in Configuration is invalid: {value}")
        return value

    @field_validator("subject_type", mode="before")
    @classmethod
    def _lower_subject_type(cls, value: Any) -> Any:
        return value.lower() if isinstance(value, str) else value

    @field_validator("claims_schema_version")
    @classmethod
    def _known_schema(cls, value: int) -> int:
        if value not in CLAIM_SCHEMAS:
            raise ValueError(f"Unknown claims schema version: {value}")
        return value


def _is_set(key: str, value: Any) -> bool:
    # Capture lists count even when empty
    if key in REQUIRED_FIELDS or isinstance(value, list):
        return True
    return bool(value)


def _to_invalid_configuration(error: ValidationError) -> InvalidConfiguration:
    first = error.errors()[0]
    field = str(first["loc"][0]) if first["loc"] else None
    if first["type"] == "missing":
        return InvalidConfiguration(
            f"Configuration is missing required property: {field}", field=field
        )
    message = first["msg"].removeprefix("Value error, ")
    return InvalidConfiguration(message, field=field)


class Configuration:
    """Connector configuration store.

    Args:
        config: Mapping with at least ``id``, ``secret`` and ``organization``

    Raises:
        InvalidConfiguration: If the mapping is empty or a field is invalid
        InvalidClaim: If a user or account claim carries no allowed field
    """

    def __init__(self, config: Mapping[str, Any] | None):
        if not isinstance(config, Mapping) or not config:
            raise InvalidConfiguration(
                "Configuration is invalid, it should be a non-empty object"
            )

        raw = {
            key: value
            for key, value in config.items()
            if key in ConfigData.model_fields and _is_set(key, value)
        }
        raw.pop("version", None)

        version = raw.get("claims_schema_version", DEFAULT_SCHEMA_VERSION)
        if version not in CLAIM_SCHEMAS:
            version = DEFAULT_SCHEMA_VERSION
        user_claim: Claim | None = raw.get("user_claim")
        account_claim: Claim | None = raw.get("account_claim")
        has_claims = user_claim is not None or account_claim is not None
        if has_claims:
            validate_claim("user", user_claim, version)
            validate_claim("account", account_claim, version)
            if user_claim is not None:
                raw["user_claim"] = filter_claim("user", user_claim, version)
            if account_claim is not None:
                raw["account_claim"] = filter_claim("account", account_claim, version)

        try:
            self._state = ConfigData.model_validate(raw)
        except ValidationError as e:
            raise _to_invalid_configuration(e) from e

        state = self._state
        if has_claims:
            if state.subject_type is None:
                state.subject_type = "user" if state.user_claim is not None else "account"
            state.access_token = lookup_token(
                state.model_dump(include={"id", "secret"}),
                state.subject_type,
                {"user": state.user_claim, "account": state.account_claim},
                state.additional_claims,
            )
            logger.trace(
                f"Derived {state.subject_type} token for connector {state.id}"
            )

        if not state.domain and state.organization:
            namespace, *domain = state.organization.split(".")
            # "test" has no domain, ".hull.io" has no namespace
            if namespace:
                state.namespace = namespace
            if any(domain):
                state.domain = ".".join(domain)

    def set(self, key: str, value: Any) -> None:
        """Replace one configuration value in place."""
        if key not in ConfigData.model_fields:
            raise InvalidConfiguration(f"Unknown configuration property: {key}", field=key)
        try:
            setattr(self._state, key, value)
        except ValidationError as e:
            raise _to_invalid_configuration(e) from e

    def get(self, key: str | None = None) -> Any:
        """Return a copy of one value, or of the whole configuration."""
        if key is None:
            return self.get_all()
        if key not in ConfigData.model_fields:
            return None
        return copy.deepcopy(self._state.model_dump(include={key}).get(key))

    def get_all(self) -> dict[str, Any]:
        return copy.deepcopy(self._state.model_dump(exclude_none=True))

    def sink(self, key: Literal["logs", "firehose_events"]) -> list | None:
        """Return the capture list itself, not a copy."""
        return getattr(self._state, key)

    def __repr__(self) -> str:
        return (
            f"Configuration(id={self._state.id!r}, organization={self._state.organization!r}, "
            f"subject_type={self._state.subject_type!r})"
        )
