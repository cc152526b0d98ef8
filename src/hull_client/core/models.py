"""Pydantic models for token directives and firehose batch items."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

BatchItemType = Literal["traits", "track", "alias", "unalias"]


class AdditionalClaims(BaseModel):
    """Directives carried by an identity token next to the claims.

    Only explicitly provided fields end up in the token, so ``create=False``
    and an absent ``create`` are different things.
    """

    model_config = ConfigDict(extra="ignore")

    create: bool | None = None
    scopes: list[str] | None = None
    active: bool | None = None
    nbf: int | None = None
    exp: int | None = None

    @field_validator("nbf", "exp", mode="before")
    @classmethod
    def _coerce_timestamp(cls, value: Any) -> Any:
        if isinstance(value, str) and value.strip():
            return int(float(value))
        if isinstance(value, float):
            return int(value)
        return value

    def token_claims(self) -> dict[str, Any]:
        """Map explicitly set directives onto their token claim names."""
        names = {
            "create": "io.hull.create",
            "active": "io.hull.active",
            "scopes": "scopes",
            "nbf": "nbf",
            "exp": "exp",
        }
        return {
            names[field]: getattr(self, field)
            for field in self.model_fields_set
            if field in names
        }


class BatchItem(BaseModel):
    """One write operation queued for the firehose."""

    model_config = ConfigDict(populate_by_name=True)

    type: BatchItemType
    body: dict[str, Any] = Field(default_factory=dict)
    request_id: str | None = Field(default=None, alias="requestId")
    headers: dict[str, str] | None = None

    def to_wire(self, exclude: set[str] | None = None) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True, exclude=exclude)
