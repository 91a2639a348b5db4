"""Base model and shared field types.

Every pybarnacles record inherits from :class:`BarnaclesBaseModel` which
provides:

* ``alias_generator=to_camel`` so the camelCase wire keys used by raddec
  producers (``transmitterId``, ``rssiSignature``...) map to snake_case
  fields, and dumps ``by_alias`` reproduce the wire form.
* Frozen instances: records are immutable on arrival, updates are copies.
"""

from __future__ import annotations

from typing import Annotated, Any

from pydantic import AfterValidator, BaseModel, BeforeValidator, ConfigDict
from pydantic.alias_generators import to_camel


def normalize_identifier(value: str) -> str:
    """Strip and lower-case a transmitter/receiver/device identifier."""
    identifier = value.strip().lower()
    if not identifier:
        raise ValueError("identifier must be non-empty")
    return identifier


def make_signature(identifier: str, identifier_type: int) -> str:
    """Return the ``"<id>/<idType>"`` signature of an identifier pair."""
    return f"{identifier}/{identifier_type}"


def normalize_signature(signature: str) -> str:
    """Strip and lower-case a caller-supplied signature for store lookups."""
    return signature.strip().lower()


def coerce_milliseconds(value: Any) -> Any:
    """Truncate float epoch milliseconds to int; leave anything else to pydantic."""
    if isinstance(value, float):
        return int(value)
    return value


Identifier = Annotated[str, AfterValidator(normalize_identifier)]
"""Annotated type for non-empty, lower-cased identifiers."""

Milliseconds = Annotated[int, BeforeValidator(coerce_milliseconds)]
"""Annotated type for epoch timestamps in milliseconds."""


class BarnaclesBaseModel(BaseModel):
    """Base for pybarnacles records."""

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
        alias_generator=to_camel,
    )
