"""Candidate attribute records produced by the decoding collaborator.

A dynamb carries dynamic ambient data (sensor readings, ``nearest``
neighbours...) and must be timestamped. A statid carries static
identification data (name, uuids...). Decoded properties are kept as
model extras under their original (camelCase) names.
"""

from __future__ import annotations

from typing import Any

from pydantic import ConfigDict

from pybarnacles.models._base import BarnaclesBaseModel, Identifier, Milliseconds, make_signature


class _AttributeCandidate(BarnaclesBaseModel):
    model_config = ConfigDict(extra="allow")

    device_id: Identifier
    device_id_type: int

    @property
    def signature(self) -> str:
        return make_signature(self.device_id, self.device_id_type)

    @property
    def properties(self) -> dict[str, Any]:
        """Decoded properties, excluding the identity envelope."""
        return dict(self.model_extra or {})

    def to_json(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class DynambCandidate(_AttributeCandidate):
    """Dynamic ambient data for one device at one point in time."""

    timestamp: Milliseconds


class StatidCandidate(_AttributeCandidate):
    """Static identification data for one device."""
