"""Typed records exchanged with pybarnacles."""

from pybarnacles.models.attributes import DynambCandidate, StatidCandidate
from pybarnacles.models.raddec import Raddec, RssiSignatureEntry

__all__ = [
    "DynambCandidate",
    "Raddec",
    "RssiSignatureEntry",
    "StatidCandidate",
]
