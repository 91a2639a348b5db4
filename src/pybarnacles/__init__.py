"""pybarnacles - Real-time device presence and event engine for raddec streams."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("pybarnacles")
except PackageNotFoundError:
    __version__ = "0+local"
from pybarnacles.barnacles import Barnacles
from pybarnacles.config import BarnaclesConfig
from pybarnacles.exceptions import (
    BarnaclesConfigError,
    BarnaclesError,
    BarnaclesMqttError,
    BarnaclesTransportError,
)
from pybarnacles.ingestion.packets import PacketProcessor
from pybarnacles.models import (
    DynambCandidate,
    Raddec,
    RssiSignatureEntry,
    StatidCandidate,
)
from pybarnacles.state.events import EventKind
from pybarnacles.state.store import DeviceStore

__all__ = [
    "__version__",
    "Barnacles",
    "BarnaclesConfig",
    "BarnaclesConfigError",
    "BarnaclesError",
    "BarnaclesMqttError",
    "BarnaclesTransportError",
    "DeviceStore",
    "DynambCandidate",
    "EventKind",
    "PacketProcessor",
    "Raddec",
    "RssiSignatureEntry",
    "StatidCandidate",
]
