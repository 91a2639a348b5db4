"""Custom exception hierarchy for pybarnacles.

The presence engine itself never raises at runtime: malformed input is
dropped and timestamp anomalies are corrected at the intake boundary.
These exceptions cover configuration and the outbound notification sinks.
"""

from __future__ import annotations


class BarnaclesError(Exception):
    """Base exception for all pybarnacles errors."""


class BarnaclesConfigError(BarnaclesError):
    """Invalid or inconsistent configuration."""


class BarnaclesTransportError(BarnaclesError):
    """HTTP-level failure while forwarding events (network, non-2xx)."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        endpoint: str = "",
    ) -> None:
        self.status_code = status_code
        self.endpoint = endpoint
        super().__init__(message)


class BarnaclesMqttError(BarnaclesError):
    """MQTT connection or publish failure."""
