"""Engine configuration for pybarnacles."""

from __future__ import annotations

import dataclasses
import os
from typing import Any

from pybarnacles._constants import (
    DEFAULT_DECODING_COMPILATION_MS,
    DEFAULT_DELAY_MS,
    DEFAULT_DISAPPEARANCE_MS,
    DEFAULT_DYNAMB_FRESHNESS_MS,
    DEFAULT_DYNAMB_PROPERTIES,
    DEFAULT_HISTORY_MS,
    DEFAULT_KEEP_ALIVE_MS,
    DEFAULT_MIN_REARM_MS,
    DEFAULT_PACKET_COMPILATION_MS,
    DEFAULT_STATID_PROPERTIES,
)
from pybarnacles.exceptions import BarnaclesConfigError


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


def _env_list(value: str) -> tuple[str, ...]:
    return tuple(item.strip() for item in value.split(",") if item.strip())


_WINDOW_FIELDS: tuple[str, ...] = (
    "delay_ms",
    "decoding_compilation_ms",
    "packet_compilation_ms",
    "history_ms",
    "keep_alive_ms",
    "disappearance_ms",
    "dynamb_freshness_ms",
    "min_rearm_ms",
)


@dataclasses.dataclass(frozen=True)
class BarnaclesConfig:
    """Engine configuration.

    All windows are expressed in milliseconds.

    Parameters
    ----------
    delay_ms : int
        Debounce window after a pending event is detected, and the
        re-evaluation delay of a device with nothing to report.  Also the
        default sweep delay of an empty store.
    decoding_compilation_ms : int
        Buffered raddecs this close to the newest one are fully merged
        into a compiled event.
    packet_compilation_ms : int
        Buffered raddecs beyond the decoding window but within this window
        only contribute their packets to a compiled event.
    history_ms : int
        Raddecs older than this, relative to the newest buffered raddec,
        are pruned.  Inbound raddecs older than the smaller of this and
        ``disappearance_ms`` are stale.
    keep_alive_ms : int
        Minimum spacing of keep-alive events.  Also the staleness
        threshold for inbound dynambs.
    disappearance_ms : int
        A device with no raddec for this long disappears.
    dynamb_freshness_ms : int
        Lifetime of a stored dynamic attribute after its timestamp.
    min_rearm_ms : int
        Lower bound of the sweep timer re-arm interval.
    accept_stale_raddecs / accept_future_raddecs : bool
        Correct the timestamp of stale / future raddecs to *now* instead
        of rejecting them.
    accept_stale_dynambs / accept_future_dynambs : bool
        Same, for dynambs.
    dynamb_properties / statid_properties : tuple of str
        Whitelists of the attribute properties retained from decoded data.
    """

    delay_ms: int = DEFAULT_DELAY_MS
    decoding_compilation_ms: int = DEFAULT_DECODING_COMPILATION_MS
    packet_compilation_ms: int = DEFAULT_PACKET_COMPILATION_MS
    history_ms: int = DEFAULT_HISTORY_MS
    keep_alive_ms: int = DEFAULT_KEEP_ALIVE_MS
    disappearance_ms: int = DEFAULT_DISAPPEARANCE_MS
    dynamb_freshness_ms: int = DEFAULT_DYNAMB_FRESHNESS_MS
    min_rearm_ms: int = DEFAULT_MIN_REARM_MS
    accept_stale_raddecs: bool = False
    accept_future_raddecs: bool = True
    accept_stale_dynambs: bool = False
    accept_future_dynambs: bool = True
    dynamb_properties: tuple[str, ...] = DEFAULT_DYNAMB_PROPERTIES
    statid_properties: tuple[str, ...] = DEFAULT_STATID_PROPERTIES

    def __post_init__(self) -> None:
        for name in _WINDOW_FIELDS:
            value = getattr(self, name)
            if not isinstance(value, int) or value <= 0:
                raise BarnaclesConfigError(f"{name} must be a positive integer, got {value!r}")
        if self.decoding_compilation_ms > self.packet_compilation_ms:
            raise BarnaclesConfigError(
                "decoding_compilation_ms must not exceed packet_compilation_ms "
                f"({self.decoding_compilation_ms} > {self.packet_compilation_ms})"
            )

    @classmethod
    def from_env(cls, **overrides: Any) -> BarnaclesConfig:
        """Create configuration from environment variables.

        Reads ``BARNACLES_<FIELD>`` for every field (e.g.
        ``BARNACLES_DELAY_MS``, ``BARNACLES_ACCEPT_STALE_DYNAMBS``,
        ``BARNACLES_STATID_PROPERTIES`` as a comma-separated list).
        Explicit keyword arguments override environment values.
        """
        env = os.environ
        config_kwargs: dict[str, Any] = {}

        for field in dataclasses.fields(cls):
            if field.name in overrides:
                continue
            raw = env.get(f"BARNACLES_{field.name.upper()}")
            if raw is None:
                continue
            if field.name in _WINDOW_FIELDS:
                try:
                    config_kwargs[field.name] = int(raw)
                except ValueError as exc:
                    raise BarnaclesConfigError(f"BARNACLES_{field.name.upper()} is not an integer: {raw!r}") from exc
            elif field.name.startswith("accept_"):
                config_kwargs[field.name] = _env_bool(raw, field.default)  # type: ignore[arg-type]
            else:
                config_kwargs[field.name] = _env_list(raw)

        config_kwargs.update(overrides)
        return cls(**config_kwargs)
