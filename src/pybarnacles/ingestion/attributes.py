"""Dynamb and statid intake.

Candidates come from the decoding collaborator (or directly from a host).
Each is validated against its identity envelope, stripped to the
whitelisted properties, timestamp-checked (dynambs only) and routed to the
store. Rejections are silent apart from a DEBUG log line.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping
from typing import Any, TypeVar

from pydantic import ValidationError

from pybarnacles._constants import TOPIC_DYNAMB
from pybarnacles.config import BarnaclesConfig
from pybarnacles.ingestion.normalize import prune_empty
from pybarnacles.models.attributes import DynambCandidate, StatidCandidate
from pybarnacles.state.policy import resolve_timestamp
from pybarnacles.state.store import DeviceStore

_logger = logging.getLogger(__name__)

TCandidate = TypeVar("TCandidate", DynambCandidate, StatidCandidate)


def filter_candidate(
    candidate_cls: type[TCandidate],
    data: TCandidate | Mapping[str, Any],
    allowed_properties: Iterable[str],
) -> TCandidate | None:
    """Validate a candidate and keep only its whitelisted, meaningful properties.

    Returns ``None`` when the identity envelope is malformed or no
    whitelisted property remains.
    """
    if isinstance(data, candidate_cls):
        model = data
    else:
        try:
            model = candidate_cls.model_validate(data)
        except ValidationError:
            return None

    allowed = set(allowed_properties)
    properties = prune_empty({name: value for name, value in model.properties.items() if name in allowed})
    if not properties:
        return None

    envelope = model.model_dump(include=set(candidate_cls.model_fields))
    return candidate_cls.model_validate({**envelope, **properties})


class DynambManager:
    """Accepts dynambs that meet the criteria and stores them."""

    def __init__(
        self,
        store: DeviceStore,
        config: BarnaclesConfig,
        *,
        publish: Callable[[str, Any], None],
        clock: Callable[[], int],
    ) -> None:
        self._store = store
        self._config = config
        self._publish = publish
        self._clock = clock

    def handle_dynamb(self, data: DynambCandidate | Mapping[str, Any]) -> DynambCandidate | None:
        """Validate, timestamp-check and store a dynamb.

        Returns the accepted (possibly re-timestamped) dynamb, or ``None``.
        """
        dynamb = filter_candidate(DynambCandidate, data, self._config.dynamb_properties)
        if dynamb is None:
            _logger.debug("Dynamb rejected: malformed or no whitelisted property")
            return None

        timestamp = resolve_timestamp(
            dynamb.timestamp,
            now=self._clock(),
            stale_window=self._config.keep_alive_ms,
            accept_stale=self._config.accept_stale_dynambs,
            accept_future=self._config.accept_future_dynambs,
        )
        if timestamp is None:
            _logger.debug("Dynamb rejected: timestamp=%d out of range signature=%s", dynamb.timestamp, dynamb.signature)
            return None
        if timestamp != dynamb.timestamp:
            dynamb = dynamb.model_copy(update={"timestamp": timestamp})

        if not self._store.insert_dynamb(dynamb):
            _logger.debug("Dynamb dropped: unknown device signature=%s", dynamb.signature)
            return None

        self._publish(TOPIC_DYNAMB, dynamb.to_json())
        return dynamb


class StatidManager:
    """Accepts statids that meet the criteria and stores them."""

    def __init__(self, store: DeviceStore, config: BarnaclesConfig) -> None:
        self._store = store
        self._config = config

    def handle_statid(self, data: StatidCandidate | Mapping[str, Any]) -> StatidCandidate | None:
        statid = filter_candidate(StatidCandidate, data, self._config.statid_properties)
        if statid is None:
            _logger.debug("Statid rejected: malformed or no whitelisted property")
            return None

        if not self._store.insert_statid(statid):
            _logger.debug("Statid dropped: unknown device signature=%s", statid.signature)
            return None
        return statid
