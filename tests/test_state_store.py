from __future__ import annotations

from pybarnacles.config import BarnaclesConfig
from pybarnacles.models import DynambCandidate, Raddec, RssiSignatureEntry, StatidCandidate
from pybarnacles.state.context import compile_context, compile_nearest
from pybarnacles.state.device import DeviceSnapshot
from pybarnacles.state.events import EventKind
from pybarnacles.state.store import DeviceStore


class _FakeClock:
    def __init__(self, now: int = 0) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now


def _raddec(transmitter: str, timestamp: int | None, *receivers: tuple[str, int], id_type: int = 2) -> Raddec:
    return Raddec(
        transmitter_id=transmitter,
        transmitter_id_type=id_type,
        rssi_signature=[
            RssiSignatureEntry(receiver_id=receiver, receiver_id_type=2, rssi=rssi) for receiver, rssi in receivers
        ],
        timestamp=timestamp,
    )


def _store(clock: _FakeClock, **overrides: int) -> DeviceStore:
    return DeviceStore(BarnaclesConfig(**overrides), clock=clock)


def test_insert_creates_device_lazily_and_stamps_missing_timestamp() -> None:
    clock = _FakeClock(5000)
    store = _store(clock)

    deadline = store.insert_raddec(_raddec("AA", None, ("r1", -60)))

    assert deadline == 6000
    assert len(store) == 1
    assert "aa/2" in store
    events: list[Raddec] = []
    clock.now = 6000
    store.sweep(clock.now, events.append)
    assert events[0].timestamp == 5000


def test_sweep_on_empty_store_returns_delay() -> None:
    store = _store(_FakeClock(), delay_ms=250)
    assert store.sweep(1000, lambda _event: None) == 1250


def test_sweep_returns_earliest_deadline() -> None:
    clock = _FakeClock(0)
    store = _store(clock)
    store.insert_raddec(_raddec("aa", 0, ("r1", -60)))
    clock.now = 400
    store.insert_raddec(_raddec("bb", 400, ("r1", -60)))

    events: list[Raddec] = []
    assert store.sweep(1000, events.append) == 1400
    assert [event.signature for event in events] == ["aa/2"]


def test_disappeared_devices_are_removed() -> None:
    clock = _FakeClock(0)
    store = _store(clock, disappearance_ms=3000)
    store.insert_raddec(_raddec("aa", 0, ("r1", -60)))

    events: list[Raddec] = []
    store.sweep(1000, events.append)
    store.sweep(3000, events.append)

    assert [event.events for event in events] == [[EventKind.APPEARANCE], [EventKind.DISAPPEARANCE]]
    assert len(store) == 0
    assert store.retrieve_devices() == {}


def test_emit_may_query_the_store() -> None:
    clock = _FakeClock(0)
    store = _store(clock)
    store.insert_raddec(_raddec("aa", 0, ("r1", -60)))
    seen: list[dict] = []

    store.sweep(1000, lambda event: seen.append(store.retrieve_devices(event.transmitter_id)))

    assert seen[0]["aa/2"]["raddec"]["events"] == ["appearance"]


def test_attributes_for_unknown_device_are_dropped() -> None:
    store = _store(_FakeClock())
    assert not store.insert_dynamb(DynambCandidate(device_id="aa", device_id_type=2, timestamp=0, temperature=20))
    assert not store.insert_statid(StatidCandidate(device_id="aa", device_id_type=2, name="tag"))


def test_retrieve_devices_projection() -> None:
    clock = _FakeClock(0)
    store = _store(clock)
    store.insert_raddec(_raddec("aa", 0, ("r1", -60)))
    store.insert_raddec(_raddec("aa", 0, ("r1", -60), id_type=3))
    store.insert_raddec(_raddec("bb", 0, ("r1", -60)))
    store.insert_dynamb(DynambCandidate(device_id="aa", device_id_type=2, timestamp=0, temperature=20))
    store.insert_statid(StatidCandidate(device_id="aa", device_id_type=2, name="tag"))

    # No compiled event yet: raddec is omitted.
    assert store.retrieve_devices("AA", 2) == {
        "aa/2": {
            "dynamb": {"deviceId": "aa", "deviceIdType": 2, "timestamp": 0, "temperature": 20},
            "statid": {"deviceId": "aa", "deviceIdType": 2, "name": "tag"},
        }
    }
    assert sorted(store.retrieve_devices("aa")) == ["aa/2", "aa/3"]
    assert store.retrieve_devices("aa", 2, properties=["statid", "unknown"]) == {
        "aa/2": {"statid": {"deviceId": "aa", "deviceIdType": 2, "name": "tag"}}
    }
    assert store.retrieve_devices("cc") == {}
    assert len(store.retrieve_devices()) == 3


def test_retrieve_context_is_closed() -> None:
    clock = _FakeClock(0)
    store = _store(clock)
    store.insert_raddec(_raddec("aa", 0, ("r1", -60), ("r2", -75)))
    store.insert_raddec(_raddec("bb", 0, ("r1", -80)))
    store.sweep(1000, lambda _event: None)

    context = store.retrieve_context(["aa/2", "missing/2"])

    assert context["aa/2"]["nearest"] == [{"device": "r1/2", "rssi": -60}, {"device": "r2/2", "rssi": -75}]
    assert context["aa/2"]["raddec"]["transmitterId"] == "aa"
    assert context["r1/2"] == {}
    assert context["r2/2"] == {}
    assert "bb/2" not in context
    assert "missing/2" not in context


def test_retrieve_context_normalizes_requested_signatures() -> None:
    clock = _FakeClock(0)
    store = _store(clock)
    store.insert_raddec(_raddec("aa", 0, ("r1", -60)))
    store.sweep(1000, lambda _event: None)

    context = store.retrieve_context([" AA/2 ", "aa/2"])

    assert list(context) == ["aa/2", "r1/2"]
    assert context["aa/2"]["nearest"] == [{"device": "r1/2", "rssi": -60}]


# ------------------------------------------------------------------
# Context assembler
# ------------------------------------------------------------------


def _snapshot(signature: str, raddec: Raddec | None = None, dynamb: dict | None = None) -> DeviceSnapshot:
    return DeviceSnapshot(signature=signature, raddec=raddec, dynamb=dynamb, statid=None)


def test_nearest_merges_raddec_and_dynamb_sources() -> None:
    raddec = _raddec("aa", 0, ("r1", -70), ("aa", -30))
    dynamb = {
        "deviceId": "aa",
        "deviceIdType": 2,
        "timestamp": 0,
        "nearest": [
            {"deviceId": "R1", "deviceIdType": 2, "rssi": -55},
            {"deviceId": "bb", "rssi": "-65"},
            {"deviceId": "", "rssi": -40},
            {"rssi": -20},
            "junk",
        ],
    }

    nearest = compile_nearest(_snapshot("aa/2", raddec, dynamb))

    assert nearest == [{"device": "r1/2", "rssi": -55}, {"device": "bb", "rssi": -65}]


def test_context_lists_neighbours_as_stubs_unless_present() -> None:
    a = _snapshot("aa/2", _raddec("aa", 0, ("bb", -60)))
    b = _snapshot("bb/2", _raddec("bb", 0, ("aa", -62)))

    context = compile_context([a, b])

    assert set(context) == {"aa/2", "bb/2"}
    assert context["aa/2"]["nearest"] == [{"device": "bb/2", "rssi": -60}]
    assert context["bb/2"]["nearest"] == [{"device": "aa/2", "rssi": -62}]


def test_context_depth_beyond_one_served_as_depth_one() -> None:
    a = _snapshot("aa/2", _raddec("aa", 0, ("r1", -60)))
    assert compile_context([a], depth=3) == compile_context([a])


def test_device_without_event_or_dynamb_has_empty_nearest() -> None:
    assert compile_context([_snapshot("aa/2")]) == {"aa/2": {"nearest": []}}
