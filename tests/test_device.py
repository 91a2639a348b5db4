"""Scenario tests for the per-device presence state machine."""

from __future__ import annotations

from collections.abc import Iterable

from pybarnacles.config import BarnaclesConfig
from pybarnacles.models import DynambCandidate, Raddec, RssiSignatureEntry, StatidCandidate
from pybarnacles.state.device import Device
from pybarnacles.state.events import EventKind, PendingEvent

RECEIVER_A = "001bc50940810000"
RECEIVER_B = "001bc50940810001"


def _raddec(
    timestamp: int,
    *,
    receiver: str = RECEIVER_A,
    rssi: int = -70,
    packets: Iterable[str] = (),
) -> Raddec:
    return Raddec(
        transmitter_id="fee150bada55",
        transmitter_id_type=2,
        rssi_signature=[RssiSignatureEntry(receiver_id=receiver, receiver_id_type=2, rssi=rssi)],
        timestamp=timestamp,
        packets=list(packets),
    )


def _device(**overrides: int) -> Device:
    return Device("fee150bada55", 2, BarnaclesConfig(**overrides))


def test_new_device_emits_appearance_after_debounce() -> None:
    device = _device()
    events: list[Raddec] = []

    assert device.handle_raddec(_raddec(0), now=0) == 1000
    assert device.determine_events(500, events.append) == 1000
    assert events == []

    next_deadline = device.determine_events(1000, events.append)

    assert [event.events for event in events] == [[EventKind.APPEARANCE]]
    assert events[0].signature == "fee150bada55/2"
    assert next_deadline == 6000
    assert device.pending == PendingEvent.NONE


def test_appearance_then_displacement() -> None:
    device = _device()
    events: list[Raddec] = []
    device.handle_raddec(_raddec(0, receiver=RECEIVER_A, rssi=-70), now=0)
    device.determine_events(1000, events.append)

    # A stronger receiver pulls the next evaluation forward to now + delay.
    assert device.handle_raddec(_raddec(1500, receiver=RECEIVER_B, rssi=-50), now=1500) == 2500
    device.determine_events(2500, events.append)

    assert [event.events for event in events] == [[EventKind.APPEARANCE], [EventKind.DISPLACEMENT]]
    assert events[1].receiver_signature == f"{RECEIVER_B}/2"
    assert device.latest_event is events[1]


def test_stronger_receiver_two_seconds_later() -> None:
    device = _device(delay_ms=1000, decoding_compilation_ms=2000)
    events: list[Raddec] = []
    device.handle_raddec(_raddec(0, receiver=RECEIVER_A, rssi=-40), now=0)
    device.determine_events(1000, events.append)
    deadline = device.handle_raddec(_raddec(2000, receiver=RECEIVER_B, rssi=-35), now=2000)
    device.determine_events(deadline, events.append)

    assert [(event.events, event.receiver_signature) for event in events] == [
        ([EventKind.APPEARANCE], f"{RECEIVER_A}/2"),
        ([EventKind.DISPLACEMENT], f"{RECEIVER_B}/2"),
    ]


def test_weaker_receiver_does_not_confirm_displacement() -> None:
    device = _device()
    events: list[Raddec] = []
    device.handle_raddec(_raddec(0, receiver=RECEIVER_A, rssi=-50), now=0)
    device.determine_events(1000, events.append)

    device.handle_raddec(_raddec(1500, receiver=RECEIVER_B, rssi=-80), now=1500)
    assert device.pending == PendingEvent.DISPLACEMENT

    next_deadline = device.determine_events(2500, events.append)

    assert [event.events for event in events] == [[EventKind.APPEARANCE]]
    assert device.pending == PendingEvent.NONE
    assert next_deadline == 3500


def test_new_packets_emit_new_data_with_union() -> None:
    device = _device()
    events: list[Raddec] = []
    device.handle_raddec(_raddec(0, packets=["aa"]), now=0)
    device.determine_events(1000, events.append)

    device.handle_raddec(_raddec(1500, packets=["bb"]), now=1500)
    device.determine_events(2500, events.append)

    assert events[1].events == [EventKind.NEW_DATA]
    assert events[1].packets == ["bb", "aa"]


def test_repeated_raddec_flags_nothing() -> None:
    device = _device()
    events: list[Raddec] = []
    device.handle_raddec(_raddec(0, packets=["aa"]), now=0)
    device.determine_events(1000, events.append)

    device.handle_raddec(_raddec(0, packets=["aa"]), now=1200)

    assert device.pending == PendingEvent.NONE
    assert device.determine_events(2200, events.append) == 6000
    assert len(events) == 1


def test_keep_alive_spacing() -> None:
    device = _device()
    emitted: list[tuple[int, list[EventKind]]] = []

    for now in range(0, 12_001, 500):
        if now % 1000 == 0:
            device.handle_raddec(_raddec(now), now=now)
        device.determine_events(now, lambda event, now=now: emitted.append((now, event.events)))

    assert emitted == [
        (1000, [EventKind.APPEARANCE]),
        (6000, [EventKind.KEEP_ALIVE]),
        (11000, [EventKind.KEEP_ALIVE]),
    ]


def test_disappearance_after_silence() -> None:
    device = _device(disappearance_ms=10_000)
    events: list[Raddec] = []
    device.handle_raddec(_raddec(0), now=0)

    deadline: int | None = device.determine_events(1000, events.append)
    while deadline is not None:
        deadline = device.determine_events(deadline, events.append)
        if deadline is not None:
            assert deadline <= 10_000

    assert events[-1].events == [EventKind.DISAPPEARANCE]
    assert events[-1].receiver_signature == f"{RECEIVER_A}/2"
    assert [event.events[0] for event in events] == [
        EventKind.APPEARANCE,
        EventKind.KEEP_ALIVE,
        EventKind.DISAPPEARANCE,
    ]


def test_device_that_never_appeared_leaves_silently() -> None:
    device = _device(disappearance_ms=500)
    events: list[Raddec] = []
    device.handle_raddec(_raddec(0), now=0)

    assert device.determine_events(500, events.append) is None
    assert events == []


def test_new_raddec_postpones_disappearance() -> None:
    device = _device(disappearance_ms=10_000)
    device.handle_raddec(_raddec(0), now=0)
    device.handle_raddec(_raddec(8000), now=8000)

    assert device.disappearance_deadline == 18_000
    assert device.determine_events(10_000, lambda _event: None) is not None


def test_out_of_order_raddec_is_sorted_into_history() -> None:
    device = _device()
    device.handle_raddec(_raddec(2000), now=2000)
    device.handle_raddec(_raddec(1000), now=2100)

    assert [raddec.timestamp for raddec in device.raddecs] == [2000, 1000]
    assert device.disappearance_deadline == 2000 + 15_000


def test_history_pruned_relative_to_newest() -> None:
    device = _device()
    device.handle_raddec(_raddec(0), now=0)
    device.handle_raddec(_raddec(25_000), now=25_000)

    device.determine_events(26_000, lambda _event: None)

    assert [raddec.timestamp for raddec in device.raddecs] == [25_000]


def test_compile_windows() -> None:
    device = _device(decoding_compilation_ms=2000, packet_compilation_ms=5000)
    events: list[Raddec] = []
    device.handle_raddec(_raddec(0, receiver=RECEIVER_B, rssi=-40, packets=["old"]), now=0)
    device.handle_raddec(_raddec(4000, receiver=RECEIVER_A, rssi=-60, packets=["mid"]), now=4000)
    device.handle_raddec(_raddec(5000, receiver=RECEIVER_A, rssi=-70, packets=["new"]), now=5000)

    device.determine_events(6000, events.append)

    compiled = events[0]
    # 0 is 5000 ms older than the newest: packets only.
    assert [entry.receiver_id for entry in compiled.rssi_signature] == [RECEIVER_A]
    assert compiled.rssi_signature[0].rssi == -60
    assert compiled.packets == ["new", "mid", "old"]
    assert compiled.timestamp == 4000


def test_dynamb_newer_values_win_and_expire() -> None:
    device = _device(dynamb_freshness_ms=10_000)
    device.handle_raddec(_raddec(0), now=0)
    device.insert_dynamb(DynambCandidate(device_id="fee150bada55", device_id_type=2, timestamp=2000, temperature=21.0))
    device.insert_dynamb(
        DynambCandidate(device_id="fee150bada55", device_id_type=2, timestamp=1000, temperature=19.0, batteryPercentage=80)
    )

    dynamb = device.dynamb_snapshot(3000)
    assert dynamb == {
        "deviceId": "fee150bada55",
        "deviceIdType": 2,
        "timestamp": 2000,
        "temperature": 21.0,
        "batteryPercentage": 80,
    }

    # batteryPercentage (t=1000) expires before temperature (t=2000).
    assert device.dynamb_snapshot(11_500) == {
        "deviceId": "fee150bada55",
        "deviceIdType": 2,
        "timestamp": 2000,
        "temperature": 21.0,
    }
    assert device.dynamb_snapshot(12_000) is None


def test_statid_lists_are_unioned() -> None:
    device = _device()
    device.insert_statid(StatidCandidate(device_id="fee150bada55", device_id_type=2, uuids=["feaa"], name="a"))
    device.insert_statid(StatidCandidate(device_id="fee150bada55", device_id_type=2, uuids=["feaa", "fd6f"], name="b"))

    assert device.statid_snapshot() == {
        "deviceId": "fee150bada55",
        "deviceIdType": 2,
        "uuids": ["feaa", "fd6f"],
        "name": "b",
    }
