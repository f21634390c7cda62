"""Unit tests for inbound event parsing and dispatch."""

import pytest

from talkpair.errors import InvalidRequest, InvalidState, NoActivePeer
from talkpair.events import (
    CancelSearch,
    Connect,
    Disconnect,
    EndCall,
    EventDispatcher,
    Heartbeat,
    Signal,
    StartSearch,
    parse_event,
)
from talkpair.presence import Status


@pytest.mark.parametrize(
    "data, expected",
    [
        ({"type": "start-search"}, StartSearch("a")),
        ({"type": "cancel-search"}, CancelSearch("a")),
        ({"type": "heartbeat"}, Heartbeat("a")),
        ({"type": "offer", "roomId": "r1", "payload": {"sdp": "x"}}, Signal("offer", "r1", "a", {"sdp": "x"})),
        ({"type": "candidate", "roomId": "r1", "payload": None}, Signal("candidate", "r1", "a", None)),
        ({"type": "end-call", "roomId": "r1"}, EndCall("r1", "a")),
        ({"type": "end-call"}, EndCall(None, "a")),
    ],
)
def test_parse_event(data: dict, expected) -> None:
    assert parse_event("a", data) == expected


@pytest.mark.parametrize(
    "data",
    [
        ["start-search"],
        {"type": "dance"},
        {},
        {"type": "offer", "payload": {}},
        {"type": "answer", "roomId": "", "payload": {}},
        {"type": "answer", "roomId": "r1"},
        {"type": "end-call", "roomId": 7},
    ],
)
def test_parse_event_rejects_bad_shapes(data) -> None:
    with pytest.raises(InvalidRequest):
        parse_event("a", data)


def test_full_call_through_dispatcher(dispatcher: EventDispatcher, gateway) -> None:
    dispatcher.dispatch(Connect("a"))
    assert not dispatcher.dispatch(StartSearch("a")).paired
    dispatcher.dispatch(Connect("b"))
    result = dispatcher.dispatch(StartSearch("b"))

    target = dispatcher.dispatch(Signal("offer", result.room_id, "a", {"sdp": "x"}))
    assert target == "b"
    assert gateway.messages_for("b", "offer")[0]["payload"] == {"sdp": "x"}

    dispatcher.dispatch(EndCall(result.room_id, "b"))
    assert gateway.messages_for("a", "call-ended")[0]["reason"] == "hangup"
    assert dispatcher.matchmaker.presence.get("a").status is Status.IDLE

    with pytest.raises(NoActivePeer):
        dispatcher.dispatch(Signal("answer", result.room_id, "b", {}))


def test_relayed_signal_refreshes_sender_activity(dispatcher: EventDispatcher, clock) -> None:
    for identity in ("a", "b"):
        dispatcher.dispatch(Connect(identity))
        dispatcher.dispatch(StartSearch(identity))
    room_id = dispatcher.matchmaker.rooms.room_of("a")
    clock.now += 90

    dispatcher.dispatch(Signal("candidate", room_id, "a", {"candidate": "c"}))

    assert dispatcher.matchmaker.presence.get("a").last_active == clock.now
    assert dispatcher.matchmaker.presence.get("b").last_active == clock.now - 90
    assert dispatcher.matchmaker.reap_stale(max_idle=60) == ["b"]


def test_end_call_by_non_member_is_rejected(dispatcher: EventDispatcher) -> None:
    for identity in ("a", "b", "c"):
        dispatcher.dispatch(Connect(identity))
    dispatcher.dispatch(StartSearch("a"))
    room_id = dispatcher.dispatch(StartSearch("b")).room_id

    with pytest.raises(InvalidRequest):
        dispatcher.dispatch(EndCall(room_id, "c"))
    assert dispatcher.matchmaker.rooms.get(room_id) is not None


def test_end_call_unknown_room_is_noop(dispatcher: EventDispatcher) -> None:
    dispatcher.dispatch(Connect("a"))

    assert dispatcher.dispatch(EndCall("gone", "a")) is None
    assert dispatcher.dispatch(EndCall(None, "a")) is None


def test_heartbeat_and_disconnect(dispatcher: EventDispatcher, clock) -> None:
    dispatcher.dispatch(Connect("a"))
    clock.now += 42

    entry = dispatcher.dispatch(Heartbeat("a"))
    assert entry.last_active == clock.now

    dispatcher.dispatch(Disconnect("a"))
    assert "a" not in dispatcher.matchmaker.presence


def test_cancel_search_requires_searching(dispatcher: EventDispatcher) -> None:
    dispatcher.dispatch(Connect("a"))

    with pytest.raises(InvalidState):
        dispatcher.dispatch(CancelSearch("a"))
