"""Shared fixtures: in-memory registries and a gateway that records deliveries."""

import threading
from typing import Any, Optional

import pytest

from talkpair.events import EventDispatcher
from talkpair.gateway import Gateway
from talkpair.matchmaker import Matchmaker
from talkpair.presence import PresenceRegistry
from talkpair.relay import SignalRelay
from talkpair.rooms import RoomDirectory


class RecordingGateway(Gateway):
    """Gateway that keeps every delivered message instead of sending it."""

    def __init__(self) -> None:
        self.sent: list[tuple[str, dict[str, Any]]] = []
        self.connected: set[str] = set()
        self.closed: list[str] = []
        self._lock = threading.Lock()

    def deliver(self, identity: str, message: dict[str, Any]) -> None:
        with self._lock:
            self.sent.append((identity, message))

    def is_connected(self, identity: str) -> bool:
        return identity in self.connected

    def close(self, identity: str) -> None:
        self.closed.append(identity)
        self.connected.discard(identity)

    def messages_for(self, identity: str, type: Optional[str] = None) -> list[dict[str, Any]]:
        return [
            message for to, message in self.sent
            if to == identity and (type is None or message["type"] == type)
        ]


class FakeClock:
    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def gateway() -> RecordingGateway:
    return RecordingGateway()


@pytest.fixture
def presence(clock: FakeClock) -> PresenceRegistry:
    return PresenceRegistry(clock=clock)


@pytest.fixture
def rooms(presence: PresenceRegistry) -> RoomDirectory:
    return RoomDirectory(presence)


@pytest.fixture
def matchmaker(presence: PresenceRegistry, rooms: RoomDirectory, gateway: RecordingGateway) -> Matchmaker:
    return Matchmaker(presence, rooms, gateway)


@pytest.fixture
def relay(rooms: RoomDirectory, gateway: RecordingGateway) -> SignalRelay:
    return SignalRelay(rooms, gateway)


@pytest.fixture
def dispatcher(matchmaker: Matchmaker, relay: SignalRelay) -> EventDispatcher:
    return EventDispatcher(matchmaker, relay)
