"""Shared fixtures: an in-memory DACP client and recording projectors."""

from __future__ import annotations

import asyncio
from typing import Any, Callable

import pytest

from dacp_remote import (
    Endpoint,
    NowPlayingProjector,
    PlayerControlsProjector,
    ServerInfo,
    SpeakerProjector,
)

PAIRING = "0123456789ABCDEF"


def make_snapshot(**fields: Any) -> dict[str, Any]:
    """Build a decoded playstatusupdate response."""
    status = {"cmsr": 2, "caps": 4, "cann": "Song", "cana": "Artist", "canl": "Album"}
    status.update(fields)
    return {"cmst": status}


async def settle(rounds: int = 20) -> None:
    """Let scheduled tasks and callbacks run."""
    for _ in range(rounds):
        await asyncio.sleep(0)


class FakeDacpClient:
    """DacpClient stand-in driven by the test.

    Updates are fed through ``updates``: dicts are returned from
    get_update(), exceptions are raised from it.
    """

    def __init__(self) -> None:
        self.calls: list[str] = []
        self.login_errors: list[Exception] = []
        self.server_info_errors: list[Exception] = []
        self.server_info = ServerInfo(name="Test Library")
        self.updates: asyncio.Queue = asyncio.Queue()
        self.volume = 50
        self.last_caps = None
        self.logout_count = 0
        self.endpoints: list[Endpoint] = []
        self._ready_state_callbacks: list[Callable] = []
        self._error_callbacks: list[Callable] = []

    async def login(self, endpoint: Endpoint, pairing: str) -> None:
        self.calls.append("login")
        self.endpoints.append(endpoint)
        if self.login_errors:
            raise self.login_errors.pop(0)

    async def get_server_info(self) -> ServerInfo:
        self.calls.append("server_info")
        if self.server_info_errors:
            raise self.server_info_errors.pop(0)
        return self.server_info

    async def get_update(self) -> dict[str, Any]:
        self.calls.append("get_update")
        item = await self.updates.get()
        if isinstance(item, BaseException):
            raise item
        self.last_caps = (item.get("cmst") or {}).get("caps")
        return item

    async def get_volume(self) -> int:
        self.calls.append("get_volume")
        return self.volume

    async def play_pause(self) -> None:
        self.calls.append("play_pause")

    async def play(self) -> None:
        if self.last_caps != 4:
            await self.play_pause()

    async def logout(self) -> None:
        self.calls.append("logout")
        self.logout_count += 1

    async def close(self) -> None:
        await self.logout()

    def on_ready_state_changed(self, callback: Callable) -> Callable[[], None]:
        self._ready_state_callbacks.append(callback)
        return lambda: self._ready_state_callbacks.remove(callback)

    def on_error(self, callback: Callable) -> Callable[[], None]:
        self._error_callbacks.append(callback)
        return lambda: self._error_callbacks.remove(callback)

    def emit_error(self, error: Exception) -> None:
        for callback in list(self._error_callbacks):
            callback(error)


class RecordingProjector(NowPlayingProjector, PlayerControlsProjector, SpeakerProjector):
    """Appends (kind, payload) to a shared event list."""

    def __init__(self, kind: str, events: list) -> None:
        self.kind = kind
        self.events = events

    def update(self, state: Any) -> None:
        self.events.append((self.kind, state))

    def tick(self) -> None:
        self.events.append((self.kind, None))

    @property
    def states(self) -> list[Any]:
        return [state for kind, state in self.events if kind == self.kind]


@pytest.fixture
def client() -> FakeDacpClient:
    return FakeDacpClient()


@pytest.fixture
def events() -> list:
    return []


@pytest.fixture
def projectors(events):
    return (
        RecordingProjector("now_playing", events),
        RecordingProjector("player_controls", events),
        RecordingProjector("speaker", events),
    )


@pytest.fixture
def endpoint() -> Endpoint:
    return Endpoint("192.168.1.20", 3689)
