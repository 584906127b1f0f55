"""
Data models for the DACP remote session.

The DACP server reports playback state as DMAP field dictionaries. These
models hold the pieces the session manager and its projectors work with.
"""

from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import Any, Optional

from .const import DEFAULT_PORT
from .exceptions import DacpProtocolError


class PlayerState(IntEnum):
    """Playback state as reported in the ``caps`` field."""

    UNKNOWN = 0
    STOPPED = 2
    PAUSED = 3
    PLAYING = 4

    @classmethod
    def _missing_(cls, value):
        return cls.UNKNOWN


class ReadyState(Enum):
    """Connection state of a DacpClient."""

    CLOSED = "closed"
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSING = "closing"


class SessionPhase(Enum):
    """Phase of a SessionLifecycleManager. Exactly one is current."""

    IDLE = "idle"
    CONNECTING = "connecting"
    POLLING = "polling"
    WAITING_TO_RETRY = "waiting_to_retry"
    HALTED = "halted"
    STOPPED = "stopped"


@dataclass(frozen=True)
class Endpoint:
    """
    Network location of a DACP server, as learned from discovery.

    Attributes:
        host: Hostname or IP address
        port: TCP port (iTunes listens on 3689)
    """

    host: str
    port: int = DEFAULT_PORT

    def __post_init__(self):
        """Validate endpoint after initialization."""
        if not self.host:
            raise ValueError("Endpoint host must not be empty")
        if not (1 <= self.port <= 65535):
            raise ValueError(f"Invalid port: {self.port} (must be 1-65535)")

    @property
    def base_url(self) -> str:
        """Get the HTTP base URL of the server."""
        return f"http://{self}"

    def __str__(self) -> str:
        return f"{self.host}:{self.port}"


@dataclass(frozen=True)
class ServerInfo:
    """
    Identity advertised by ``/server-info``.

    Only used for logging; nothing depends on its content.
    """

    name: Optional[str]
    dmap_version: Optional[str] = None
    daap_version: Optional[str] = None

    @classmethod
    def from_response(cls, response: dict[str, Any]) -> "ServerInfo":
        """
        Build from a decoded ``msrv`` response.

        Raises:
            DacpProtocolError: If ``msrv`` is not a single container
        """
        msrv = response.get("msrv") or {}
        if not isinstance(msrv, dict):
            raise DacpProtocolError(f"Unexpected server-info record: {msrv!r}")
        return cls(
            name=msrv.get("minm"),
            dmap_version=msrv.get("mpro"),
            daap_version=msrv.get("apro"),
        )


@dataclass(frozen=True)
class NowPlayingState:
    """
    Now-playing slice derived from one ``cmst`` status record.

    Times are in milliseconds, as DACP reports them.

    Attributes:
        track: Track name (``cann``)
        album: Album name (``canl``)
        artist: Artist name (``cana``)
        position: Elapsed time, ``cast - cant``
        duration: Total track time (``cast``)
        player_state: Playback state (``caps``)
    """

    track: Optional[str]
    album: Optional[str]
    artist: Optional[str]
    position: Optional[int]
    duration: Optional[int]
    player_state: PlayerState

    def as_dict(self) -> dict[str, Any]:
        """Serialize for JSON output."""
        return {
            "track": self.track,
            "album": self.album,
            "artist": self.artist,
            "position": self.position,
            "duration": self.duration,
            "player_state": self.player_state.name.lower(),
        }


@dataclass(frozen=True)
class PlayerControlState:
    """Player-control slice: just the playback state."""

    player_state: PlayerState

    def as_dict(self) -> dict[str, Any]:
        return {"player_state": self.player_state.name.lower()}
