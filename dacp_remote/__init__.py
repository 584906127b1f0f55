"""DACP remote bridge.

Keeps a long-poll control session with an iTunes / Music.app DACP server
and forwards now-playing, player state and volume changes to projectors.

Architecture:
    SessionLifecycleManager → DacpClient (aiohttp) → HTTP/DMAP → DACP server
                            → projectors (Home Assistant entities, CLI output)
"""

from .client import DacpClient
from .config import AccessoryConfig, load_config
from .const import __version__
from .exceptions import (
    DacpAuthenticationError,
    DacpConnectionError,
    DacpError,
    DacpNotLoggedInError,
    DacpProtocolError,
    DmapDecodeError,
    MalformedSnapshotError,
)
from .models import (
    Endpoint,
    NowPlayingState,
    PlayerControlState,
    PlayerState,
    ReadyState,
    ServerInfo,
    SessionPhase,
)
from .projectors import NowPlayingProjector, PlayerControlsProjector, SpeakerProjector
from .retry import BoundedBackoffRetry, ImmediateRetry
from .session import SessionLifecycleManager

__all__ = [
    "AccessoryConfig",
    "BoundedBackoffRetry",
    "DacpAuthenticationError",
    "DacpClient",
    "DacpConnectionError",
    "DacpError",
    "DacpNotLoggedInError",
    "DacpProtocolError",
    "DmapDecodeError",
    "Endpoint",
    "ImmediateRetry",
    "MalformedSnapshotError",
    "NowPlayingProjector",
    "NowPlayingState",
    "PlayerControlState",
    "PlayerControlsProjector",
    "PlayerState",
    "ReadyState",
    "ServerInfo",
    "SessionLifecycleManager",
    "SessionPhase",
    "SpeakerProjector",
    "__version__",
    "load_config",
]
