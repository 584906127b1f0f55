"""Translate decoded playstatusupdate responses into state slices."""

from typing import Any, Optional

from .exceptions import MalformedSnapshotError
from .models import NowPlayingState, PlayerControlState, PlayerState

STATUS_TAG = "cmst"


def get_status(snapshot: Any) -> Optional[dict[str, Any]]:
    """
    Extract the current-status record from a snapshot.

    Returns:
        The ``cmst`` dict, or None if the snapshot has none

    Raises:
        MalformedSnapshotError: If the snapshot or the record is not a dict
    """
    if not isinstance(snapshot, dict):
        raise MalformedSnapshotError(f"Snapshot is not a field dictionary: {snapshot!r}")

    status = snapshot.get(STATUS_TAG)
    if status is None:
        return None
    if not isinstance(status, dict):
        raise MalformedSnapshotError(f"'{STATUS_TAG}' is not a container: {status!r}")
    return status


def _optional_int(status: dict[str, Any], tag: str) -> Optional[int]:
    value = status.get(tag)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise MalformedSnapshotError(f"'{tag}' is not an integer: {value!r}")
    return value


def _optional_str(status: dict[str, Any], tag: str) -> Optional[str]:
    value = status.get(tag)
    if value is None or isinstance(value, str):
        return value
    raise MalformedSnapshotError(f"'{tag}' is not a string: {value!r}")


def player_state(status: dict[str, Any]) -> PlayerState:
    """Read ``caps``; unknown or missing values map to PlayerState.UNKNOWN."""
    caps = _optional_int(status, "caps")
    return PlayerState(caps) if caps is not None else PlayerState.UNKNOWN


def now_playing(status: dict[str, Any]) -> NowPlayingState:
    """
    Build the now-playing slice.

    ``position`` is ``cast - cant`` (total time minus remaining time) and is
    None unless both are present.
    """
    duration = _optional_int(status, "cast")
    remaining = _optional_int(status, "cant")
    position = duration - remaining if duration is not None and remaining is not None else None

    return NowPlayingState(
        track=_optional_str(status, "cann"),
        album=_optional_str(status, "canl"),
        artist=_optional_str(status, "cana"),
        position=position,
        duration=duration,
        player_state=player_state(status),
    )


def player_controls(status: dict[str, Any]) -> PlayerControlState:
    """Build the player-control slice."""
    return PlayerControlState(player_state=player_state(status))
