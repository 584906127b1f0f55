"""
Projectors receive state slices from the session manager.

A projector applies a slice to some presentation layer (a Home Assistant
entity, a log, stdout). Projectors never call back into the manager and
their return values are ignored.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Optional, TextIO

from .models import NowPlayingState, PlayerControlState

_LOGGER = logging.getLogger(__name__)


class NowPlayingProjector:
    """Receives the now-playing slice after every status update."""

    def update(self, state: NowPlayingState) -> None:
        raise NotImplementedError


class PlayerControlsProjector:
    """Receives the player-control slice after every status update."""

    def update(self, state: PlayerControlState) -> None:
        raise NotImplementedError


class SpeakerProjector:
    """Notified after every poll that the volume may have changed."""

    def tick(self) -> None:
        raise NotImplementedError


class LoggingProjector(NowPlayingProjector, PlayerControlsProjector, SpeakerProjector):
    """Logs every slice. Serves as all three projectors at once."""

    def __init__(self, name: str, logger: Optional[logging.Logger] = None) -> None:
        self.name = name
        self._logger = logger or _LOGGER

    def update(self, state: Any) -> None:
        if isinstance(state, NowPlayingState):
            self._logger.info(
                "[%s] Now playing: %s - %s (%s) [%s]",
                self.name,
                state.artist,
                state.track,
                state.album,
                state.player_state.name.lower(),
            )
        else:
            self._logger.debug("[%s] Player state: %s", self.name, state.player_state.name.lower())

    def tick(self) -> None:
        self._logger.debug("[%s] Speaker state may have changed", self.name)


class JsonLinesProjector(NowPlayingProjector, PlayerControlsProjector, SpeakerProjector):
    """
    Writes one JSON object per now-playing update (newline-delimited JSON).

    Player-control slices and speaker ticks carry nothing the now-playing
    line does not already have, so they produce no output.
    """

    def __init__(self, host: str, stream: Optional[TextIO] = None) -> None:
        self.host = host
        self._stream = stream or sys.stdout

    def update(self, state: Any) -> None:
        if not isinstance(state, NowPlayingState):
            return

        output = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "host": self.host,
            "now_playing": state.as_dict(),
        }
        self._stream.write(json.dumps(output, ensure_ascii=False) + "\n")
        self._stream.flush()

    def tick(self) -> None:
        pass
