"""Media player platform for DACP integration."""
from __future__ import annotations

import logging
from collections.abc import Awaitable
from typing import Any

from homeassistant.components.media_player import (
    MediaPlayerDeviceClass,
    MediaPlayerEntity,
    MediaPlayerEntityFeature,
    MediaPlayerState,
    MediaType,
)
from homeassistant.config_entries import ConfigEntry
from homeassistant.core import HomeAssistant
from homeassistant.exceptions import HomeAssistantError
from homeassistant.helpers.device_registry import DeviceInfo
from homeassistant.helpers.entity_platform import AddEntitiesCallback
from homeassistant.helpers.update_coordinator import CoordinatorEntity

from dacp_remote import DacpError, NowPlayingState, PlayerState
from dacp_remote.const import MANUFACTURER, MODEL, VOLUME_MAX

from .const import DOMAIN
from .coordinator import DacpCoordinator

_LOGGER = logging.getLogger(__name__)

PLAYER_CONTROL_FEATURES = (
    MediaPlayerEntityFeature.PLAY
    | MediaPlayerEntityFeature.PAUSE
    | MediaPlayerEntityFeature.NEXT_TRACK
    | MediaPlayerEntityFeature.PREVIOUS_TRACK
)

SPEAKER_FEATURES = MediaPlayerEntityFeature.VOLUME_SET | MediaPlayerEntityFeature.VOLUME_STEP

STATE_MAP = {
    PlayerState.PLAYING: MediaPlayerState.PLAYING,
    PlayerState.PAUSED: MediaPlayerState.PAUSED,
    PlayerState.STOPPED: MediaPlayerState.IDLE,
}


async def async_setup_entry(
    hass: HomeAssistant,
    entry: ConfigEntry,
    async_add_entities: AddEntitiesCallback,
) -> None:
    """Set up the DACP media player from config entry."""
    coordinator: DacpCoordinator = hass.data[DOMAIN][entry.entry_id]["coordinator"]
    async_add_entities([DacpMediaPlayer(coordinator, entry.entry_id)])


class DacpMediaPlayer(CoordinatorEntity[DacpCoordinator], MediaPlayerEntity):
    """Representation of a DACP-controlled player (iTunes, Music.app)."""

    _attr_has_entity_name = True
    _attr_name = None
    _attr_device_class = MediaPlayerDeviceClass.SPEAKER
    _attr_media_content_type = MediaType.MUSIC

    def __init__(self, coordinator: DacpCoordinator, unique_id: str) -> None:
        """Initialize the media player."""
        super().__init__(coordinator)
        config = coordinator.config

        self._attr_unique_id = f"dacp_{unique_id}"
        self._attr_supported_features = PLAYER_CONTROL_FEATURES
        if config.volume_control:
            self._attr_supported_features |= SPEAKER_FEATURES

        self._attr_device_info = DeviceInfo(
            identifiers={(DOMAIN, unique_id)},
            name=config.name,
            manufacturer=MANUFACTURER,
            model=MODEL,
            sw_version=config.version,
            hw_version=config.version,
        )

    @property
    def _now_playing(self) -> NowPlayingState | None:
        if not self.coordinator.data:
            return None
        return self.coordinator.data.get("now_playing")

    @property
    def state(self) -> MediaPlayerState | None:
        """Return the playback state."""
        if not self.coordinator.data:
            return None
        player_state = self.coordinator.data.get("player_state", PlayerState.UNKNOWN)
        return STATE_MAP.get(player_state, MediaPlayerState.ON)

    @property
    def media_title(self) -> str | None:
        return self._now_playing.track if self._now_playing else None

    @property
    def media_artist(self) -> str | None:
        return self._now_playing.artist if self._now_playing else None

    @property
    def media_album_name(self) -> str | None:
        return self._now_playing.album if self._now_playing else None

    @property
    def media_duration(self) -> float | None:
        """Return the track duration in seconds (DACP reports ms)."""
        if not self._now_playing or self._now_playing.duration is None:
            return None
        return self._now_playing.duration / 1000

    @property
    def media_position(self) -> float | None:
        """Return the elapsed time in seconds at the last update."""
        if not self._now_playing or self._now_playing.position is None:
            return None
        return self._now_playing.position / 1000

    @property
    def media_position_updated_at(self):
        if not self.coordinator.data:
            return None
        return self.coordinator.data.get("position_updated_at")

    @property
    def volume_level(self) -> float | None:
        """Return the volume (0..1)."""
        if not self.coordinator.config.volume_control or not self.coordinator.data:
            return None
        volume = self.coordinator.data.get("volume")
        return None if volume is None else volume / VOLUME_MAX

    async def async_media_play(self) -> None:
        """Start playback."""
        await self._async_call(self.coordinator.client.play(), "play")

    async def async_media_pause(self) -> None:
        await self._async_call(self.coordinator.client.pause(), "pause")

    async def async_media_play_pause(self) -> None:
        await self._async_call(self.coordinator.client.play_pause(), "play/pause")

    async def async_media_next_track(self) -> None:
        await self._async_call(self.coordinator.client.next_item(), "next track")

    async def async_media_previous_track(self) -> None:
        await self._async_call(self.coordinator.client.previous_item(), "previous track")

    async def async_set_volume_level(self, volume: float) -> None:
        """Set the volume (0..1)."""
        level = max(0, min(VOLUME_MAX, round(volume * VOLUME_MAX)))
        await self._async_call(self.coordinator.client.set_volume(level), "set volume")
        self.coordinator.apply_volume(level)

    async def _async_call(self, command: Awaitable[Any], description: str) -> None:
        """Await a client command, turning DACP errors into HomeAssistantError."""
        try:
            await command
        except DacpError as err:
            raise HomeAssistantError(
                f"{self.coordinator.config.name}: {description} failed: {err}"
            ) from err
