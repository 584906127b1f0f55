"""DataUpdateCoordinator for the DACP integration.

This coordinator does NOT poll on an interval. It owns a
SessionLifecycleManager whose long-poll loop pushes state through the
projectors below, and entities are updated via async_set_updated_data().
"""
from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from typing import Any

import aiohttp

from homeassistant.const import CONF_HOST, CONF_NAME, CONF_PORT
from homeassistant.core import HomeAssistant
from homeassistant.helpers.update_coordinator import DataUpdateCoordinator
from homeassistant.util import dt as dt_util

from dacp_remote import (
    AccessoryConfig,
    DacpClient,
    DacpError,
    NowPlayingProjector,
    NowPlayingState,
    PlayerControlState,
    PlayerControlsProjector,
    PlayerState,
    ServerInfo,
    SessionLifecycleManager,
    SpeakerProjector,
)
from dacp_remote.const import FEATURE_VOLUME_CONTROL

from .const import (
    CONF_MAX_FAILURES,
    CONF_PAIRING,
    CONF_RESET_FAILURES_ON_SUCCESS,
    CONF_RETRY_DELAY,
    CONF_VOLUME_CONTROL,
    DEFAULT_NAME,
    DEFAULT_PORT,
    DOMAIN,
)

_LOGGER = logging.getLogger(__name__)


def build_accessory_config(data: Mapping[str, Any]) -> AccessoryConfig:
    """Translate config entry data into a validated AccessoryConfig."""
    raw: dict[str, Any] = {
        "name": data.get(CONF_NAME, DEFAULT_NAME),
        "pairing": data[CONF_PAIRING],
        "host": data[CONF_HOST],
        "port": data.get(CONF_PORT, DEFAULT_PORT),
        "features": {FEATURE_VOLUME_CONTROL: data.get(CONF_VOLUME_CONTROL, True)},
    }
    for key in (CONF_RETRY_DELAY, CONF_MAX_FAILURES, CONF_RESET_FAILURES_ON_SUCCESS):
        if key in data:
            raw[key] = data[key]
    return AccessoryConfig.from_dict(raw)


class DacpCoordinator(DataUpdateCoordinator[dict[str, Any]]):
    """Coordinator holding the projected state of one DACP device.

    Data layout:
        {
            "now_playing": NowPlayingState | None,
            "player_state": PlayerState,
            "position_updated_at": datetime | None,
            "volume": int | None,
            "server_name": str | None,
        }
    """

    def __init__(
        self,
        hass: HomeAssistant,
        config: AccessoryConfig,
        session: aiohttp.ClientSession,
    ) -> None:
        """Initialize coordinator.

        Args:
            hass: Home Assistant instance
            config: Validated accessory configuration
            session: Shared aiohttp session
        """
        super().__init__(
            hass,
            _LOGGER,
            name=f"{DOMAIN} {config.name}",
            update_interval=None,  # NO POLLING - updates arrive via the long poll
        )

        self.config = config
        self.client = DacpClient(session)

        self._state: dict[str, Any] = {
            "now_playing": None,
            "player_state": PlayerState.UNKNOWN,
            "position_updated_at": None,
            "volume": None,
            "server_name": None,
        }
        self._volume_task: asyncio.Task | None = None

        self.manager = SessionLifecycleManager(
            self.client,
            config.name,
            config.pairing,
            CoordinatorNowPlayingProjector(self),
            CoordinatorPlayerControlsProjector(self),
            CoordinatorSpeakerProjector(self) if config.volume_control else None,
            connect_policy=config.connect_policy,
            failure_policy=config.failure_policy,
            reset_failures_on_success=config.reset_failures_on_success,
            on_connected=self._handle_connected,
            on_give_up=self._handle_give_up,
        )

    async def async_start(self) -> None:
        """Publish the empty initial state and start the session."""
        _LOGGER.info("Starting DACP session for %s at %s", self.config.name, self.config.endpoint)
        self.async_set_updated_data(dict(self._state))
        self.manager.service_up(self.config.endpoint)

    async def async_stop(self) -> None:
        """Stop the session and log out.

        Called during integration unload or HA shutdown.
        """
        _LOGGER.info("Shutting down DACP coordinator for %s", self.config.name)
        if self._volume_task and not self._volume_task.done():
            self._volume_task.cancel()
        await self.manager.shutdown()

    async def _async_update_data(self) -> dict[str, Any]:
        """Return the last pushed state; there is nothing to poll."""
        return dict(self._state)

    # ------------------------------------------------------------------
    # Projector targets
    # ------------------------------------------------------------------

    def apply_now_playing(self, state: NowPlayingState) -> None:
        self._state["now_playing"] = state
        self._state["position_updated_at"] = dt_util.utcnow()
        self.async_set_updated_data(dict(self._state))

    def apply_player_state(self, state: PlayerControlState) -> None:
        if state.player_state == self._state["player_state"]:
            return
        self._state["player_state"] = state.player_state
        self.async_set_updated_data(dict(self._state))

    def apply_volume(self, volume: int) -> None:
        if volume == self._state["volume"]:
            return
        self._state["volume"] = volume
        self.async_set_updated_data(dict(self._state))

    def request_volume_refresh(self) -> None:
        """Fetch the volume in the background unless a fetch is running."""
        if self._volume_task is not None and not self._volume_task.done():
            return
        self._volume_task = self.hass.async_create_task(self._async_refresh_volume())

    async def _async_refresh_volume(self) -> None:
        try:
            volume = await self.client.get_volume()
        except DacpError as err:
            # The client reports this on its error callback as well
            _LOGGER.debug("[%s] Volume refresh failed: %s", self.config.name, err)
            return
        self.apply_volume(volume)

    # ------------------------------------------------------------------
    # Session hooks
    # ------------------------------------------------------------------

    def _handle_connected(self, server_info: ServerInfo) -> None:
        self._state["server_name"] = server_info.name
        self.async_set_updated_data(dict(self._state))

    def _handle_give_up(self, cause: BaseException) -> None:
        """Mark all entities as unavailable."""
        self.last_update_success = False
        self.async_update_listeners()


class CoordinatorNowPlayingProjector(NowPlayingProjector):
    """Now-playing projector feeding the coordinator."""

    def __init__(self, coordinator: DacpCoordinator) -> None:
        self._coordinator = coordinator

    def update(self, state: NowPlayingState) -> None:
        self._coordinator.apply_now_playing(state)


class CoordinatorPlayerControlsProjector(PlayerControlsProjector):
    """Player-controls projector feeding the coordinator."""

    def __init__(self, coordinator: DacpCoordinator) -> None:
        self._coordinator = coordinator

    def update(self, state: PlayerControlState) -> None:
        self._coordinator.apply_player_state(state)


class CoordinatorSpeakerProjector(SpeakerProjector):
    """Speaker projector: every tick refreshes the volume."""

    def __init__(self, coordinator: DacpCoordinator) -> None:
        self._coordinator = coordinator

    def tick(self) -> None:
        self._coordinator.request_volume_refresh()
