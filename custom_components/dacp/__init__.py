"""The DACP Remote integration.

Exposes an iTunes / Music.app library that speaks DACP as a media player.

Architecture:
    DacpCoordinator → SessionLifecycleManager → DacpClient → HTTP long poll

Configuration:
    Configured via UI (Settings → Devices & Services → Add Integration),
    zeroconf discovery (_touch-able._tcp) or a deprecated YAML section.
"""
from __future__ import annotations

import logging

import voluptuous as vol

from homeassistant import config_entries
from homeassistant.config_entries import ConfigEntry
from homeassistant.const import CONF_HOST, CONF_NAME, CONF_PORT
from homeassistant.core import HomeAssistant
from homeassistant.helpers import config_validation as cv
from homeassistant.helpers.aiohttp_client import async_get_clientsession

from dacp_remote.config import PAIRING_PATTERN
from dacp_remote.const import DEFAULT_MAX_FAILURES, DEFAULT_RETRY_DELAY

from .const import (
    CONF_MAX_FAILURES,
    CONF_PAIRING,
    CONF_RESET_FAILURES_ON_SUCCESS,
    CONF_RETRY_DELAY,
    CONF_VOLUME_CONTROL,
    DEFAULT_NAME,
    DEFAULT_PORT,
    DOMAIN,
    PLATFORMS,
)
from .coordinator import DacpCoordinator, build_accessory_config

_LOGGER = logging.getLogger(__name__)

DEVICE_SCHEMA = vol.Schema(
    {
        vol.Required(CONF_HOST): cv.string,
        vol.Required(CONF_PAIRING): vol.All(cv.string, vol.Match(PAIRING_PATTERN)),
        vol.Optional(CONF_NAME, default=DEFAULT_NAME): cv.string,
        vol.Optional(CONF_PORT, default=DEFAULT_PORT): cv.port,
        vol.Optional(CONF_VOLUME_CONTROL, default=True): cv.boolean,
        vol.Optional(CONF_RETRY_DELAY, default=DEFAULT_RETRY_DELAY): vol.All(
            vol.Coerce(float), vol.Range(min=0)
        ),
        vol.Optional(CONF_MAX_FAILURES, default=DEFAULT_MAX_FAILURES): cv.positive_int,
        vol.Optional(CONF_RESET_FAILURES_ON_SUCCESS, default=False): cv.boolean,
    }
)

# Configuration schema for YAML setup
CONFIG_SCHEMA = vol.Schema(
    {DOMAIN: vol.All(cv.ensure_list, [DEVICE_SCHEMA])},
    extra=vol.ALLOW_EXTRA,
)


async def async_setup(hass: HomeAssistant, config: dict) -> bool:
    """Import devices listed in configuration.yaml as config entries.

    YAML configuration is DEPRECATED - use the UI config flow instead.
    """
    if DOMAIN not in config:
        return True

    _LOGGER.warning(
        "DACP YAML configuration is deprecated. "
        "Your devices will be imported to the UI; please remove the 'dacp:' section "
        "from configuration.yaml afterwards."
    )

    for device in config[DOMAIN]:
        hass.async_create_task(
            hass.config_entries.flow.async_init(
                DOMAIN,
                context={"source": config_entries.SOURCE_IMPORT},
                data=dict(device),
            )
        )

    return True


async def async_setup_entry(hass: HomeAssistant, entry: ConfigEntry) -> bool:
    """Set up a DACP device from a config entry.

    Args:
        hass: Home Assistant instance
        entry: ConfigEntry created by config flow, discovery or YAML import

    Returns:
        True if setup succeeded
    """
    try:
        config = build_accessory_config(entry.data)
    except vol.Invalid as err:
        _LOGGER.error("Invalid DACP config entry %s: %s", entry.title, err)
        return False

    _LOGGER.info(
        "Setting up DACP integration: %s at %s (volume control %s)",
        config.name,
        config.endpoint,
        "on" if config.volume_control else "off",
    )

    coordinator = DacpCoordinator(hass, config, async_get_clientsession(hass))

    await coordinator.async_start()

    hass.data.setdefault(DOMAIN, {})
    hass.data[DOMAIN][entry.entry_id] = {
        "coordinator": coordinator,
        "host": config.host,
        "port": config.port,
    }

    await hass.config_entries.async_forward_entry_setups(entry, PLATFORMS)

    return True


async def async_unload_entry(hass: HomeAssistant, entry: ConfigEntry) -> bool:
    """Unload a config entry.

    Stops the session (service down) and logs out of the server.
    """
    entry_data = hass.data[DOMAIN].get(entry.entry_id)
    if entry_data:
        coordinator: DacpCoordinator | None = entry_data.get("coordinator")
        if coordinator:
            await coordinator.async_stop()

    unload_ok = await hass.config_entries.async_unload_platforms(entry, PLATFORMS)

    if unload_ok:
        hass.data[DOMAIN].pop(entry.entry_id, None)

    return unload_ok
