"""Config flow for the DACP Remote integration.

Flow Steps:
    user: name, host, port, pairing GUID and volume control
    zeroconf: a _touch-able._tcp service was found; ask for the pairing GUID
    import: migrate a configuration.yaml device

Every step except import validates the connection by logging in, reading
the server info and logging out again.
"""
from __future__ import annotations

import logging
from typing import Any

import voluptuous as vol

from homeassistant import config_entries
from homeassistant.const import CONF_HOST, CONF_NAME, CONF_PORT
from homeassistant.core import HomeAssistant
from homeassistant.data_entry_flow import FlowResult
from homeassistant.exceptions import HomeAssistantError
import homeassistant.helpers.config_validation as cv
from homeassistant.helpers.aiohttp_client import async_get_clientsession
from homeassistant.helpers.service_info.zeroconf import ZeroconfServiceInfo

from dacp_remote import (
    DacpAuthenticationError,
    DacpClient,
    DacpError,
    Endpoint,
    ServerInfo,
)
from dacp_remote.config import PAIRING_PATTERN

from .const import (
    CONF_DATABASE_ID,
    CONF_PAIRING,
    CONF_VOLUME_CONTROL,
    DEFAULT_NAME,
    DEFAULT_PORT,
    DOMAIN,
    TXT_DATABASE_ID,
    TXT_LIBRARY_NAME,
)

_LOGGER = logging.getLogger(__name__)

PAIRING_VALIDATOR = vol.All(cv.string, vol.Match(PAIRING_PATTERN))


def entry_unique_id(host: str, port: int) -> str:
    """Unique id shared by every config flow step."""
    return f"{host}:{port}"


class CannotConnect(HomeAssistantError):
    """The DACP server could not be reached."""


class InvalidAuth(HomeAssistantError):
    """The DACP server rejected the pairing GUID."""


async def validate_connection(
    hass: HomeAssistant, host: str, port: int, pairing: str
) -> ServerInfo:
    """Log in once to check host, port and pairing.

    Returns:
        Server info reported after login

    Raises:
        CannotConnect: If the server cannot be reached or misbehaves
        InvalidAuth: If the pairing is rejected
    """
    client = DacpClient(async_get_clientsession(hass))
    try:
        await client.login(Endpoint(host, port), pairing)
        server_info = await client.get_server_info()
    except DacpAuthenticationError as err:
        raise InvalidAuth(str(err)) from err
    except (DacpError, ValueError) as err:
        raise CannotConnect(str(err)) from err
    finally:
        await client.logout()

    _LOGGER.info("DACP validation successful: %s at %s:%d", server_info.name, host, port)
    return server_info


class DacpConfigFlow(config_entries.ConfigFlow, domain=DOMAIN):
    """Handle a config flow for DACP Remote."""

    VERSION = 1

    def __init__(self) -> None:
        """Initialize the flow."""
        self._discovered: dict[str, Any] = {}

    async def _async_validate(self, data: dict[str, Any]) -> tuple[ServerInfo | None, dict[str, str]]:
        errors: dict[str, str] = {}
        try:
            server_info = await validate_connection(
                self.hass, data[CONF_HOST], data[CONF_PORT], data[CONF_PAIRING]
            )
        except InvalidAuth:
            errors["base"] = "invalid_auth"
        except CannotConnect as err:
            _LOGGER.warning("Cannot connect to DACP server: %s", err)
            errors["base"] = "cannot_connect"
        except Exception:
            _LOGGER.exception("Unexpected error in config flow")
            errors["base"] = "unknown"
        else:
            return server_info, errors
        return None, errors

    async def async_step_user(
        self, user_input: dict[str, Any] | None = None
    ) -> FlowResult:
        """Handle manual setup."""
        errors: dict[str, str] = {}

        if user_input is not None:
            await self.async_set_unique_id(entry_unique_id(user_input[CONF_HOST], user_input[CONF_PORT]))
            self._abort_if_unique_id_configured()

            server_info, errors = await self._async_validate(user_input)
            if not errors:
                return self.async_create_entry(
                    title=user_input[CONF_NAME] or server_info.name or DEFAULT_NAME,
                    data=user_input,
                )

        data_schema = vol.Schema(
            {
                vol.Required(CONF_NAME, default=DEFAULT_NAME): cv.string,
                vol.Required(CONF_HOST): cv.string,
                vol.Required(CONF_PORT, default=DEFAULT_PORT): cv.port,
                vol.Required(CONF_PAIRING): PAIRING_VALIDATOR,
                vol.Optional(CONF_VOLUME_CONTROL, default=True): cv.boolean,
            }
        )

        return self.async_show_form(
            step_id="user",
            data_schema=data_schema,
            errors=errors,
        )

    async def async_step_zeroconf(
        self, discovery_info: ZeroconfServiceInfo
    ) -> FlowResult:
        """Handle a discovered _touch-able._tcp service.

        Entries are keyed by host:port like manual ones. The library's
        database id is stored alongside, so a known device that moved to a
        new host or port gets its entry rekeyed and reloaded, which restarts
        the session there.
        """
        host = discovery_info.host
        port = discovery_info.port or DEFAULT_PORT
        properties = discovery_info.properties
        database_id = properties.get(TXT_DATABASE_ID)
        name = properties.get(TXT_LIBRARY_NAME) or discovery_info.name.split(".")[0]
        unique_id = entry_unique_id(host, port)

        _LOGGER.debug("Discovered DACP service %s at %s:%d", name, host, port)

        if database_id:
            for entry in self._async_current_entries(include_ignore=False):
                if entry.data.get(CONF_DATABASE_ID) == database_id and entry.unique_id != unique_id:
                    _LOGGER.info("DACP library %s moved to %s", name, unique_id)
                    return self.async_update_reload_and_abort(
                        entry,
                        unique_id=unique_id,
                        data_updates={CONF_HOST: host, CONF_PORT: port},
                        reason="already_configured",
                    )

        await self.async_set_unique_id(unique_id)
        self._abort_if_unique_id_configured(
            updates={CONF_DATABASE_ID: database_id} if database_id else None
        )

        self._discovered = {CONF_NAME: name, CONF_HOST: host, CONF_PORT: port}
        if database_id:
            self._discovered[CONF_DATABASE_ID] = database_id
        self.context["title_placeholders"] = {"name": name}
        return await self.async_step_zeroconf_confirm()

    async def async_step_zeroconf_confirm(
        self, user_input: dict[str, Any] | None = None
    ) -> FlowResult:
        """Ask for the pairing GUID of a discovered device."""
        errors: dict[str, str] = {}

        if user_input is not None:
            data = {**self._discovered, **user_input}
            _, errors = await self._async_validate(data)
            if not errors:
                return self.async_create_entry(title=data[CONF_NAME], data=data)

        return self.async_show_form(
            step_id="zeroconf_confirm",
            data_schema=vol.Schema(
                {
                    vol.Required(CONF_PAIRING): PAIRING_VALIDATOR,
                    vol.Optional(CONF_VOLUME_CONTROL, default=True): cv.boolean,
                }
            ),
            description_placeholders={
                "name": self._discovered[CONF_NAME],
                "host": self._discovered[CONF_HOST],
            },
            errors=errors,
        )

    async def async_step_import(self, import_data: dict[str, Any]) -> FlowResult:
        """Handle import from YAML configuration.

        The connection is not validated: a device that is switched off
        during startup must still be migrated.
        """
        _LOGGER.info("Importing DACP device %s from YAML", import_data[CONF_HOST])

        await self.async_set_unique_id(entry_unique_id(import_data[CONF_HOST], import_data[CONF_PORT]))
        self._abort_if_unique_id_configured()

        return self.async_create_entry(
            title=import_data.get(CONF_NAME, DEFAULT_NAME),
            data=import_data,
        )
