"""Static accessory configuration.

The configuration is a plain mapping (from YAML or a Home Assistant config
entry) validated with voluptuous:

    name: Living Room iTunes
    pairing: 0123456789ABCDEF
    host: 192.168.1.20
    port: 3689
    features:
      volume-control: false
"""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import voluptuous as vol
import yaml

from .const import (
    DEFAULT_CONNECT_RETRY_DELAY,
    DEFAULT_MAX_FAILURES,
    DEFAULT_PORT,
    DEFAULT_RETRY_DELAY,
    FEATURE_VOLUME_CONTROL,
    __version__,
)
from .models import Endpoint
from .retry import BoundedBackoffRetry, ImmediateRetry


CONF_NAME = "name"
CONF_PAIRING = "pairing"
CONF_HOST = "host"
CONF_PORT = "port"
CONF_SERVICE_NAME = "service_name"
CONF_VERSION = "version"
CONF_FEATURES = "features"
CONF_RETRY_DELAY = "retry_delay"
CONF_MAX_FAILURES = "max_failures"
CONF_CONNECT_RETRY_DELAY = "connect_retry_delay"
CONF_RESET_FAILURES_ON_SUCCESS = "reset_failures_on_success"

PAIRING_PATTERN = r"^[0-9A-Fa-f]{16}$"

FEATURES_SCHEMA = vol.Schema(
    {
        vol.Optional(FEATURE_VOLUME_CONTROL, default=True): vol.Boolean(),
    },
    extra=vol.ALLOW_EXTRA,
)

ACCESSORY_SCHEMA = vol.Schema(
    {
        vol.Required(CONF_NAME): vol.All(str, vol.Length(min=1)),
        vol.Required(CONF_PAIRING): vol.All(
            vol.Coerce(str), vol.Match(PAIRING_PATTERN, msg="pairing must be 16 hex characters")
        ),
        vol.Optional(CONF_HOST): vol.All(str, vol.Length(min=1)),
        vol.Optional(CONF_PORT, default=DEFAULT_PORT): vol.All(
            vol.Coerce(int), vol.Range(min=1, max=65535)
        ),
        vol.Optional(CONF_SERVICE_NAME): str,
        vol.Optional(CONF_VERSION, default=__version__): vol.Coerce(str),
        vol.Optional(CONF_FEATURES, default={}): FEATURES_SCHEMA,
        vol.Optional(CONF_RETRY_DELAY, default=DEFAULT_RETRY_DELAY): vol.All(
            vol.Coerce(float), vol.Range(min=0)
        ),
        vol.Optional(CONF_MAX_FAILURES, default=DEFAULT_MAX_FAILURES): vol.All(
            vol.Coerce(int), vol.Range(min=1)
        ),
        vol.Optional(CONF_CONNECT_RETRY_DELAY, default=DEFAULT_CONNECT_RETRY_DELAY): vol.All(
            vol.Coerce(float), vol.Range(min=0)
        ),
        vol.Optional(CONF_RESET_FAILURES_ON_SUCCESS, default=False): vol.Boolean(),
    },
    extra=vol.REMOVE_EXTRA,
)


@dataclass
class AccessoryConfig:
    """Validated accessory configuration."""

    name: str
    pairing: str
    host: str | None = None
    port: int = DEFAULT_PORT
    service_name: str | None = None
    version: str = __version__
    features: dict[str, Any] = field(default_factory=dict)
    retry_delay: float = DEFAULT_RETRY_DELAY
    max_failures: int = DEFAULT_MAX_FAILURES
    connect_retry_delay: float = DEFAULT_CONNECT_RETRY_DELAY
    reset_failures_on_success: bool = False

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AccessoryConfig":
        """Validate a raw mapping.

        Raises:
            vol.Invalid: If the mapping does not match ACCESSORY_SCHEMA
        """
        return cls(**ACCESSORY_SCHEMA(dict(data)))

    @property
    def volume_control(self) -> bool:
        return bool(self.features.get(FEATURE_VOLUME_CONTROL, True))

    @property
    def endpoint(self) -> Endpoint | None:
        """Configured endpoint, or None when discovery has to supply it."""
        if not self.host:
            return None
        return Endpoint(self.host, self.port)

    @property
    def connect_policy(self) -> ImmediateRetry:
        return ImmediateRetry(delay=self.connect_retry_delay)

    @property
    def failure_policy(self) -> BoundedBackoffRetry:
        return BoundedBackoffRetry(delay=self.retry_delay, max_failures=self.max_failures)


def load_config(path: str | Path) -> AccessoryConfig:
    """Load and validate a YAML configuration file.

    Raises:
        FileNotFoundError: If the file does not exist
        ValueError: If the file is not a YAML mapping or fails validation
    """
    config_path = Path(path)

    with open(config_path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f)

    if not isinstance(data, dict):
        raise ValueError(f"{config_path} must contain a YAML mapping")

    try:
        return AccessoryConfig.from_dict(data)
    except vol.Invalid as err:
        raise ValueError(f"Invalid configuration in {config_path}: {err}") from err
