"""Constants for the DACP integration."""

DOMAIN = "dacp"

# Configuration keys (name, host and port come from homeassistant.const)
CONF_PAIRING = "pairing"
CONF_VOLUME_CONTROL = "volume_control"
CONF_DATABASE_ID = "database_id"
CONF_RETRY_DELAY = "retry_delay"
CONF_MAX_FAILURES = "max_failures"
CONF_RESET_FAILURES_ON_SUCCESS = "reset_failures_on_success"

# Defaults
DEFAULT_NAME = "iTunes"
DEFAULT_PORT = 3689

# Zeroconf TXT record keys advertised by DACP servers
TXT_DATABASE_ID = "DbId"
TXT_LIBRARY_NAME = "CtlN"

# Entity platforms
PLATFORMS = ["media_player"]
