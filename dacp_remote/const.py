"""Constants for the DACP remote client and session manager."""

__version__ = "0.3.0"

DEFAULT_PORT = 3689

# Zeroconf service type advertised by DACP-capable players
SERVICE_TYPE = "_touch-able._tcp.local."

# Headers expected by iTunes / Music.app
CLIENT_DAAP_VERSION = "3.13"
VIEWER_ONLY_CLIENT = "1"

# Request timeout for everything except the long poll (seconds)
DEFAULT_REQUEST_TIMEOUT = 10.0

# Failure policy
DEFAULT_RETRY_DELAY = 120.0
DEFAULT_MAX_FAILURES = 5
DEFAULT_CONNECT_RETRY_DELAY = 0.0

# Volume range used by dmcp.volume
VOLUME_MIN = 0
VOLUME_MAX = 100

# Accessory information
MANUFACTURER = "DACP Remote"
MODEL = "DACP Accessory"
FEATURE_VOLUME_CONTROL = "volume-control"
