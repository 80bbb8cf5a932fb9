"""Constants for the Larasocket client.

This module defines relay endpoints, protocol actions and timing defaults used
across the codebase.
"""

# Relay endpoints
DEFAULT_RELAY_HOST = "ws.larasocket.com"
DEFAULT_BROADCAST_URL = "https://larasocket.com/api/broadcast"

# Protocol actions
ACTION_LINK = "link"
ACTION_SUBSCRIBE = "subscribe"

# Health monitor: reconnect when nothing was received for this long (seconds)
DEFAULT_RECONNECT_TIMEOUT = 60.0
# Delay before retrying after a failed connection attempt (seconds)
DEFAULT_ERROR_RECONNECT_TIMEOUT = 60.0
# How often the health monitor compares the last activity with the timeout
DEFAULT_HEALTH_CHECK_INTERVAL = 1.0

# Transport-level connect/close timeouts (seconds)
DEFAULT_OPEN_TIMEOUT = 10.0
DEFAULT_CLOSE_TIMEOUT = 5.0

# Timeout for the broadcast HTTP call (seconds)
DEFAULT_BROADCAST_TIMEOUT = 30.0

# RFC 6455 close codes
WS_CLOSE_NORMAL = 1000
WS_CLOSE_GOING_AWAY = 1001

# Default client name used in log context
DEFAULT_CLIENT_NAME = "CLIENT"
