"""Constants for the Shelly RGBW2 white-channel engine."""

# Configuration keys
CONF_DEVICES = "devices"
CONF_ID = "id"
CONF_HOST = "host"
CONF_CHANNELS = "channels"
CONF_CHANNEL = "channel"
CONF_NAME = "name"
CONF_USERNAME = "username"
CONF_PASSWORD = "password"
CONF_POLL_INTERVAL = "poll_interval"
CONF_REQUEST_TIMEOUT_MS = "request_timeout_ms"
CONF_RETRIES = "retries"
CONF_TRANSITION_ON_MS = "transition_on_ms"
CONF_TRANSITION_OFF_MS = "transition_off_ms"
CONF_DEBOUNCE_MS = "debounce_ms"
CONF_REFRESH_COOLDOWN_MS = "refresh_cooldown_ms"

# The RGBW2 exposes four white outputs in white mode
CHANNEL_MIN = 0
CHANNEL_MAX = 3

BRIGHTNESS_MIN = 0
BRIGHTNESS_MAX = 100

DEFAULT_REQUEST_TIMEOUT_MS = 2500
DEFAULT_RETRIES = 1
# Linear backoff between transport attempts (seconds per attempt number)
RETRY_BACKOFF_STEP = 0.1

DEFAULT_DEBOUNCE_MS = 200
DEFAULT_REFRESH_COOLDOWN_MS = 500

# Poll interval is configured in seconds and bounded to keep the device responsive
DEFAULT_POLL_INTERVAL = 5
POLL_INTERVAL_MIN = 2
POLL_INTERVAL_MAX = 60
POLL_BACKOFF_MAX_MULTIPLIER = 4
POLL_DELAY_MAX = 30.0

# Notification attribute names
ATTR_ON = "on"
ATTR_BRIGHTNESS = "brightness"
