from types import MappingProxyType

VERSION = "0.2.0"

FMIP_SERVER = "fmipmobile.icloud.com"
FMIP_PORT = 443
FMIP_BASE_URL = f"https://{FMIP_SERVER}"

# Must match the iOS client byte-for-byte, the service rejects anything else.
DEFAULT_HEADERS = MappingProxyType({
    "Content-Type": "text/plain",
    "Accept": "application/json, text/javascript, */*; q=0.01",
    "Connection": "keep-alive",
    "Accept-Language": "en-US,en;q=0.9,cs;q=0.8",
    "Origin": "https://www.icloud.com",
    "X-Apple-Realm-Support": "1.0",
    "X-Apple-Find-API-Ver": "3.0",
    "User-Agent": "FindMyiPhone/500 CFNetwork/758.4.3 Darwin/15.5.0",
})

AUTH_SCHEME_HEADER = "X-Apple-AuthScheme"
AUTH_SCHEME_INIT = "UserIDGuest"
AUTH_SCHEME_REFRESH = "Forever"

ACTION_INIT = "initClient"
ACTION_REFRESH = "refreshClient"

# Polling (seconds)
REFRESH_INTERVAL = 15 * 60   # base period between refreshes
REFRESH_JITTER = 15          # upper bound of the random delay added to each period
REQUEST_TIMEOUT = 30
MAX_RETRIES = 0              # extra attempts on transport errors

# MQTT
DEFAULT_PREFIX = "owntracks"
DEFAULT_MQTT_PORT = 1883
DEFAULT_MQTTS_PORT = 8883
MQTT_QOS = 1
MQTT_CONNECT_TIMEOUT = 10
LWT_ONLINE = b"1"
LWT_OFFLINE = b"0"

CONFIG_NAMES = ("config.yaml", "config.yml")
CONFIG_DIRS = (".", "/etc/device-locator")
