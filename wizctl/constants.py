# See:
# https://github.com/sbidy/pywizlight

WIZ_PORT = 38899

# Per-attempt timeout for point-to-point requests
DEFAULT_TIMEOUT = 3.0
# Total window for broadcast discovery
DEFAULT_DISCOVERY_TIMEOUT = 10.0

MAX_SEND_DATAGRAMS = 6
FIRST_SEND_INTERVAL = 0.75
FIRST_DISCOVERY_INTERVAL = 0.5
DISCOVERY_RETRIES = 5
MAX_BACKOFF = 3.0

# How long send() waits for a result after its attempt loop has finished
RESULT_GRACE_PERIOD = 1.0

METHOD_GET_PILOT = "getPilot"
METHOD_SET_PILOT = "setPilot"
METHOD_REGISTRATION = "registration"
METHOD_GET_SYSTEM_CONFIG = "getSystemConfig"
METHOD_REBOOT = "reboot"
METHOD_RESET = "reset"

KEY_METHOD = "method"
KEY_PARAMS = "params"
KEY_RESULT = "result"
KEY_ERROR = "error"
KEY_CODE = "code"
KEY_MESSAGE = "message"
KEY_MAC = "mac"
KEY_MODULE_NAME = "moduleName"
KEY_FW_VERSION = "fwVersion"

ERROR_CODE_METHOD_NOT_FOUND = -32601

# The bulbs don't check these, but they insist on their presence
DISCOVERY_PHONE_MAC = "AAAAAAAAAAAA"
DISCOVERY_PHONE_IP = "1.2.3.4"
DEFAULT_BROADCAST_ADDRESS = "255.255.255.255"
