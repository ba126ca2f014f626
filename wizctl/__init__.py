import logging

from .constants import (
    DEFAULT_BROADCAST_ADDRESS,
    DEFAULT_DISCOVERY_TIMEOUT,
    DEFAULT_TIMEOUT,
    WIZ_PORT,
)
from .discovery import (
    DEFAULT_DISCOVERY_RETRY,
    DiscoveredLight,
    DiscoveryCollector,
    discover,
    discover_on_all_interfaces,
)
from .exceptions import (
    WizConnectionError,
    WizError,
    WizMethodNotFoundError,
    WizResponseError,
    WizTimeoutError,
)
from .group import (
    GroupOperationResult,
    get_states,
    run_on_all,
    send_pilot_all,
    set_brightness_all,
    set_color_all,
    set_scene_all,
    set_speed_all,
    set_temperature_all,
    toggle_all,
    turn_off_all,
    turn_on_all,
)
from .light import WizLight
from .pilot import Pilot
from .protocol import DEFAULT_SEND_RETRY, make_message, send
from .retry import RetryPolicy, RetryStrategy
from .state import BulbConfig, LightState
from .transport import WizTransport

# Silent unless the application configures logging
logging.getLogger(__name__).addHandler(logging.NullHandler())
