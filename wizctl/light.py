import logging
from typing import Any, Dict, Optional

from .constants import (
    DEFAULT_TIMEOUT,
    METHOD_GET_PILOT,
    METHOD_GET_SYSTEM_CONFIG,
    METHOD_REBOOT,
    METHOD_RESET,
    WIZ_PORT,
)
from .pilot import Pilot
from .protocol import make_message, send
from .retry import RetryPolicy
from .state import BulbConfig, LightState

_LOGGER = logging.getLogger(__name__)


class WizLight:
    """Controls a single light, identified by its ip address"""

    ip: str
    port: int
    timeout: float
    retry: Optional[RetryPolicy]
    logger: logging.Logger
    _cached_config: Optional[BulbConfig] = None

    def __init__(
        self,
        ip: str,
        port: int = WIZ_PORT,
        timeout: float = DEFAULT_TIMEOUT,
        retry: Optional[RetryPolicy] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.ip = ip
        self.port = port
        self.timeout = timeout
        self.retry = retry
        self.logger = logger or _LOGGER

    def __repr__(self):
        return f"WizLight({self.ip})"

    def __eq__(self, other):
        if not isinstance(other, WizLight):
            return NotImplemented
        return (self.ip, self.port) == (other.ip, other.port)

    def __hash__(self):
        return hash((self.ip, self.port))

    async def request(
        self, method: str, params: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """Sends method to the light and returns the raw reply"""
        return await self._send(make_message(method, params))

    async def _send(self, message: Dict[str, Any]) -> Dict[str, Any]:
        return await send(
            self.ip,
            message,
            port=self.port,
            timeout=self.timeout,
            retry=self.retry,
            logger=self.logger,
        )

    async def get_state(self) -> LightState:
        """Queries the current state of the light"""
        return LightState.from_json(await self.request(METHOD_GET_PILOT))

    async def get_system_config(self) -> BulbConfig:
        """Queries the system configuration (mac, module name, firmware).
        The result is cached; use clear_cache to fetch it again"""
        if self._cached_config is None:
            response = await self.request(METHOD_GET_SYSTEM_CONFIG)
            self._cached_config = BulbConfig.from_json(response)
        return self._cached_config

    def clear_cache(self):
        self._cached_config = None

    async def send_pilot(self, pilot: Pilot):
        """Applies all of the settings in pilot in a single request"""
        self.logger.debug("setPilot %s on %s", pilot, self.ip)
        await self._send(pilot.to_message())

    async def turn_on(self, brightness: Optional[int] = None):
        """Turns the light on, optionally setting the brightness too"""
        await self.send_pilot(Pilot(state=True, dimming=brightness))

    async def turn_off(self):
        await self.send_pilot(Pilot(state=False))

    async def toggle(self):
        """Flips the power state, based on the state reported by the light"""
        state = await self.get_state()
        if state.is_on:
            await self.turn_off()
        else:
            await self.turn_on()

    async def set_brightness(self, percent: int):
        await self.send_pilot(Pilot(dimming=percent))

    async def set_color(
        self, red: int, green: int, blue: int, brightness: Optional[int] = None
    ):
        await self.send_pilot(Pilot.rgb(red, green, blue, brightness))

    async def set_temperature(self, kelvin: int, brightness: Optional[int] = None):
        await self.send_pilot(Pilot(temperature=kelvin, dimming=brightness))

    async def set_scene(
        self,
        scene_id: int,
        brightness: Optional[int] = None,
        speed: Optional[int] = None,
    ):
        await self.send_pilot(
            Pilot(scene_id=scene_id, dimming=brightness, speed=speed)
        )

    async def set_speed(self, speed: int):
        """Sets the effect speed of the active dynamic scene"""
        await self.send_pilot(Pilot(speed=speed))

    async def set_white(
        self,
        cold_white: Optional[int] = None,
        warm_white: Optional[int] = None,
        brightness: Optional[int] = None,
    ):
        """Drives the white LEDs directly"""
        await self.send_pilot(
            Pilot(cold_white=cold_white, warm_white=warm_white, dimming=brightness)
        )

    async def reboot(self):
        await self.request(METHOD_REBOOT)

    async def reset(self):
        """Factory reset! The light will need to be set up again"""
        await self.request(METHOD_RESET)
