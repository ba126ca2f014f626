import asyncio
from dataclasses import dataclass
import logging
from typing import Awaitable, Callable, Dict, List, Optional

from .light import WizLight
from .pilot import Pilot
from .state import LightState

_LOGGER = logging.getLogger(__name__)

# Something to do to one light
LightOperation = Callable[[WizLight], Awaitable[object]]


@dataclass
class GroupOperationResult:
    """The result of a group operation on one light"""

    light: WizLight
    success: bool
    error: Optional[Exception] = None

    def __repr__(self):
        if self.success:
            return f"GroupOperationResult({self.light.ip}: success)"
        return f"GroupOperationResult({self.light.ip}: failed: {self.error})"


async def run_on_all(
    lights: List[WizLight], operation: LightOperation
) -> List[GroupOperationResult]:
    """Runs operation on all of the lights in parallel. A light that
    fails doesn't affect the others; its error is reported in its
    result. Results are in the same order as lights"""

    async def run_one(light: WizLight) -> GroupOperationResult:
        try:
            await operation(light)
            return GroupOperationResult(light, True)
        except Exception as exc:  # pylint: disable=broad-except
            _LOGGER.debug("group operation failed on %s", light.ip, exc_info=exc)
            return GroupOperationResult(light, False, exc)

    return list(await asyncio.gather(*(run_one(light) for light in lights)))


async def send_pilot_all(
    lights: List[WizLight], pilot: Pilot
) -> List[GroupOperationResult]:
    return await run_on_all(lights, lambda light: light.send_pilot(pilot))


async def turn_on_all(
    lights: List[WizLight], brightness: Optional[int] = None
) -> List[GroupOperationResult]:
    return await run_on_all(lights, lambda light: light.turn_on(brightness))


async def turn_off_all(lights: List[WizLight]) -> List[GroupOperationResult]:
    return await run_on_all(lights, lambda light: light.turn_off())


async def toggle_all(lights: List[WizLight]) -> List[GroupOperationResult]:
    return await run_on_all(lights, lambda light: light.toggle())


async def set_brightness_all(
    lights: List[WizLight], percent: int
) -> List[GroupOperationResult]:
    return await run_on_all(lights, lambda light: light.set_brightness(percent))


async def set_color_all(
    lights: List[WizLight],
    red: int,
    green: int,
    blue: int,
    brightness: Optional[int] = None,
) -> List[GroupOperationResult]:
    return await run_on_all(
        lights, lambda light: light.set_color(red, green, blue, brightness)
    )


async def set_temperature_all(
    lights: List[WizLight], kelvin: int, brightness: Optional[int] = None
) -> List[GroupOperationResult]:
    return await run_on_all(
        lights, lambda light: light.set_temperature(kelvin, brightness)
    )


async def set_scene_all(
    lights: List[WizLight],
    scene_id: int,
    brightness: Optional[int] = None,
    speed: Optional[int] = None,
) -> List[GroupOperationResult]:
    return await run_on_all(
        lights, lambda light: light.set_scene(scene_id, brightness, speed)
    )


async def set_speed_all(
    lights: List[WizLight], speed: int
) -> List[GroupOperationResult]:
    return await run_on_all(lights, lambda light: light.set_speed(speed))


async def get_states(lights: List[WizLight]) -> Dict[WizLight, Optional[LightState]]:
    """Queries all of the lights in parallel. Lights that could not be
    queried map to None"""

    async def get_one(light: WizLight) -> Optional[LightState]:
        try:
            return await light.get_state()
        except Exception as exc:  # pylint: disable=broad-except
            _LOGGER.debug("unable to get state of %s", light.ip, exc_info=exc)
            return None

    states = await asyncio.gather(*(get_one(light) for light in lights))
    return dict(zip(lights, states))
