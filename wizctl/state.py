from dataclasses import dataclass, fields
from typing import Any, Dict, Optional

from .constants import KEY_FW_VERSION, KEY_MAC, KEY_MODULE_NAME, KEY_RESULT

# Python attribute -> key used by the light
STATE_KEYS: Dict[str, str] = {
    "is_on": "state",
    "dimming": "dimming",
    "red": "r",
    "green": "g",
    "blue": "b",
    "cold_white": "c",
    "warm_white": "w",
    "temperature": "temp",
    "scene_id": "sceneId",
    "speed": "speed",
    "ratio": "ratio",
    "mac": "mac",
    "rssi": "rssi",
    "source": "src",
}


def _result_of(response: Dict[str, Any]) -> Dict[str, Any]:
    result = response.get(KEY_RESULT)
    if isinstance(result, dict):
        return result
    return response


@dataclass
class LightState:
    """The state of a light, as reported by getPilot"""

    is_on: bool = False
    dimming: Optional[int] = None
    red: Optional[int] = None
    green: Optional[int] = None
    blue: Optional[int] = None
    cold_white: Optional[int] = None
    warm_white: Optional[int] = None
    temperature: Optional[int] = None
    scene_id: Optional[int] = None
    speed: Optional[int] = None
    ratio: Optional[int] = None
    mac: Optional[str] = None
    rssi: Optional[int] = None
    source: Optional[str] = None

    @property
    def brightness(self) -> Optional[int]:
        return self.dimming

    @property
    def is_rgb_mode(self) -> bool:
        return None not in (self.red, self.green, self.blue)

    @property
    def is_temperature_mode(self) -> bool:
        return self.temperature is not None and not self.is_rgb_mode

    @property
    def is_scene_mode(self) -> bool:
        return self.scene_id is not None and self.scene_id > 0

    @property
    def is_white_mode(self) -> bool:
        return (
            (self.cold_white is not None or self.warm_white is not None)
            and not self.is_rgb_mode
            and not self.is_temperature_mode
        )

    @staticmethod
    def from_json(response: Dict[str, Any]) -> "LightState":
        """Decodes either a full reply, or just its result object"""
        result = _result_of(response)
        values = {attr: result.get(key) for attr, key in STATE_KEYS.items()}
        values["is_on"] = bool(values["is_on"])
        return LightState(**values)

    def to_json(self) -> Dict[str, Any]:
        """Returns the wire representation, omitting unset values"""
        data: Dict[str, Any] = {}
        for field in fields(self):
            value = getattr(self, field.name)
            if value is not None:
                data[STATE_KEYS[field.name]] = value
        return data


@dataclass
class BulbConfig:
    """System configuration of a light, as reported by getSystemConfig"""

    mac: Optional[str] = None
    module_name: Optional[str] = None
    fw_version: Optional[str] = None
    home_id: Optional[int] = None
    room_id: Optional[int] = None

    @staticmethod
    def from_json(response: Dict[str, Any]) -> "BulbConfig":
        result = _result_of(response)
        return BulbConfig(
            mac=result.get(KEY_MAC),
            module_name=result.get(KEY_MODULE_NAME),
            fw_version=result.get(KEY_FW_VERSION),
            home_id=result.get("homeId"),
            room_id=result.get("roomId"),
        )
