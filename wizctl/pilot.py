from dataclasses import dataclass, fields
from typing import Any, Dict, Optional

from .constants import METHOD_SET_PILOT
from .protocol import make_message
from .state import STATE_KEYS


@dataclass
class Pilot:
    """A set of settings to apply to a light in one setPilot request.
    Settings left as None are not sent"""

    state: Optional[bool] = None
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

    @staticmethod
    def rgb(red: int, green: int, blue: int, brightness: Optional[int] = None):
        return Pilot(red=red, green=green, blue=blue, dimming=brightness)

    def to_params(self) -> Dict[str, Any]:
        params: Dict[str, Any] = {}
        for field in fields(self):
            value = getattr(self, field.name)
            if value is not None:
                params[STATE_KEYS.get(field.name, field.name)] = value
        return params

    def to_message(self) -> Dict[str, Any]:
        return make_message(METHOD_SET_PILOT, self.to_params())

    def __repr__(self):
        return f"Pilot({self.to_params()})"
