"""Core data models used across mapper, registry, transport and state manager."""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Union

PAGE_MARKER = "_page"


def device_key(device_id: str, page: str) -> str:
    """Return the stable composite key for a vendor element on a page."""
    if PAGE_MARKER in device_id:
        return device_id
    return f"{device_id}{PAGE_MARKER}{page}"


class DeviceType(str, Enum):
    LIGHT = "Light"
    DIMMER = "Dimmer"
    WINDOW_COVERING = "WindowCovering"
    TEMPERATURE_SENSOR = "TemperatureSensor"
    FAN = "Fan"
    SCENE = "Scene"
    SWITCH = "Switch"


class CoverMotion(str, Enum):
    STOPPED = "Stopped"
    OPENING = "Opening"
    CLOSING = "Closing"


@dataclass(frozen=True)
class OnOff:
    on: bool


@dataclass(frozen=True)
class Brightness:
    on: bool
    level: int

    def __post_init__(self) -> None:
        if not 0 <= self.level <= 255:
            raise ValueError(f"Brightness level must be within 0..255, got {self.level}")


@dataclass(frozen=True)
class CoverState:
    position: int
    motion: CoverMotion = CoverMotion.STOPPED

    def __post_init__(self) -> None:
        if not 0 <= self.position <= 100:
            raise ValueError(f"Cover position must be within 0..100, got {self.position}")


@dataclass(frozen=True)
class Temperature:
    celsius: float


@dataclass(frozen=True)
class FanSpeed:
    speed: int

    def __post_init__(self) -> None:
        if not 0 <= self.speed <= 255:
            raise ValueError(f"Fan speed must be within 0..255, got {self.speed}")


DeviceState = Union[OnOff, Brightness, CoverState, Temperature, FanSpeed]

_ON_OFF_TYPES = frozenset({DeviceType.LIGHT, DeviceType.SWITCH, DeviceType.SCENE, DeviceType.FAN})

# Fan keeps OnOff by default; FanSpeed is accepted for backends that report a speed.
_ALLOWED_STATES: dict[DeviceType, tuple[type, ...]] = {
    DeviceType.LIGHT: (OnOff,),
    DeviceType.SWITCH: (OnOff,),
    DeviceType.SCENE: (OnOff,),
    DeviceType.FAN: (OnOff, FanSpeed),
    DeviceType.DIMMER: (Brightness,),
    DeviceType.WINDOW_COVERING: (CoverState,),
    DeviceType.TEMPERATURE_SENSOR: (Temperature,),
}


def default_state(device_type: DeviceType) -> DeviceState:
    if device_type in _ON_OFF_TYPES:
        return OnOff(False)
    if device_type is DeviceType.DIMMER:
        return Brightness(on=False, level=0)
    if device_type is DeviceType.WINDOW_COVERING:
        return CoverState(position=0, motion=CoverMotion.STOPPED)
    if device_type is DeviceType.TEMPERATURE_SENSOR:
        return Temperature(0.0)
    raise ValueError(f"Unknown device type: {device_type!r}")


def state_is_on(state: DeviceState) -> bool:
    if isinstance(state, (OnOff, Brightness)):
        return state.on
    if isinstance(state, (CoverState, Temperature, FanSpeed)):
        return False
    raise TypeError(f"Unknown device state: {state!r}")


def state_with_on(state: DeviceState, value: bool) -> DeviceState:
    if isinstance(state, OnOff):
        return OnOff(value)
    if isinstance(state, Brightness):
        return Brightness(on=value, level=state.level)
    if isinstance(state, (CoverState, Temperature, FanSpeed)):
        return state
    raise TypeError(f"Unknown device state: {state!r}")


@dataclass(frozen=True)
class Device:
    id: str
    name: str
    device_type: DeviceType
    page: str
    index: str
    state: DeviceState

    @classmethod
    def create(
        cls,
        id: str,
        name: str,
        device_type: DeviceType,
        page: str,
        index: str,
    ) -> Device:
        return cls(
            id=id,
            name=name,
            device_type=device_type,
            page=page,
            index=index,
            state=default_state(device_type),
        )

    @property
    def key(self) -> str:
        return device_key(self.id, self.page)

    @property
    def is_on(self) -> bool:
        return state_is_on(self.state)

    def with_on(self, value: bool) -> Device:
        return replace(self, state=state_with_on(self.state, value))

    def with_state(self, state: DeviceState) -> Device:
        allowed = _ALLOWED_STATES[self.device_type]
        if not isinstance(state, allowed):
            raise TypeError(
                f"State {type(state).__name__} does not match device type {self.device_type.value}"
            )
        return replace(self, state=state)


@dataclass(frozen=True)
class RawDeviceDescriptor:
    id: str
    name: str
    page: str
    index: str
    type: DeviceType
    active: bool = False

    @property
    def key(self) -> str:
        return device_key(self.id, self.page)


@dataclass(frozen=True)
class CoverCommands:
    up: str
    stop: str
    down: str
