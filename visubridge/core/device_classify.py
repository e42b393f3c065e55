"""Device-type classification from visualization markup and labels."""

from __future__ import annotations

from visubridge.core.model import Device, DeviceType, RawDeviceDescriptor

_SLIDER_CLASS = "visu-slider"
_SHIFTER_CLASS = "visu-shifter"
_TEMPERATURE_TOKENS = ("temperatur", "temp.")
_SCENE_TOKENS = ("szene", "scene")
_FAN_TOKENS = ("lüftung", "lueftung", "ventilation")
_INFORMATIONAL_TOKENS = ("Datum", "Uhrzeit")


def _name_contains(name: str, tokens: tuple[str, ...]) -> bool:
    lower_name = name.lower()
    return any(token in lower_name for token in tokens)


def _has_class(classes: str, css_class: str) -> bool:
    return css_class in classes.split()


def classify_device_type(classes: str, name: str) -> DeviceType:
    """Map an element's CSS classes and label to a device type.

    Labels win over markup for sensors, markup wins for dimmers and covers,
    anything unrecognised is treated as a light.
    """
    if _name_contains(name, _TEMPERATURE_TOKENS):
        return DeviceType.TEMPERATURE_SENSOR
    if _has_class(classes, _SLIDER_CLASS):
        return DeviceType.DIMMER
    if _has_class(classes, _SHIFTER_CLASS):
        return DeviceType.WINDOW_COVERING
    if _name_contains(name, _SCENE_TOKENS):
        return DeviceType.SCENE
    if _name_contains(name, _FAN_TOKENS):
        return DeviceType.FAN
    return DeviceType.LIGHT


def is_informational(name: str) -> bool:
    """Date and clock tiles are shown in the UI but are not devices."""
    return any(token in name for token in _INFORMATIONAL_TOKENS)


def device_from_descriptor(descriptor: RawDeviceDescriptor) -> Device:
    device = Device.create(
        id=descriptor.id,
        name=descriptor.name,
        device_type=descriptor.type,
        page=descriptor.page,
        index=descriptor.index,
    )
    return device.with_on(descriptor.active)
