"""Stable public API for building adapters on top of visubridge.

This module is the supported integration surface for REST adapters and
scripts. Avoid importing from private/internal modules unless intentionally
depending on non-stable internals.
"""

from __future__ import annotations

from typing import Any

from aiohttp import ClientSession

from visubridge.core.command_mapper import READONLY, CommandMapper, load_mappings
from visubridge.core.config import Settings, load_settings
from visubridge.core.discovery import PagedDiscovery, PageParser
from visubridge.core.errors import (
    AuthenticationFailedError,
    AuthError,
    ConfigError,
    ControlError,
    CredentialsRejectedError,
    DeviceDiscoveryError,
    DeviceNotFoundError,
    DispatchError,
    InvalidPositionError,
    LoginPageError,
    LoginTimeoutError,
    MappingLoadError,
    MappingValidationError,
    NoCommandMappingError,
    TransportError,
    TransportStatusError,
    TransportTimeoutError,
    VisuBridgeError,
)
from visubridge.core.model import (
    Brightness,
    CoverCommands,
    CoverMotion,
    CoverState,
    Device,
    DeviceState,
    DeviceType,
    FanSpeed,
    OnOff,
    RawDeviceDescriptor,
    Temperature,
    device_key,
)
from visubridge.core.state_manager import DiscoverySource, StateManager
from visubridge.transports.base import Authenticator, BrowserDriver, CommandTransport, Discovery
from visubridge.transports.browser_login import BrowserLogin
from visubridge.transports.http import SessionedTransport

__all__ = [
    "VisuBridgeError",
    "ConfigError",
    "MappingLoadError",
    "MappingValidationError",
    "ControlError",
    "DeviceNotFoundError",
    "NoCommandMappingError",
    "InvalidPositionError",
    "DispatchError",
    "AuthenticationFailedError",
    "TransportError",
    "TransportStatusError",
    "TransportTimeoutError",
    "AuthError",
    "LoginPageError",
    "CredentialsRejectedError",
    "LoginTimeoutError",
    "DeviceDiscoveryError",
    "Device",
    "DeviceType",
    "DeviceState",
    "OnOff",
    "Brightness",
    "CoverState",
    "CoverMotion",
    "Temperature",
    "FanSpeed",
    "CoverCommands",
    "RawDeviceDescriptor",
    "READONLY",
    "CommandMapper",
    "load_mappings",
    "Settings",
    "load_settings",
    "device_key",
    "Authenticator",
    "BrowserDriver",
    "CommandTransport",
    "Discovery",
    "DiscoverySource",
    "PageParser",
    "PagedDiscovery",
    "BrowserLogin",
    "SessionedTransport",
    "StateManager",
    "device_info",
    "state_info",
    "error_status",
    "Client",
]


def state_info(state: DeviceState) -> dict[str, Any]:
    if isinstance(state, OnOff):
        return {"type": "onoff", "on": state.on}
    if isinstance(state, Brightness):
        return {"type": "brightness", "on": state.on, "level": state.level}
    if isinstance(state, CoverState):
        return {"type": "windowcovering", "position": state.position, "motion": state.motion.value}
    if isinstance(state, Temperature):
        return {"type": "temperature", "celsius": state.celsius}
    if isinstance(state, FanSpeed):
        return {"type": "fanspeed", "speed": state.speed}
    raise TypeError(f"Unknown device state: {state!r}")


def device_info(device: Device) -> dict[str, Any]:
    """JSON-ready view of a device for an outward-facing adapter."""
    return {
        "key": device.key,
        "id": device.id,
        "name": device.name,
        "device_type": device.device_type.value,
        "page": device.page,
        "state": state_info(device.state),
    }


def error_status(exc: BaseException) -> int:
    """HTTP status an adapter should answer with for a bridge error."""
    if isinstance(exc, DeviceNotFoundError):
        return 404
    if isinstance(exc, (NoCommandMappingError, InvalidPositionError)):
        return 422
    if isinstance(exc, (DispatchError, AuthError)):
        return 502
    return 500


class Client:
    """Public client for the command-and-state bridge.

    A `Client` wires the command table, the sessioned transport and the
    state manager together. Call `start()` once with a discovery source
    before issuing control requests.
    """

    def __init__(
        self,
        settings: Settings,
        *,
        authenticator: Authenticator | None = None,
        command_mapper: CommandMapper | None = None,
        transport: SessionedTransport | None = None,
        session: ClientSession | None = None,
    ) -> None:
        if transport is None:
            if authenticator is None:
                raise ValueError("Client needs an authenticator when no transport is given")
            transport = SessionedTransport.from_settings(settings, authenticator, session=session)
        self.settings = settings
        self._command_mapper = command_mapper
        self._transport = transport
        self._manager: StateManager | None = None

    @property
    def transport(self) -> SessionedTransport:
        return self._transport

    @property
    def manager(self) -> StateManager:
        if self._manager is None:
            raise VisuBridgeError("Client is not started; call start() first")
        return self._manager

    async def start(self, discovery: DiscoverySource) -> int:
        mapper = self._command_mapper
        if mapper is None:
            mapper = load_mappings(self.settings.mappings_path)
        await self._transport.ensure_session()
        manager = StateManager(self._transport, mapper)
        count = await manager.initialize(discovery)
        self._command_mapper = mapper
        self._manager = manager
        return count

    async def close(self) -> None:
        await self._transport.close()

    async def __aenter__(self) -> Client:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    def list_devices(self) -> list[Device]:
        return self.manager.list_devices()

    def get_device(self, key: str) -> Device | None:
        return self.manager.get_device(key)

    async def toggle(self, key: str, on: bool) -> None:
        await self.manager.toggle(key, on)

    async def set_cover_position(self, key: str, position: int) -> None:
        await self.manager.set_cover_position(key, position)

