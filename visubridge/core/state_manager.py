"""Control semantics on top of the registry, command table and transport."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable, Sequence
from typing import Union

from visubridge.core.command_mapper import CommandMapper
from visubridge.core.device_classify import device_from_descriptor, is_informational
from visubridge.core.errors import (
    DeviceDiscoveryError,
    DeviceNotFoundError,
    InvalidPositionError,
    NoCommandMappingError,
    VisuBridgeError,
)
from visubridge.core.model import CoverMotion, CoverState, Device, DeviceType, RawDeviceDescriptor
from visubridge.core.registry import DeviceRegistry
from visubridge.transports.base import CommandTransport, Discovery

CLOSE_THRESHOLD = 10
OPEN_THRESHOLD = 90
DiscoverySource = Union[
    Discovery,
    Callable[[], Awaitable[Sequence[RawDeviceDescriptor]]],
    Iterable[RawDeviceDescriptor],
]
LOGGER = logging.getLogger(__name__)


def cover_action_for(position: int) -> tuple[str, CoverMotion]:
    """Discretize a requested position into the up/stop/down pulse to send."""
    if position <= CLOSE_THRESHOLD:
        return "down", CoverMotion.CLOSING
    if position >= OPEN_THRESHOLD:
        return "up", CoverMotion.OPENING
    return "stop", CoverMotion.STOPPED


class StateManager:
    def __init__(
        self,
        transport: CommandTransport,
        command_mapper: CommandMapper,
        *,
        registry: DeviceRegistry | None = None,
    ) -> None:
        self.transport = transport
        self.command_mapper = command_mapper
        self.registry = registry if registry is not None else DeviceRegistry()
        self._key_locks: dict[str, asyncio.Lock] = {}

    async def initialize(self, discovery: DiscoverySource) -> int:
        LOGGER.info("Initializing state manager")
        descriptors = await _run_discovery(discovery)

        devices: dict[str, Device] = {}
        for descriptor in descriptors:
            if is_informational(descriptor.name):
                LOGGER.debug("Skipping informational element: %s", descriptor.name)
                continue
            try:
                device = device_from_descriptor(descriptor)
            except (TypeError, ValueError) as exc:
                raise DeviceDiscoveryError(f"Invalid device descriptor {descriptor!r}: {exc}") from exc
            if device.key in devices:
                LOGGER.warning("Discovery returned %s twice; keeping the later entry", device.key)
            devices[device.key] = device

        self.registry.add_all(devices.values())
        for device in devices.values():
            LOGGER.info("Registered device: %s (%s) [key: %s]", device.name, device.id, device.key)
        LOGGER.info("Initialized %d devices", self.registry.count())
        return len(devices)

    def get_device(self, key: str) -> Device | None:
        return self.registry.get(key)

    def list_devices(self) -> list[Device]:
        return sorted(self.registry.all(), key=lambda d: d.key)

    async def toggle(self, key: str, desired_on: bool) -> None:
        async with self._lock_for(key):
            device = self._require(key)
            if device.is_on == desired_on:
                LOGGER.debug("Device %s [key: %s] already in desired state: %s", device.id, key, desired_on)
                return

            command = self.command_mapper.get_command(device.id, device.page)
            if command is None:
                detail = "read-only" if self.command_mapper.is_read_only(device.id, device.page) else None
                raise NoCommandMappingError(key, detail)

            LOGGER.info("Toggling device %s [key: %s] from %s to %s", device.id, key, device.is_on, desired_on)
            await self.transport.send_command(command)
            self.registry.update(key, lambda d: d.with_on(desired_on))

    async def set_cover_position(self, key: str, position: int) -> None:
        if isinstance(position, bool) or not isinstance(position, int) or not 0 <= position <= 100:
            raise InvalidPositionError(f"Cover position must be an integer within 0..100, got {position!r}")

        async with self._lock_for(key):
            device = self._require(key)
            if device.device_type is not DeviceType.WINDOW_COVERING:
                raise NoCommandMappingError(key, f"{device.device_type.value} is not a window covering")

            action, motion = cover_action_for(position)
            command = self.command_mapper.get_cover_command(device.id, device.page, action)
            if command is None:
                raise NoCommandMappingError(key, action)

            LOGGER.info("Setting cover %s [key: %s] to %d%% (command: %s)", device.id, key, position, action)
            await self.transport.send_command(command)
            self.registry.update(key, lambda d: d.with_state(CoverState(position=position, motion=motion)))

    def _require(self, key: str) -> Device:
        device = self.registry.get(key)
        if device is None:
            raise DeviceNotFoundError(key)
        return device

    def _lock_for(self, key: str) -> asyncio.Lock:
        if key not in self.registry:
            raise DeviceNotFoundError(key)
        lock = self._key_locks.get(key)
        if lock is None:
            lock = self._key_locks[key] = asyncio.Lock()
        return lock


async def _run_discovery(discovery: DiscoverySource) -> list[RawDeviceDescriptor]:
    if not hasattr(discovery, "discover_devices") and not callable(discovery):
        return list(discovery)
    try:
        if hasattr(discovery, "discover_devices"):
            descriptors = await discovery.discover_devices()
        else:
            descriptors = await discovery()
        return list(descriptors)
    except VisuBridgeError:
        raise
    except Exception as exc:
        raise DeviceDiscoveryError(f"Device discovery failed: {exc}") from exc
