"""In-memory device registry keyed by composite device key."""

from __future__ import annotations

import threading
from collections.abc import Callable, Iterable

from visubridge.core.model import Device, device_key


class DeviceRegistry:
    """Owns every Device record.

    Records are frozen, so a lookup hands out the stored value itself and an
    update swaps the whole record under the lock.
    """

    def __init__(self) -> None:
        self._devices: dict[str, Device] = {}
        self._lock = threading.RLock()

    def add(self, device: Device) -> None:
        with self._lock:
            self._devices[device.key] = device

    def add_all(self, devices: Iterable[Device]) -> None:
        batch = {device.key: device for device in devices}
        with self._lock:
            self._devices.update(batch)

    def get(self, key: str) -> Device | None:
        with self._lock:
            return self._devices.get(key)

    def get_by_id_page(self, device_id: str, page: str) -> Device | None:
        return self.get(device_key(device_id, page))

    def update(self, key: str, fn: Callable[[Device], Device]) -> Device | None:
        with self._lock:
            current = self._devices.get(key)
            if current is None:
                return None
            updated = fn(current)
            if updated.key != key:
                raise ValueError(f"Update for {key} changed the device key to {updated.key}")
            self._devices[key] = updated
            return updated

    def all(self) -> list[Device]:
        with self._lock:
            return list(self._devices.values())

    def count(self) -> int:
        with self._lock:
            return len(self._devices)

    def __len__(self) -> int:
        return self.count()

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._devices
