from __future__ import annotations

import threading

import pytest

from visubridge.core.model import Brightness, Device, DeviceType
from visubridge.core.registry import DeviceRegistry


def _light(device_id: str = "Single_1", page: str = "01") -> Device:
    return Device.create(device_id, "Flur", DeviceType.LIGHT, page, "3")


def test_add_get_and_count() -> None:
    registry = DeviceRegistry()
    registry.add(_light())
    registry.add(_light("Single_2"))
    assert registry.count() == 2
    assert len(registry) == 2
    assert registry.get("Single_1_page01") is not None
    assert registry.get_by_id_page("Single_2", "01") is not None
    assert registry.get("missing") is None


def test_add_overwrites_by_key() -> None:
    registry = DeviceRegistry()
    registry.add(_light())
    registry.add(_light().with_on(True))
    assert registry.count() == 1
    assert registry.get("Single_1_page01").is_on is True


def test_update_replaces_record() -> None:
    registry = DeviceRegistry()
    registry.add(_light())
    before = registry.get("Single_1_page01")
    updated = registry.update("Single_1_page01", lambda d: d.with_on(True))
    assert updated is not None and updated.is_on is True
    assert before.is_on is False
    assert registry.get("Single_1_page01").is_on is True


def test_update_missing_key() -> None:
    registry = DeviceRegistry()
    assert registry.update("missing", lambda d: d.with_on(True)) is None


def test_update_cannot_change_key() -> None:
    registry = DeviceRegistry()
    registry.add(_light())
    with pytest.raises(ValueError):
        registry.update("Single_1_page01", lambda d: _light("Single_2"))
    assert registry.get("Single_1_page01") is not None


def test_all_is_a_snapshot() -> None:
    registry = DeviceRegistry()
    registry.add(_light())
    snapshot = registry.all()
    registry.add(_light("Single_2"))
    assert len(snapshot) == 1
    assert len(registry.all()) == 2


def test_readers_never_see_partial_records() -> None:
    registry = DeviceRegistry()
    dimmer = Device.create("ExtendedSlider_1", "Esstisch", DeviceType.DIMMER, "01", "9")
    registry.add(dimmer)
    allowed = {Brightness(on=False, level=0), Brightness(on=True, level=200)}
    stop = threading.Event()
    seen: list[object] = []

    def writer() -> None:
        for i in range(2000):
            state = Brightness(on=True, level=200) if i % 2 == 0 else Brightness(on=False, level=0)
            registry.update(dimmer.key, lambda d, s=state: d.with_state(s))
        stop.set()

    def reader() -> None:
        while not stop.is_set():
            for device in registry.all():
                seen.append(device.state)

    threads = [threading.Thread(target=writer)] + [threading.Thread(target=reader) for _ in range(3)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert all(state in allowed for state in seen)
