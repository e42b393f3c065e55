"""Transport and capability interfaces."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol

from visubridge.core.model import RawDeviceDescriptor


class CommandTransport(Protocol):
    async def send_command(self, control: str) -> None:
        """Dispatch one control string to the vendor backend."""

    async def fetch_page(self, page: str) -> str:
        """Return the raw HTML of a visualization page."""


class Authenticator(Protocol):
    async def login(self, username: str, password: str) -> str:
        """Perform a login and return a fresh session token."""


class BrowserDriver(Protocol):
    async def navigate(self, url: str) -> None: ...

    async def wait_for_element(self, selector: str, timeout_s: float) -> bool: ...

    async def type_into(self, selector: str, text: str) -> None: ...

    async def click(self, selector: str) -> None: ...

    async def current_url(self) -> str: ...

    async def close(self) -> None: ...


class Discovery(Protocol):
    async def discover_devices(self) -> Sequence[RawDeviceDescriptor]:
        """Return every device descriptor visible in the visualization."""
