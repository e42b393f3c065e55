"""Page-walking discovery over the sessioned transport."""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence

from visubridge.core.errors import DeviceDiscoveryError
from visubridge.core.model import RawDeviceDescriptor
from visubridge.transports.base import CommandTransport

PageParser = Callable[[str, str], Sequence[RawDeviceDescriptor]]
FIRST_PAGE = 1
LAST_PAGE = 99
LOGGER = logging.getLogger(__name__)


def page_number(page: int) -> str:
    return f"{page:02d}"


class PagedDiscovery:
    """Fetch pages ``01``, ``02``, ... and hand each one to a markup parser.

    The walk stops at the first page that yields no devices.
    """

    def __init__(
        self,
        transport: CommandTransport,
        parser: PageParser,
        *,
        first_page: int = FIRST_PAGE,
        last_page: int = LAST_PAGE,
    ) -> None:
        if not 0 <= first_page <= last_page <= LAST_PAGE:
            raise ValueError(f"Page range must be within 0..{LAST_PAGE}, got {first_page}..{last_page}")
        self._transport = transport
        self._parser = parser
        self._first_page = first_page
        self._last_page = last_page

    async def discover_devices(self) -> list[RawDeviceDescriptor]:
        devices: list[RawDeviceDescriptor] = []
        for number in range(self._first_page, self._last_page + 1):
            page = page_number(number)
            LOGGER.info("Discovering devices on page %s", page)
            html = await self._transport.fetch_page(page)
            try:
                page_devices = list(self._parser(html, page))
            except (TypeError, ValueError) as exc:
                raise DeviceDiscoveryError(f"Could not parse page {page}: {exc}") from exc

            if not page_devices:
                LOGGER.info("Page %s is empty, stopping discovery", page)
                break

            LOGGER.info("Found %d devices on page %s", len(page_devices), page)
            devices.extend(page_devices)

        LOGGER.info("Total devices discovered: %d", len(devices))
        return devices
