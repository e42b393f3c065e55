from __future__ import annotations

import pytest

from visubridge import api
from visubridge.api import (
    AuthenticationFailedError,
    BrowserLogin,
    Client,
    CommandMapper,
    CoverMotion,
    CoverState,
    Device,
    DeviceNotFoundError,
    DeviceType,
    InvalidPositionError,
    NoCommandMappingError,
    PagedDiscovery,
    RawDeviceDescriptor,
    SessionedTransport,
    Settings,
    TransportError,
    VisuBridgeError,
    device_info,
    error_status,
)

BASE_URL = "https://visu.example"


class FakeResponse:
    def __init__(self, status: int, body: str = "") -> None:
        self.status = status
        self._body = body

    async def text(self, encoding: str | None = None, errors: str = "strict") -> str:
        return self._body

    async def __aenter__(self) -> FakeResponse:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        return None


class FakeSession:
    def __init__(self, pages: dict[str, str] | None = None) -> None:
        self.pages = pages or {}
        self.calls: list[tuple[str, str]] = []

    def request(self, method: str, url: object, **kwargs: object) -> FakeResponse:
        self.calls.append((method, str(url)))
        if method == "GET":
            page = str(url).split("?", 1)[1].split("&", 1)[0]
            return FakeResponse(200, self.pages.get(page, ""))
        return FakeResponse(200)

    async def close(self) -> None:
        return None


class FakeAuthenticator:
    def __init__(self) -> None:
        self.calls = 0

    async def login(self, username: str, password: str) -> str:
        self.calls += 1
        return "sess1"


def parse(html: str, page: str) -> list[RawDeviceDescriptor]:
    return [
        RawDeviceDescriptor(id=element_id, name=element_id, page=page, index="3", type=DeviceType.LIGHT)
        for element_id in html.split()
    ]


SETTINGS = Settings(base_url=BASE_URL, username="u", password="p")
MAPPER = CommandMapper({"Single_1_page01": "3+01+00+01"})
DESCRIPTORS = [RawDeviceDescriptor(id="Single_1", name="Flur", page="01", index="3", type=DeviceType.LIGHT)]


def test_public_exports_resolve() -> None:
    for name in api.__all__:
        assert hasattr(api, name), name


@pytest.mark.asyncio
async def test_public_client_start_and_toggle() -> None:
    session = FakeSession()
    auth = FakeAuthenticator()
    async with Client(SETTINGS, authenticator=auth, command_mapper=MAPPER, session=session) as client:
        assert await client.start(DESCRIPTORS) == 1
        assert auth.calls == 1

        await client.toggle("Single_1_page01", True)

        assert client.get_device("Single_1_page01").is_on is True
        assert [d.key for d in client.list_devices()] == ["Single_1_page01"]
    assert session.calls == [("POST", f"{BASE_URL}/visu/controlKNX?3+01+00+01&session_id=sess1")]


@pytest.mark.asyncio
async def test_client_with_injected_transport_and_paged_discovery() -> None:
    session = FakeSession({"01": "Single_1", "02": "Single_7"})
    transport = SessionedTransport(BASE_URL, FakeAuthenticator(), session=session, token="sess0")
    client = Client(SETTINGS, command_mapper=MAPPER, transport=transport)

    count = await client.start(PagedDiscovery(transport, parse))

    assert count == 2
    assert [d.key for d in client.list_devices()] == ["Single_1_page01", "Single_7_page02"]
    assert [url.split("?", 1)[1][:2] for _, url in session.calls] == ["00", "01", "02", "03"]


def test_client_needs_authenticator_without_transport() -> None:
    with pytest.raises(ValueError):
        Client(SETTINGS, command_mapper=MAPPER)


def test_browser_login_is_a_client_authenticator() -> None:
    async def factory() -> object:
        raise AssertionError("not started")

    client = Client(SETTINGS, authenticator=BrowserLogin.from_settings(SETTINGS, factory), session=FakeSession())
    assert client.transport.page_url("01").startswith(f"{BASE_URL}/visu/index.fcgi?01")


@pytest.mark.asyncio
async def test_public_client_requires_start() -> None:
    client = Client(SETTINGS, authenticator=FakeAuthenticator(), command_mapper=MAPPER, session=FakeSession())
    with pytest.raises(VisuBridgeError):
        client.list_devices()


def test_device_info_for_cover() -> None:
    device = Device.create("Double3_1", "Rollo", DeviceType.WINDOW_COVERING, "02", "5").with_state(
        CoverState(position=95, motion=CoverMotion.OPENING)
    )
    assert device_info(device) == {
        "key": "Double3_1_page02",
        "id": "Double3_1",
        "name": "Rollo",
        "device_type": "WindowCovering",
        "page": "02",
        "state": {"type": "windowcovering", "position": 95, "motion": "Opening"},
    }


@pytest.mark.parametrize(
    ("error", "status"),
    [
        (DeviceNotFoundError("X_page01"), 404),
        (NoCommandMappingError("X_page01"), 422),
        (InvalidPositionError("bad"), 422),
        (AuthenticationFailedError("expired"), 502),
        (TransportError("down"), 502),
        (RuntimeError("bug"), 500),
    ],
)
def test_error_status(error: Exception, status: int) -> None:
    assert error_status(error) == status
