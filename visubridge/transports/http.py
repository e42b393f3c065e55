"""Session-authenticated HTTP transport for the vendor visualization backend."""

from __future__ import annotations

import asyncio
import logging
import re
from collections.abc import Callable, Collection
from typing import Any

from aiohttp import ClientError, ClientSession, ClientTimeout
from yarl import URL

from visubridge.core.config import Settings
from visubridge.core.errors import (
    AuthError,
    AuthenticationFailedError,
    TransportError,
    TransportStatusError,
    TransportTimeoutError,
    UnauthorizedError,
)
from visubridge.transports.base import Authenticator

CONTROL_PATH = "/visu/controlKNX"
PAGE_PATH = "/visu/index.fcgi"
PROBE_PAGE = "00"
UNAUTHORIZED_STATUSES = frozenset({401})
_SESSION_RE = re.compile(r"session_id=[^&]*")
LOGGER = logging.getLogger(__name__)


class SessionedTransport:
    """Holds the single vendor session token and dispatches requests with it.

    An unauthorized response triggers one re-authentication and one retry.
    Concurrent requests that hit the same expired token share a single login
    task instead of each starting their own.
    """

    def __init__(
        self,
        base_url: str,
        authenticator: Authenticator,
        *,
        username: str = "",
        password: str = "",
        session: ClientSession | None = None,
        timeout_s: float = 10.0,
        verify_tls: bool = False,
        unauthorized_statuses: Collection[int] = UNAUTHORIZED_STATUSES,
        token: str = "",
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._authenticator = authenticator
        self._username = username
        self._password = password
        self._session = session
        self._owns_session = session is None
        self._timeout_s = timeout_s
        self._verify_tls = verify_tls
        self._unauthorized_statuses = frozenset(unauthorized_statuses)
        self._token = token
        self._generation = 0
        self._refresh: asyncio.Future[None] | None = None

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        authenticator: Authenticator,
        *,
        session: ClientSession | None = None,
    ) -> SessionedTransport:
        return cls(
            settings.base_url,
            authenticator,
            username=settings.username,
            password=settings.password,
            session=session,
            timeout_s=settings.timeout_s,
            verify_tls=settings.verify_tls,
        )

    @property
    def has_token(self) -> bool:
        return bool(self._token)

    @property
    def generation(self) -> int:
        return self._generation

    def set_token(self, token: str) -> None:
        self._token = token
        self._generation += 1

    def command_url(self, control: str, token: str | None = None) -> str:
        session_id = self._token if token is None else token
        return f"{self._base_url}{CONTROL_PATH}?{control}&session_id={session_id}"

    def page_url(self, page: str, token: str | None = None) -> str:
        session_id = self._token if token is None else token
        return f"{self._base_url}{PAGE_PATH}?{page}&session_id={session_id}&lang=en"

    async def send_command(self, control: str) -> None:
        LOGGER.debug("Sending command: %s (session_id: [REDACTED])", control)
        await self._authorized(
            "POST", lambda token: self.command_url(control, token), f"command {control}", read_body=False
        )
        LOGGER.debug("Command %s sent successfully", control)

    async def fetch_page(self, page: str) -> str:
        LOGGER.debug("Fetching page %s (session_id: [REDACTED])", page)
        return await self._authorized("GET", lambda token: self.page_url(page, token), f"page {page}")

    async def validate_session(self) -> bool:
        try:
            status, _ = await self._request("GET", self.page_url(PROBE_PAGE), read_body=False)
        except TransportError as exc:
            LOGGER.warning("Session validation failed: %s", exc)
            return False
        if 200 <= status < 300:
            LOGGER.info("Session is valid")
            return True
        if status in self._unauthorized_statuses:
            LOGGER.warning("Session is invalid (%d)", status)
        else:
            LOGGER.warning("Session validation returned unexpected status: %d", status)
        return False

    async def ensure_session(self) -> None:
        if self._token and await self.validate_session():
            return
        LOGGER.info("Logging in with configured credentials")
        await self.reauthenticate()
        LOGGER.info("Login successful")

    async def reauthenticate(self) -> None:
        await self._refresh_after(self._generation)

    async def close(self) -> None:
        if self._owns_session and self._session is not None:
            await self._session.close()
            self._session = None

    async def __aenter__(self) -> SessionedTransport:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def _authorized(
        self,
        method: str,
        build_url: Callable[[str], str],
        what: str,
        *,
        read_body: bool = True,
    ) -> str:
        generation = self._generation
        try:
            return await self._attempt(method, build_url(self._token), what, read_body)
        except UnauthorizedError as exc:
            LOGGER.warning("%s; refreshing session", exc)

        try:
            await self._refresh_after(generation)
        except AuthError as exc:
            raise AuthenticationFailedError(f"Re-authentication failed while sending {what}: {exc}") from exc

        try:
            text = await self._attempt(method, build_url(self._token), what, read_body)
        except UnauthorizedError as exc:
            raise AuthenticationFailedError(f"{exc} after re-authentication") from exc
        LOGGER.debug("%s succeeded after session refresh", what)
        return text

    async def _attempt(self, method: str, url: str, what: str, read_body: bool) -> str:
        status, text = await self._request(method, url, read_body=read_body)
        if status in self._unauthorized_statuses:
            raise UnauthorizedError(f"Backend rejected {what} with status {status}")
        if not 200 <= status < 300:
            raise TransportStatusError(f"Backend answered {what} with status {status}", status=status)
        return text

    async def _refresh_after(self, seen_generation: int) -> None:
        if self._generation != seen_generation:
            LOGGER.debug("Session already refreshed by a concurrent request")
            return
        if self._refresh is None:
            self._refresh = asyncio.ensure_future(self._login())
            self._refresh.add_done_callback(self._refresh_done)
        else:
            LOGGER.debug("Waiting for in-flight session refresh")
        await asyncio.shield(self._refresh)

    def _refresh_done(self, future: asyncio.Future[None]) -> None:
        if self._refresh is future:
            self._refresh = None

    async def _login(self) -> None:
        LOGGER.info("Refreshing session")
        try:
            token = await self._authenticator.login(self._username, self._password)
        except AuthError:
            raise
        except Exception as exc:
            raise AuthError(f"Authenticator failed: {exc}") from exc
        if not token:
            raise AuthError("Authenticator returned an empty session token")
        self._token = token
        self._generation += 1
        LOGGER.info("New session ready (session_id: [REDACTED])")

    async def _client(self) -> ClientSession:
        if self._session is None:
            self._session = ClientSession()
            self._owns_session = True
        return self._session

    async def _request(self, method: str, url: str, *, read_body: bool = True) -> tuple[int, str]:
        client = await self._client()
        kwargs: dict[str, Any] = {"timeout": ClientTimeout(total=self._timeout_s)}
        if not self._verify_tls:
            kwargs["ssl"] = False
        try:
            async with client.request(method, URL(url, encoded=True), **kwargs) as resp:
                # Vendor pages often omit the charset and are not always UTF-8.
                if read_body and 200 <= resp.status < 300:
                    return resp.status, await resp.text(errors="replace")
                return resp.status, ""
        except asyncio.TimeoutError as exc:
            raise TransportTimeoutError(
                f"{method} {self._redact(url)} timed out after {self._timeout_s}s"
            ) from exc
        except ClientError as exc:
            raise TransportError(f"{method} {self._redact(url)} failed: {exc}") from exc

    @staticmethod
    def _redact(url: str) -> str:
        return _SESSION_RE.sub("session_id=[REDACTED]", url)
