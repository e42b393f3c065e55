"""Bounded-wait login flow driven through a scriptable browser."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any
from urllib.parse import parse_qs, urlsplit

from visubridge.core.config import DEFAULT_LOGIN_MAX_POLLS, Settings
from visubridge.core.errors import (
    AuthError,
    CredentialsRejectedError,
    LoginPageError,
    LoginTimeoutError,
)
from visubridge.transports.base import BrowserDriver

EMAIL_SELECTOR = "input[name='email']"
PASSWORD_SELECTOR = "input[name='password']"
SUBMIT_SELECTOR = "button[type='submit']"
SESSION_PARAM = "session_id"
LOGGER = logging.getLogger(__name__)


def extract_session_id(url: str) -> str:
    """Return the ``session_id`` query parameter of a post-login URL."""
    values = parse_qs(urlsplit(url).query, keep_blank_values=True).get(SESSION_PARAM)
    if not values:
        raise AuthError("No session_id found in the post-login URL")
    session_id = values[0].strip()
    if not session_id:
        raise AuthError("session_id is empty in the post-login URL")
    return session_id


class BrowserLogin:
    """Authenticator that logs in through the vendor's web form.

    Without credentials the form is left to a human and the redirect is
    awaited the same way, so manual logins share the same bounded wait.
    """

    def __init__(
        self,
        base_url: str,
        driver_factory: Callable[[], Awaitable[BrowserDriver]],
        *,
        max_polls: int = DEFAULT_LOGIN_MAX_POLLS,
        poll_interval_s: float = 1.0,
        login_page_timeout_s: float = 10.0,
        error_selector: str | None = None,
        sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
    ) -> None:
        self._start_url = f"{base_url.rstrip('/')}/visu/index.fcgi?00"
        self._driver_factory = driver_factory
        self._max_polls = max_polls
        self._poll_interval_s = poll_interval_s
        self._login_page_timeout_s = login_page_timeout_s
        self._error_selector = error_selector
        self._sleep = sleep

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        driver_factory: Callable[[], Awaitable[BrowserDriver]],
        **kwargs: Any,
    ) -> BrowserLogin:
        return cls(settings.base_url, driver_factory, max_polls=settings.login_max_polls, **kwargs)

    async def login(self, username: str, password: str) -> str:
        try:
            driver = await self._driver_factory()
        except Exception as exc:
            raise LoginPageError(f"Could not start browser: {exc}") from exc
        try:
            return await self._run(driver, username, password)
        except AuthError:
            raise
        except Exception as exc:
            raise LoginPageError(f"Browser login failed: {exc}") from exc
        finally:
            await driver.close()

    async def _run(self, driver: BrowserDriver, username: str, password: str) -> str:
        LOGGER.info("Navigating to login page")
        await driver.navigate(self._start_url)

        url = await driver.current_url()
        if SESSION_PARAM + "=" in url:
            LOGGER.info("Browser session is already logged in")
            return extract_session_id(url)

        if username and password:
            await self._submit_credentials(driver, username, password)
        else:
            LOGGER.warning(
                "No credentials configured; waiting up to %d polls for a manual login",
                self._max_polls,
            )

        for attempt in range(1, self._max_polls + 1):
            await self._sleep(self._poll_interval_s)
            url = await driver.current_url()
            if SESSION_PARAM + "=" in url:
                LOGGER.info("Login redirect completed after %d polls", attempt)
                return extract_session_id(url)
            if self._error_selector and await driver.wait_for_element(self._error_selector, 0):
                raise CredentialsRejectedError(
                    "The vendor rejected the configured credentials; manual intervention required"
                )
            if attempt % 10 == 0:
                LOGGER.info("Still waiting for login redirect (%d/%d)", attempt, self._max_polls)

        raise LoginTimeoutError(f"Login redirect did not complete within {self._max_polls} polls")

    async def _submit_credentials(self, driver: BrowserDriver, username: str, password: str) -> None:
        if not await driver.wait_for_element(EMAIL_SELECTOR, self._login_page_timeout_s):
            raise LoginPageError(
                f"Login form did not appear within {self._login_page_timeout_s}s"
            )
        await driver.type_into(EMAIL_SELECTOR, username)
        if not await driver.wait_for_element(PASSWORD_SELECTOR, self._login_page_timeout_s):
            raise LoginPageError("Password field not found on login page")
        await driver.type_into(PASSWORD_SELECTOR, password)
        if not await driver.wait_for_element(SUBMIT_SELECTOR, self._login_page_timeout_s):
            raise LoginPageError("Submit button not found on login page")
        LOGGER.info("Submitting login form")
        await driver.click(SUBMIT_SELECTOR)
