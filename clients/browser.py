"""Browser driver: one browser process and one browsing context per run.

The workflow only talks to :class:`BrowserDriver`; Playwright stays behind
:class:`PlaywrightBrowserDriver`, whose errors are re-raised as
:class:`~models.errors.BrowserError` / :class:`~models.errors.BrowserTimeout`.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Optional

from loguru import logger
from playwright.async_api import (
    Browser,
    BrowserContext,
    Error as PlaywrightError,
    Page,
    Playwright,
    TimeoutError as PlaywrightTimeoutError,
    async_playwright,
)

from config.settings import Settings, settings as default_settings
from models.errors import BrowserError, BrowserTimeout
from models.record import RequestContext, Session


class BrowserDriver(ABC):
    """Page-level primitives over an exclusively owned browser."""

    async def __aenter__(self) -> "BrowserDriver":
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    @abstractmethod
    async def open(self, session: Session) -> Optional[Any]:
        """Launch the browser and return a context carrying the session cookies.

        Returns None, without launching anything, when the session blob is
        not a usable cookie set.
        """

    @abstractmethod
    async def new_page(self, context: Any) -> Any: ...

    @abstractmethod
    async def navigate(
        self, page: Any, url: str, timeout_ms: int, wait_until: str = "load"
    ) -> None: ...

    @abstractmethod
    async def wait_visible(self, page: Any, selector: str, timeout_ms: int) -> None: ...

    @abstractmethod
    async def is_visible(self, page: Any, selector: str) -> bool: ...

    @abstractmethod
    async def fill(self, page: Any, selector: str, value: str) -> None: ...

    @abstractmethod
    async def click(self, page: Any, selector: str) -> None: ...

    @abstractmethod
    async def check(self, page: Any, selector: str) -> None: ...

    @abstractmethod
    async def click_and_wait_for_navigation(
        self, page: Any, selector: str, timeout_ms: int
    ) -> None:
        """Click ``selector`` and wait for the navigation it triggers."""

    @abstractmethod
    async def screenshot(self, page: Any, selector: str) -> bytes: ...

    @abstractmethod
    async def evaluate(self, page: Any, script: str, arg: Any = None) -> Any: ...

    @abstractmethod
    async def add_init_script(self, page: Any, script: str) -> None: ...

    @abstractmethod
    async def current_html(self, page: Any) -> str: ...

    @abstractmethod
    async def close(self) -> None:
        """Release the browser. Safe to call more than once."""


def _translate(exc: Exception, action: str) -> BrowserError:
    if isinstance(exc, PlaywrightTimeoutError):
        return BrowserTimeout(f"{action}: {exc}")
    return BrowserError(f"{action}: {exc}")


class PlaywrightBrowserDriver(BrowserDriver):
    """Chromium via Playwright's async API."""

    def __init__(
        self,
        config: Optional[Settings] = None,
        ctx: Optional[RequestContext] = None,
    ) -> None:
        self._config = config or default_settings
        self._log = logger.bind(**(ctx or RequestContext()).log_extra())
        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None
        self._context: Optional[BrowserContext] = None
        self._closed = False

    async def open(self, session: Session) -> Optional[BrowserContext]:
        if self._context is not None:
            raise BrowserError("driver already owns a browsing context")
        try:
            cookies = session.cookies()
        except ValueError as exc:
            self._log.error(f"Stored session is unusable: {exc}")
            return None

        self._log.debug("Initializing browser...")
        try:
            self._playwright = await async_playwright().start()
            self._browser = await self._playwright.chromium.launch(
                headless=self._config.browser_headless
            )
            self._context = await self._browser.new_context()
            await self._context.add_cookies(cookies)
        except PlaywrightError as exc:
            raise _translate(exc, "browser launch") from exc
        self._log.debug("Browser initialized successfully.")
        return self._context

    async def new_page(self, context: BrowserContext) -> Page:
        try:
            return await context.new_page()
        except PlaywrightError as exc:
            raise _translate(exc, "new page") from exc

    async def navigate(
        self, page: Page, url: str, timeout_ms: int, wait_until: str = "load"
    ) -> None:
        try:
            await page.goto(url, timeout=timeout_ms, wait_until=wait_until)
        except PlaywrightError as exc:
            raise _translate(exc, f"navigate to {url}") from exc

    async def wait_visible(self, page: Page, selector: str, timeout_ms: int) -> None:
        try:
            await page.locator(selector).first.wait_for(state="visible", timeout=timeout_ms)
        except PlaywrightError as exc:
            raise _translate(exc, f"wait for {selector}") from exc

    async def is_visible(self, page: Page, selector: str) -> bool:
        try:
            return await page.locator(selector).first.is_visible()
        except PlaywrightError as exc:
            raise _translate(exc, f"visibility of {selector}") from exc

    async def fill(self, page: Page, selector: str, value: str) -> None:
        try:
            await page.locator(selector).fill(value)
        except PlaywrightError as exc:
            raise _translate(exc, f"fill {selector}") from exc

    async def click(self, page: Page, selector: str) -> None:
        try:
            await page.click(selector)
        except PlaywrightError as exc:
            raise _translate(exc, f"click {selector}") from exc

    async def check(self, page: Page, selector: str) -> None:
        try:
            await page.locator(selector).check()
        except PlaywrightError as exc:
            raise _translate(exc, f"check {selector}") from exc

    async def click_and_wait_for_navigation(
        self, page: Page, selector: str, timeout_ms: int
    ) -> None:
        try:
            async with page.expect_navigation(timeout=timeout_ms):
                await page.click(selector)
        except PlaywrightError as exc:
            raise _translate(exc, f"submit via {selector}") from exc

    async def screenshot(self, page: Page, selector: str) -> bytes:
        try:
            return await page.locator(selector).first.screenshot()
        except PlaywrightError as exc:
            raise _translate(exc, f"screenshot {selector}") from exc

    async def evaluate(self, page: Page, script: str, arg: Any = None) -> Any:
        try:
            return await page.evaluate(script, arg)
        except PlaywrightError as exc:
            raise _translate(exc, "evaluate") from exc

    async def add_init_script(self, page: Page, script: str) -> None:
        try:
            await page.add_init_script(script)
        except PlaywrightError as exc:
            raise _translate(exc, "add init script") from exc

    async def current_html(self, page: Page) -> str:
        try:
            return await page.content()
        except PlaywrightError as exc:
            raise _translate(exc, "read page content") from exc

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._browser is None and self._playwright is None:
            return
        self._log.debug("Closing browser...")
        try:
            if self._browser is not None:
                await self._browser.close()
        except PlaywrightError as exc:
            self._log.warning(f"Browser close failed: {exc}")
        finally:
            if self._playwright is not None:
                await self._playwright.stop()
            self._browser = None
            self._context = None
            self._playwright = None
        self._log.debug("Browser closed.")
