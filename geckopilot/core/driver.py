from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from playwright.async_api import (
    Browser,
    ElementHandle as PlaywrightHandle,
    Error as PlaywrightError,
    Page,
    Playwright,
    TimeoutError as PlaywrightTimeout,
    async_playwright,
)

from geckopilot.core.config import PilotConfig
from geckopilot.core.contracts import RetryPolicy
from geckopilot.core.errors import DriverError

logger = logging.getLogger("geckopilot.driver")

ACTIVE_CONTAINER_JS = """
(el) => !!el.closest('.active, [aria-current]:not([aria-current="false"]), [aria-selected="true"]')
"""


def _wrap(exc: Exception, action: str) -> DriverError:
    if isinstance(exc, PlaywrightTimeout):
        return DriverError(f"{action} timed out: {exc}", timeout=True)
    return DriverError(f"{action} failed: {exc}")


class ElementHandle:
    async def click(self) -> None:
        raise NotImplementedError

    async def fill(self, text: str) -> None:
        raise NotImplementedError

    async def text(self) -> str:
        raise NotImplementedError

    async def hover(self) -> None:
        raise NotImplementedError

    async def press(self, key: str) -> None:
        raise NotImplementedError

    async def is_visible(self) -> bool:
        raise NotImplementedError

    async def in_active_container(self) -> bool:
        raise NotImplementedError


class ActionDriver:
    """Primitive browser operations. Every failure surfaces as DriverError."""

    async def navigate(self, url: str) -> None:
        raise NotImplementedError

    async def query(self, selector: str) -> Optional[ElementHandle]:
        raise NotImplementedError

    async def query_all(self, selector: str) -> list[ElementHandle]:
        raise NotImplementedError

    async def wait_for(self, selector: str, timeout_ms: int, state: str = "attached") -> None:
        raise NotImplementedError

    async def settle(self, timeout_ms: int) -> None:
        raise NotImplementedError

    async def screenshot(self, path: str) -> None:
        raise NotImplementedError

    async def current_url(self) -> str:
        raise NotImplementedError

    async def close(self) -> None:
        raise NotImplementedError


class PlaywrightElement(ElementHandle):
    def __init__(self, handle: PlaywrightHandle, timeout_ms: int) -> None:
        self._handle = handle
        self._timeout_ms = timeout_ms

    async def click(self) -> None:
        try:
            await self._handle.click(timeout=self._timeout_ms)
        except PlaywrightError as exc:
            raise _wrap(exc, "click") from exc

    async def fill(self, text: str) -> None:
        try:
            editable = await self._handle.evaluate("(el) => el.isContentEditable")
            if editable:
                await self._handle.click(click_count=3, timeout=self._timeout_ms)
                await self._handle.type(text)
            else:
                await self._handle.fill(text, timeout=self._timeout_ms)
        except PlaywrightError as exc:
            raise _wrap(exc, "fill") from exc

    async def text(self) -> str:
        try:
            return ((await self._handle.text_content()) or "").strip()
        except PlaywrightError as exc:
            raise _wrap(exc, "text") from exc

    async def hover(self) -> None:
        try:
            await self._handle.hover(timeout=self._timeout_ms)
        except PlaywrightError as exc:
            raise _wrap(exc, "hover") from exc

    async def press(self, key: str) -> None:
        try:
            await self._handle.press(key, timeout=self._timeout_ms)
        except PlaywrightError as exc:
            raise _wrap(exc, f"press {key}") from exc

    async def is_visible(self) -> bool:
        try:
            return await self._handle.is_visible()
        except PlaywrightError as exc:
            raise _wrap(exc, "is_visible") from exc

    async def in_active_container(self) -> bool:
        try:
            return bool(await self._handle.evaluate(ACTIVE_CONTAINER_JS))
        except PlaywrightError as exc:
            raise _wrap(exc, "in_active_container") from exc


class PlaywrightDriver(ActionDriver):
    def __init__(self, config: PilotConfig) -> None:
        self._config = config
        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None
        self._page: Optional[Page] = None

    @classmethod
    @asynccontextmanager
    async def launch(cls, config: PilotConfig) -> AsyncGenerator["PlaywrightDriver", None]:
        driver = cls(config)
        try:
            await driver.initialize()
            yield driver
        finally:
            await driver.close()

    @property
    def page(self) -> Page:
        if not self._page:
            raise DriverError("Browser not initialized")
        return self._page

    async def initialize(self) -> None:
        if self._browser:
            return
        self._playwright = await async_playwright().start()
        self._browser = await self._playwright.chromium.launch(headless=self._config.headless)
        context = await self._browser.new_context(
            viewport={"width": self._config.viewport_width, "height": self._config.viewport_height},
        )
        self._page = await context.new_page()
        self._page.set_default_timeout(self._config.default_timeout_ms)
        logger.info("[Driver] Browser initialized (headless=%s)", self._config.headless)

    async def close(self) -> None:
        if self._browser:
            try:
                await self._browser.close()
            except PlaywrightError as exc:
                logger.warning("[Driver] Browser close failed: %s", exc)
            self._browser = None
            self._page = None
        if self._playwright:
            await self._playwright.stop()
            self._playwright = None
            logger.info("[Driver] Browser closed")

    async def navigate(self, url: str) -> None:
        policy: RetryPolicy = self._config.navigation_retry
        attempt = 0
        while True:
            attempt += 1
            try:
                await self.page.goto(url, wait_until="domcontentloaded", timeout=self._config.default_timeout_ms)
                logger.info("[Driver] Navigated to %s", url)
                return
            except PlaywrightError as exc:
                error = _wrap(exc, f"navigate {url}")
                if attempt >= policy.max_attempts:
                    raise error from exc
                delay_ms = policy.backoff_ms(attempt)
                logger.warning("[Driver] %s (attempt %s/%s, retry in %sms)", error, attempt, policy.max_attempts, delay_ms)
                await asyncio.sleep(delay_ms / 1000.0)

    async def query(self, selector: str) -> Optional[ElementHandle]:
        try:
            handle = await self.page.query_selector(selector)
        except PlaywrightError as exc:
            raise _wrap(exc, f"query {selector}") from exc
        if handle is None:
            return None
        return PlaywrightElement(handle, self._config.default_timeout_ms)

    async def query_all(self, selector: str) -> list[ElementHandle]:
        try:
            handles = await self.page.query_selector_all(selector)
        except PlaywrightError as exc:
            raise _wrap(exc, f"query_all {selector}") from exc
        return [PlaywrightElement(handle, self._config.default_timeout_ms) for handle in handles]

    async def wait_for(self, selector: str, timeout_ms: int, state: str = "attached") -> None:
        try:
            await self.page.wait_for_selector(selector, state=state, timeout=timeout_ms)
        except PlaywrightError as exc:
            raise _wrap(exc, f"wait_for {selector}") from exc

    async def settle(self, timeout_ms: int) -> None:
        try:
            await self.page.wait_for_load_state("networkidle", timeout=timeout_ms)
        except PlaywrightTimeout:
            # Long-polling pages never reach networkidle.
            logger.debug("[Driver] networkidle not reached within %sms", timeout_ms)
        except PlaywrightError as exc:
            raise _wrap(exc, "settle") from exc

    async def screenshot(self, path: str) -> None:
        try:
            await self.page.screenshot(path=path, full_page=True)
        except PlaywrightError as exc:
            raise _wrap(exc, "screenshot") from exc

    async def current_url(self) -> str:
        return self.page.url
