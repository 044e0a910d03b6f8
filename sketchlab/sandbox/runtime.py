"""
Sandbox Runtime - Evaluate an execution document in an isolated context.

Security Requirements:
- Every run gets a fresh browser context (no shared cookies, storage or cache)
- Service workers and downloads are blocked
- Network requests are aborted unless the document declared the URL
  (the p5.js runtime and selected addons)
- The page never sees host credentials; only console status payloads leave it
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, Optional

from playwright.async_api import Browser, Playwright, Route, async_playwright

from sketchlab.sandbox.document import ExecutionDocument

logger = logging.getLogger(__name__)


Deliver = Callable[[Any], None]


class SandboxError(Exception):
    """The isolated context failed before the program reported a result."""
    pass


class SandboxTimeout(SandboxError):
    """The program neither settled nor failed in time."""
    pass


class SandboxRuntime(ABC):
    """Creates an isolated context, loads a document, relays outbound payloads."""

    @abstractmethod
    async def run(
        self,
        document: ExecutionDocument,
        deliver: Deliver,
        settled: asyncio.Event,
        timeout: float,
    ) -> None:
        """
        Evaluate the document.

        Args:
            document: The page to evaluate
            deliver: Called with every raw outbound payload from the page
            settled: Set by the caller once a terminal status was received
            timeout: Seconds to wait for `settled` before giving up

        Raises:
            SandboxTimeout: If `settled` was not set in time
            SandboxError: If the context failed
        """


async def _wait_settled(settled: asyncio.Event, crashed: asyncio.Event, remaining: float, timeout: float) -> None:
    waiters = [
        asyncio.ensure_future(settled.wait()),
        asyncio.ensure_future(crashed.wait()),
    ]
    try:
        await asyncio.wait(waiters, timeout=remaining, return_when=asyncio.FIRST_COMPLETED)
    finally:
        for waiter in waiters:
            waiter.cancel()

    if settled.is_set():
        return
    if crashed.is_set():
        raise SandboxError("Sandbox page crashed")
    raise SandboxTimeout(f"Sketch did not finish starting within {timeout:g} seconds")


class BrowserRuntime(SandboxRuntime):
    """
    Headless Chromium via Playwright; one browser, one context per run.

    Usage:
        async with BrowserRuntime() as runtime:
            await harness.run()
    """

    def __init__(self, headless: bool = True):
        self.headless = headless
        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None
        self._lock = asyncio.Lock()

    async def __aenter__(self) -> "BrowserRuntime":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def start(self) -> None:
        """Launch Playwright + Chromium once."""
        async with self._lock:
            if self._playwright is None:
                self._playwright = await async_playwright().start()
            if self._browser is None:
                try:
                    self._browser = await self._playwright.chromium.launch(headless=self.headless)
                except Exception as e:
                    raise SandboxError(
                        "Chromium not available for Playwright. "
                        "Run: python -m playwright install chromium"
                    ) from e

    async def close(self) -> None:
        """Close the browser and Playwright driver."""
        if self._browser is not None:
            try:
                await self._browser.close()
            except Exception as e:
                logger.warning("BrowserRuntime: error closing browser (ignored): %s", e)
            finally:
                self._browser = None

        if self._playwright is not None:
            try:
                await self._playwright.stop()
            except Exception as e:
                logger.warning("BrowserRuntime: error stopping Playwright (ignored): %s", e)
            finally:
                self._playwright = None

    async def run(
        self,
        document: ExecutionDocument,
        deliver: Deliver,
        settled: asyncio.Event,
        timeout: float,
    ) -> None:
        await self.start()
        allowed = set(document.allowed_urls)

        async def _guard(route: Route) -> None:
            url = route.request.url
            if url in allowed:
                await route.continue_()
            else:
                logger.debug("Sandbox %s: blocked request to %s", document.candidate_id, url)
                await route.abort()

        context = await self._browser.new_context(
            service_workers="block",
            accept_downloads=False,
        )
        try:
            await context.route("**/*", _guard)
            page = await context.new_page()

            crashed = asyncio.Event()
            page.on("console", lambda msg: deliver(msg.text))
            page.on("crash", lambda _page: crashed.set())

            loop = asyncio.get_running_loop()
            deadline = loop.time() + timeout
            await page.set_content(document.html, wait_until="load", timeout=timeout * 1000)
            await _wait_settled(settled, crashed, max(0.0, deadline - loop.time()), timeout)
        finally:
            await context.close()
