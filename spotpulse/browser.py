"""Playwright browser lifecycle management.

BrowserManager owns the Playwright driver, the Chromium instance and one
browser context. Pages it hands out are wrapped in ``PageSession`` so the
extraction policy only ever sees the DocumentSession capability.

The async context manager guarantees cleanup in reverse order even when
extraction raises.
"""

from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Self

from playwright.async_api import (
    Browser,
    BrowserContext,
    Page,
    Playwright,
    async_playwright,
)

from config.settings import GlobalConfig, get_config
from spotpulse.exceptions import BrowserInitializationError
from spotpulse.logger import get_logger
from spotpulse.session import PageSession

log = get_logger(__name__)

LAUNCH_ARGS: list[str] = [
    "--disable-dev-shm-usage",
    "--no-sandbox",
    "--disable-setuid-sandbox",
]


class BrowserManager:
    """Manages the Playwright browser lifecycle.

    Attributes:
        config: GlobalConfig instance for runtime configuration.
        _playwright: Playwright instance (initialized on context entry).
        _browser: Browser instance (Chromium).
        _context: BrowserContext shared by all pages.

    Example:
        async with BrowserManager.create() as browser:
            session = await browser.open_session()
            await session.navigate(url, "networkidle", 60000)
    """

    def __init__(self, config: GlobalConfig) -> None:
        """Initialize BrowserManager with configuration.

        Note:
            Do not instantiate directly. Use ``create()`` so the browser is
            launched and cleaned up.
        """
        self.config = config
        self._playwright: Playwright | None = None
        self._browser: Browser | None = None
        self._context: BrowserContext | None = None

    @classmethod
    @asynccontextmanager
    async def create(
        cls, config: GlobalConfig | None = None
    ) -> AsyncGenerator[Self, None]:
        """Launch a browser for the duration of the ``async with`` block.

        Args:
            config: Optional GlobalConfig. Uses the cached one if not provided.

        Yields:
            Initialized BrowserManager instance.

        Raises:
            BrowserInitializationError: If browser launch fails.
        """
        if config is None:
            config = get_config()

        instance = cls(config)
        try:
            await instance._initialize()
            yield instance
        finally:
            await instance._cleanup()

    async def _initialize(self) -> None:
        """Start Playwright, launch Chromium and open the context.

        Raises:
            BrowserInitializationError: If any initialization step fails.
        """
        log.info("Initializing browser", headless=self.config.headless)

        try:
            self._playwright = await async_playwright().start()
            self._browser = await self._playwright.chromium.launch(
                headless=self.config.headless,
                args=LAUNCH_ARGS,
            )

            context_options: dict[str, Any] = {"locale": "en-US"}
            if self.config.user_agent:
                context_options["user_agent"] = self.config.user_agent

            self._context = await self._browser.new_context(**context_options)
            log.info("Browser initialized successfully")

        except Exception as exc:
            await self._cleanup()
            raise BrowserInitializationError(
                reason=str(exc), browser_type="chromium"
            ) from exc

    async def new_page(self) -> Page:
        """Create a new page within the current browser context.

        Raises:
            BrowserInitializationError: If context is not initialized.
        """
        if self._context is None:
            raise BrowserInitializationError(
                reason="Browser context not initialized", browser_type="chromium"
            )

        page = await self._context.new_page()
        page.set_default_timeout(self.config.ready_timeout_ms)
        page.set_default_navigation_timeout(self.config.navigation_timeout_ms)

        log.debug("New page created")
        return page

    async def open_session(self) -> PageSession:
        """Create a page and wrap it as a DocumentSession."""
        return PageSession(await self.new_page())

    async def _cleanup(self) -> None:
        """Clean up browser resources in reverse initialization order."""
        if self._context is not None:
            try:
                await self._context.close()
            except Exception as exc:
                log.warning("Error closing context", error=str(exc))
            self._context = None

        if self._browser is not None:
            try:
                await self._browser.close()
            except Exception as exc:
                log.warning("Error closing browser", error=str(exc))
            self._browser = None

        if self._playwright is not None:
            try:
                await self._playwright.stop()
            except Exception as exc:
                log.warning("Error stopping playwright", error=str(exc))
            self._playwright = None

        log.info("Browser resources cleaned up")

    @property
    def is_initialized(self) -> bool:
        """Check if browser is fully initialized and ready."""
        return all([
            self._playwright is not None,
            self._browser is not None,
            self._context is not None,
        ])
