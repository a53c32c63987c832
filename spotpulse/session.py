"""Document session capability used by the extraction policy.

The policy never touches Playwright directly. It drives a ``DocumentSession``:
navigate, read content, probe selectors, read raw rows, wait for the
network to settle, and sleep. ``PageSession`` implements the capability on
a live Playwright page; ``StaticDocumentSession`` (see static_document.py)
implements it on an HTML string.
"""

from dataclasses import dataclass
from typing import Protocol

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Page
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from spotpulse.exceptions import DocumentReadError, NavigationError, UnreachableError
from spotpulse.logger import get_logger

log = get_logger(__name__)

# Chromium/Firefox network error codes meaning no connection was established.
UNREACHABLE_MARKERS: tuple[str, ...] = (
    "ERR_NAME_NOT_RESOLVED",
    "ERR_NAME_RESOLUTION_FAILED",
    "ERR_INTERNET_DISCONNECTED",
    "ERR_CONNECTION_REFUSED",
    "ERR_ADDRESS_UNREACHABLE",
    "NS_ERROR_UNKNOWN_HOST",
)

ROW_CELLS_SCRIPT = """
({ selector, cellSelector }) => Array.from(
    document.querySelectorAll(selector),
    (row) => Array.from(row.querySelectorAll(cellSelector), (cell) => cell.textContent ?? "")
)
"""


def is_unreachable(reason: str) -> bool:
    """Check whether a navigation error message denotes a connection failure."""
    return any(marker in reason for marker in UNREACHABLE_MARKERS)


@dataclass(frozen=True)
class NavigationResponse:
    """Metadata of the main-document response."""

    status: int
    url: str


class DocumentSession(Protocol):
    """Capabilities the extraction policy needs from a loaded document."""

    async def navigate(self, url: str, wait_until: str, timeout_ms: int) -> NavigationResponse:
        """Load ``url``.

        Raises:
            UnreachableError: If no connection could be established.
            NavigationError: For any other navigation failure.
        """
        ...

    async def content(self) -> str:
        """Return the serialized document."""
        ...

    async def count(self, selector: str) -> int:
        """Return the number of elements matching ``selector``."""
        ...

    async def row_cells(self, selector: str, cell_selector: str) -> list[list[str]]:
        """Return the raw text of every cell of every row matching ``selector``.

        Raises:
            DocumentReadError: If the row collection cannot be obtained.
        """
        ...

    async def wait_for_quiescence(self, timeout_ms: int) -> None:
        """Wait for network activity to settle.

        Raises:
            TimeoutError: If the document did not settle in time.
            DocumentReadError: If the document is gone (page closed, context destroyed).
        """
        ...

    async def sleep(self, duration_ms: int) -> None:
        """Pause for ``duration_ms`` milliseconds.

        Raises:
            DocumentReadError: If the session can no longer be used.
        """
        ...


class PageSession:
    """DocumentSession backed by a live Playwright page.

    Row reading runs inside the page via ``page.evaluate`` so a whole table
    is fetched in one round trip.

    Attributes:
        page: The Playwright page owned by the caller.
    """

    def __init__(self, page: Page) -> None:
        self.page = page

    async def navigate(
        self,
        url: str,
        wait_until: str = "networkidle",
        timeout_ms: int = 60000,
    ) -> NavigationResponse:
        log.debug("Navigating to URL", url=url, wait_until=wait_until)

        try:
            response = await self.page.goto(url, wait_until=wait_until, timeout=timeout_ms)
        except PlaywrightTimeoutError as exc:
            raise NavigationError(
                url=url,
                reason=f"Navigation timeout after {timeout_ms}ms",
            ) from exc
        except PlaywrightError as exc:
            if is_unreachable(str(exc)):
                raise UnreachableError(url=url, reason=str(exc)) from exc
            raise NavigationError(url=url, reason=str(exc)) from exc

        if response is None:
            raise NavigationError(url=url, reason="No response received")

        log.info("Navigation complete", url=url, status_code=response.status)
        return NavigationResponse(status=response.status, url=response.url)

    async def content(self) -> str:
        try:
            return await self.page.content()
        except PlaywrightError as exc:
            raise DocumentReadError(selector="html", reason=str(exc)) from exc

    async def count(self, selector: str) -> int:
        try:
            return await self.page.locator(selector).count()
        except PlaywrightError as exc:
            raise DocumentReadError(selector=selector, reason=str(exc)) from exc

    async def row_cells(self, selector: str, cell_selector: str) -> list[list[str]]:
        try:
            return await self.page.evaluate(
                ROW_CELLS_SCRIPT,
                {"selector": selector, "cellSelector": cell_selector},
            )
        except PlaywrightError as exc:
            raise DocumentReadError(selector=selector, reason=str(exc)) from exc

    async def wait_for_quiescence(self, timeout_ms: int) -> None:
        try:
            await self.page.wait_for_load_state("networkidle", timeout=timeout_ms)
        except PlaywrightTimeoutError as exc:
            raise TimeoutError(f"Document not quiescent after {timeout_ms}ms") from exc
        except PlaywrightError as exc:
            raise DocumentReadError(selector="html", reason=str(exc)) from exc

    async def sleep(self, duration_ms: int) -> None:
        try:
            await self.page.wait_for_timeout(duration_ms)
        except PlaywrightError as exc:
            raise DocumentReadError(selector="html", reason=str(exc)) from exc
