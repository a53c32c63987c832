"""DocumentSession over an already-fetched HTML document.

Used for offline extraction from a saved market results page. Selector
probes and row reads run in-process on a BeautifulSoup tree and follow the
same semantics as the in-page script: rows in document order, cells in
row order, untrimmed ``textContent``.
"""

import asyncio
from pathlib import Path

from bs4 import BeautifulSoup
from soupsieve import SelectorSyntaxError

from spotpulse.exceptions import DocumentReadError
from spotpulse.logger import get_logger
from spotpulse.session import NavigationResponse

log = get_logger(__name__)


class StaticDocumentSession:
    """DocumentSession backed by a parsed HTML string.

    Attributes:
        html: The document source.
        status_code: Status reported for every navigation.
    """

    def __init__(self, html: str, status_code: int = 200) -> None:
        self.html = html
        self.status_code = status_code
        self._soup = BeautifulSoup(html, "html.parser")

    @classmethod
    def from_file(cls, path: Path, status_code: int = 200) -> "StaticDocumentSession":
        """Load a saved page from disk.

        Raises:
            DocumentReadError: If the file cannot be read as UTF-8 text.
        """
        log.info("Loading saved document", path=str(path))
        try:
            html = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise DocumentReadError(selector="html", reason=f"Cannot read {path}: {exc}") from exc
        return cls(html, status_code=status_code)

    async def navigate(
        self,
        url: str,
        wait_until: str = "networkidle",
        timeout_ms: int = 60000,
    ) -> NavigationResponse:
        log.debug("Static document navigation", url=url, status_code=self.status_code)
        return NavigationResponse(status=self.status_code, url=url)

    async def content(self) -> str:
        return self.html

    async def count(self, selector: str) -> int:
        try:
            return len(self._soup.select(selector))
        except SelectorSyntaxError as exc:
            raise DocumentReadError(selector=selector, reason=str(exc)) from exc

    async def row_cells(self, selector: str, cell_selector: str) -> list[list[str]]:
        try:
            return [
                [cell.get_text() for cell in row.select(cell_selector)]
                for row in self._soup.select(selector)
            ]
        except SelectorSyntaxError as exc:
            raise DocumentReadError(selector=selector, reason=str(exc)) from exc

    async def wait_for_quiescence(self, timeout_ms: int) -> None:
        return None

    async def sleep(self, duration_ms: int) -> None:
        await asyncio.sleep(duration_ms / 1000)
