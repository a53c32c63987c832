"""Pytest configuration and shared fixtures for the SpotPulse test suite.

This module provides hermetic test infrastructure with the following guarantees:
- No external network requests (all I/O mocked or served from strings)
- Short timeouts and backoffs so retry paths run in milliseconds
- Isolated state (config cache cleared around every test)
"""

from pathlib import Path
from typing import Any, Callable
from unittest.mock import MagicMock

import pytest
from pytest_mock import MockerFixture

from config.settings import GlobalConfig
from spotpulse.session import NavigationResponse

# Rows of the sample market results table: Time, Product, Low, High, Last, Weight Avg, Volume.
MARKET_ROWS: list[list[str]] = [
    ["00:00", "DE", "45.23", "48.75", "47.50", "46.82", "1250"],
    ["01:00", "DE", "44.50", "47.80", "46.25", "45.95", "1180"],
    ["02:00", "DE", "43.75", "46.90", "45.80", "45.30", "1020"],
    ["03:00", "DE", "42.90", "46.50", "45.10", "44.75", "950"],
    ["04:00", "DE", "43.20", "47.10", "46.00", "45.45", "1100"],
    ["05:00", "DE", "44.10", "48.30", "47.20", "46.40", "1280"],
]

HEADER = ["Time", "Product", "Low", "High", "Last", "Weight Avg", "Volume"]


@pytest.fixture
def mock_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> GlobalConfig:
    """Provide isolated GlobalConfig with safe test defaults.

    Clears the lru_cache so environment overrides take effect, and points
    every file location at tmp_path.
    """
    from config.settings import get_config

    get_config.cache_clear()

    log_dir = tmp_path / "logs"
    output_dir = tmp_path / "output"
    log_dir.mkdir()
    output_dir.mkdir()

    test_env = {
        "APP_NAME": "SpotPulse-Test",
        "ENVIRONMENT": "development",
        "DEBUG": "false",
        "HEADLESS": "true",
        "LOG_LEVEL": "DEBUG",
        "LOG_DIR": str(log_dir),
        "LOG_ROTATION": "1 day",
        "LOG_RETENTION": "1 day",
        "BASE_URL": "https://test.example.com/en/market-results",
        "NAVIGATION_TIMEOUT_MS": "1000",
        "READY_TIMEOUT_MS": "100",
        "RETRY_MAX_ATTEMPTS": "3",
        "RETRY_BACKOFF_MS": "10",
        "EXTRACTION_DEADLINE_SEC": "0",
        "SKIP_ON_UNAVAILABLE": "false",
        "OUTPUT_DIR": str(output_dir),
    }

    for key, value in test_env.items():
        monkeypatch.setenv(key, value)

    config = get_config()

    yield config

    get_config.cache_clear()


@pytest.fixture
def market_html_factory() -> Callable[..., str]:
    """Factory fixture for market results pages.

    Example:
        html = market_html_factory(rows=[["a", "b", " 1 ", "2", "3", "4", "5"]])
        html = market_html_factory(aria=True)
    """

    def _generate_html(
        rows: list[list[str]] | None = None,
        aria: bool = False,
        title: str = "Market Results | EPEX SPOT",
    ) -> str:
        rows = MARKET_ROWS if rows is None else rows

        if aria:
            header_html = "".join(f'<span role="columnheader">{h}</span>' for h in HEADER)
            body_html = "".join(
                '<div role="row">'
                + "".join(f'<span role="cell">{cell}</span>' for cell in row)
                + "</div>"
                for row in rows
            )
            table_html = (
                '<div role="table">'
                f'<div role="row">{header_html}</div>'
                f"{body_html}"
                "</div>"
            )
        else:
            header_html = "".join(f"<th>{h}</th>" for h in HEADER)
            body_html = "".join(
                "<tr>" + "".join(f"<td>{cell}</td>" for cell in row) + "</tr>"
                for row in rows
            )
            table_html = (
                "<table>"
                f"<thead><tr>{header_html}</tr></thead>"
                f"<tbody>{body_html}</tbody>"
                "</table>"
            )

        return f"""
        <!DOCTYPE html>
        <html>
        <head><title>{title}</title></head>
        <body>
            <h1>Market Results</h1>
            <p>Delivery Date: 2026-01-26</p>
            {table_html}
        </body>
        </html>
        """

    return _generate_html


@pytest.fixture
def session_factory(mocker: MockerFixture) -> Callable[..., MagicMock]:
    """Factory fixture for mocked DocumentSession objects.

    Every capability is an AsyncMock, so tests can assert on call counts
    and inject side effects per attempt.
    """

    def _make_session(
        status: int = 200,
        content: str = "<html><body><table></table></body></html>",
        counts: dict[str, int] | None = None,
        rows: list[list[str]] | None = None,
    ) -> MagicMock:
        counts = {"table tbody tr": 6} if counts is None else counts
        session = mocker.MagicMock()
        session.navigate = mocker.AsyncMock(
            side_effect=lambda url, wait_until, timeout_ms: NavigationResponse(status=status, url=url)
        )
        session.content = mocker.AsyncMock(return_value=content)
        session.count = mocker.AsyncMock(side_effect=lambda selector: counts.get(selector, 0))
        session.row_cells = mocker.AsyncMock(return_value=MARKET_ROWS if rows is None else rows)
        session.wait_for_quiescence = mocker.AsyncMock(return_value=None)
        session.sleep = mocker.AsyncMock(return_value=None)
        return session

    return _make_session


@pytest.fixture
def mock_page(mocker: MockerFixture) -> MagicMock:
    """Provide a mocked Playwright Page."""
    page = mocker.MagicMock()
    page.url = "https://test.example.com/en/market-results"
    page.goto = mocker.AsyncMock(return_value=mocker.MagicMock(status=200, url=page.url))
    page.content = mocker.AsyncMock(return_value="<html></html>")
    page.evaluate = mocker.AsyncMock(return_value=[])
    page.wait_for_load_state = mocker.AsyncMock()
    page.wait_for_timeout = mocker.AsyncMock()
    page.close = mocker.AsyncMock()

    locator = mocker.MagicMock()
    locator.count = mocker.AsyncMock(return_value=0)
    page.locator = mocker.MagicMock(return_value=locator)

    return page


def pytest_configure(config: Any) -> None:
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line(
        "markers",
        "integration: marks tests as integration tests requiring full stack",
    )
