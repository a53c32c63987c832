"""SpotPulse Entry Point.

Bootstrap and orchestration layer. It contains no extraction logic - all
functional code resides in /spotpulse.

Responsibilities:
    1. Load and validate configuration
    2. Initialize logging infrastructure (fail-fast on error)
    3. Build the delivery-date URL, run the extraction policy, write the CSV
    4. Map typed extraction failures onto exit codes

Exit codes:
    0   records written (or source unavailable and SKIP_ON_UNAVAILABLE set)
    1   configuration, logging, sink or unexpected failure
    2   retries exhausted
    3   access denied
    4   source unreachable
    130 cancelled (SIGTERM, deadline) or interrupted

Usage:
    python main.py
    SOURCE_HTML_PATH=saved_page.html python main.py
"""

import asyncio
import signal
import sys
from typing import NoReturn

from loguru import logger

from config.settings import GlobalConfig, get_config
from spotpulse.browser import BrowserManager
from spotpulse.exceptions import (
    AccessDeniedError,
    ExtractionCancelledError,
    LoggingInitializationError,
    RetryExhaustedError,
    SpotPulseError,
    UnreachableError,
)
from spotpulse.extractor import ExtractionResult
from spotpulse.logger import configure_logging
from spotpulse.policy import ExtractionPolicy
from spotpulse.session import DocumentSession
from spotpulse.sink import CsvRecordSink
from spotpulse.static_document import StaticDocumentSession
from spotpulse.url_builder import build_url_from_config

EXIT_RETRY_EXHAUSTED = 2
EXIT_ACCESS_DENIED = 3
EXIT_UNREACHABLE = 4
EXIT_CANCELLED = 130


def _validate_startup_requirements(config: GlobalConfig) -> None:
    """Validate critical startup requirements before pipeline execution.

    Raises:
        SystemExit: If the output directory cannot be created or the
            offline source file is missing.
    """
    try:
        config.output_dir.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        logger.critical(
            "Failed to create output directory",
            output_dir=str(config.output_dir),
            error=str(exc),
        )
        sys.exit(1)

    if config.source_html_path is not None and not config.source_html_path.is_file():
        logger.critical(
            "Offline source document not found",
            source_html_path=str(config.source_html_path),
        )
        sys.exit(1)

    logger.debug(
        "Startup validation complete",
        output_dir=str(config.output_dir),
        base_url=config.base_url,
    )


def _install_cancel_handler(cancel_event: asyncio.Event) -> bool:
    """Set ``cancel_event`` on SIGTERM where the event loop supports it."""
    try:
        asyncio.get_running_loop().add_signal_handler(signal.SIGTERM, cancel_event.set)
    except (NotImplementedError, RuntimeError):
        logger.debug("SIGTERM handler unavailable on this platform")
        return False
    return True


async def _extract(
    session: DocumentSession,
    config: GlobalConfig,
    url: str,
    cancel_event: asyncio.Event,
) -> ExtractionResult:
    policy = ExtractionPolicy(session, config, cancel_event=cancel_event)
    return await policy.run(url)


async def _run_pipeline(config: GlobalConfig) -> int:
    """Execute the scrape: URL, extraction, CSV export.

    Returns:
        Exit code (0 for success).
    """
    url = build_url_from_config(config)
    logger.info(
        "Pipeline execution started",
        app_name=config.app_name,
        environment=config.environment,
        url=url,
        offline=config.source_html_path is not None,
    )

    cancel_event = asyncio.Event()
    handler_installed = _install_cancel_handler(cancel_event)

    try:
        if config.source_html_path is not None:
            session = StaticDocumentSession.from_file(config.source_html_path)
            result = await _extract(session, config, url, cancel_event)
        else:
            async with BrowserManager.create(config) as browser:
                session = await browser.open_session()
                result = await _extract(session, config, url, cancel_event)
    finally:
        if handler_installed:
            asyncio.get_running_loop().remove_signal_handler(signal.SIGTERM)

    for index, record in enumerate(result.records[:3], start=1):
        logger.info("Sample row", row=index, **record.as_row())

    output_path = CsvRecordSink(config).write(result.records)

    logger.info(
        "Pipeline execution completed successfully",
        records=len(result.records),
        attempts=result.attempts,
        output_path=str(output_path),
    )
    return 0


def _handle_fatal_error(exc: Exception, config: GlobalConfig) -> NoReturn:
    """Log a fatal error and exit with the matching code.

    Blocked and unreachable sources may be skipped with a warning instead
    of failing the job, depending on ``skip_on_unavailable``.
    """
    if isinstance(exc, (AccessDeniedError, UnreachableError)):
        if config.skip_on_unavailable:
            logger.warning(
                "Source unavailable - skipping run",
                error_type=type(exc).__name__,
                **exc.context,
            )
            sys.exit(0)

        logger.critical(
            "Source unavailable",
            error_type=type(exc).__name__,
            message=exc.message,
            **exc.context,
        )
        sys.exit(EXIT_ACCESS_DENIED if isinstance(exc, AccessDeniedError) else EXIT_UNREACHABLE)

    if isinstance(exc, RetryExhaustedError):
        logger.critical(
            "Market table never became available",
            attempts=exc.attempts,
            last_cause=exc.last_cause,
        )
        sys.exit(EXIT_RETRY_EXHAUSTED)

    if isinstance(exc, ExtractionCancelledError):
        logger.warning("Extraction cancelled", state=exc.state, reason=exc.reason)
        sys.exit(EXIT_CANCELLED)

    if isinstance(exc, SpotPulseError):
        logger.critical(
            "Fatal application error",
            error_type=type(exc).__name__,
            message=exc.message,
            context=exc.context,
        )
        sys.exit(1)

    logger.exception("Unexpected fatal error", error=str(exc))
    sys.exit(1)


def main() -> int:
    """Application entry point.

    Returns:
        Exit code (0 for success, non-zero for failure).
    """
    try:
        config = get_config()
    except Exception as exc:
        # Cannot log yet - print to stderr
        print(f"FATAL: Configuration loading failed: {exc}", file=sys.stderr)
        return 1

    try:
        configure_logging(config)
    except LoggingInitializationError as exc:
        print(f"FATAL: {exc}", file=sys.stderr)
        return 1

    try:
        _validate_startup_requirements(config)
    except SystemExit:
        raise
    except Exception as exc:
        logger.exception("Startup validation failed", error=str(exc))
        return 1

    try:
        return asyncio.run(_run_pipeline(config))
    except KeyboardInterrupt:
        logger.warning("Pipeline interrupted by user (Ctrl+C)")
        return EXIT_CANCELLED
    except Exception as exc:
        _handle_fatal_error(exc, config)


if __name__ == "__main__":
    sys.exit(main())
