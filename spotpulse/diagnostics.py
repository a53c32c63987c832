"""Network reachability diagnostics.

Probes the market results domain next to a few well-known control domains,
so an operator can tell a site-specific outage from a broken connection.

Usage:
    python -m spotpulse.diagnostics
"""

import sys
from collections.abc import Sequence
from dataclasses import dataclass

import requests

from config.settings import get_config
from spotpulse.logger import configure_logging, get_logger

log = get_logger(__name__)


@dataclass(frozen=True)
class ProbeResult:
    """Outcome of a single reachability probe."""

    url: str
    reachable: bool
    status_code: int | None = None
    error: str | None = None


def probe(url: str, timeout: float = 5.0, session: requests.Session | None = None) -> ProbeResult:
    """Issue a GET to ``url`` and report whether a response came back.

    Any HTTP status counts as reachable: the question is whether a
    connection could be made, not whether the page is usable.
    """
    if session is None:
        with requests.Session() as owned:
            return probe(url, timeout=timeout, session=owned)

    try:
        response = session.get(url, timeout=timeout, allow_redirects=True)
    except requests.Timeout:
        log.warning("Connection timeout", url=url, timeout_sec=timeout)
        return ProbeResult(url=url, reachable=False, error="timeout")
    except requests.RequestException as exc:
        log.warning("Connection failed", url=url, error=str(exc))
        return ProbeResult(url=url, reachable=False, error=type(exc).__name__)

    log.info("Connected successfully", url=url, status_code=response.status_code)
    return ProbeResult(url=url, reachable=True, status_code=response.status_code)


def run_diagnostics(urls: Sequence[str], timeout: float = 5.0) -> list[ProbeResult]:
    """Probe ``urls`` in order and log a verdict.

    The first URL is treated as the target; the rest are controls.
    """
    with requests.Session() as session:
        results = [probe(url, timeout=timeout, session=session) for url in urls]

    if not results:
        return results

    target, controls = results[0], results[1:]
    if target.reachable:
        log.info("Target reachable", url=target.url)
    elif controls and any(result.reachable for result in controls):
        log.warning("Only the target failed; the issue is with that domain", url=target.url)
    else:
        log.error("All probes failed; check the internet connection")

    return results


def main() -> int:
    config = get_config()
    configure_logging(config)
    results = run_diagnostics(config.diagnostic_urls, timeout=config.diagnostic_timeout_sec)
    return 0 if results and results[0].reachable else 1


if __name__ == "__main__":
    sys.exit(main())
