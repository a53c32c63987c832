"""Target URL construction for the market results page."""

from collections.abc import Mapping
from datetime import UTC, datetime, timedelta
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from config.settings import GlobalConfig


def delivery_date(reference: datetime | None = None, offset_days: int = -1) -> str:
    """Return the ISO calendar date of ``reference`` shifted by ``offset_days``.

    Naive datetimes are taken as UTC; ``None`` means now.

    Example:
        >>> delivery_date(datetime(2026, 1, 1, tzinfo=UTC))
        '2025-12-31'
    """
    if reference is None:
        reference = datetime.now(UTC)
    elif reference.tzinfo is None:
        reference = reference.replace(tzinfo=UTC)

    shifted = reference.astimezone(UTC) + timedelta(days=offset_days)
    return shifted.date().isoformat()


def build_url(
    base_url: str,
    reference: datetime | None = None,
    *,
    offset_days: int = -1,
    date_param: str = "delivery_date",
    params: Mapping[str, str] | None = None,
) -> str:
    """Build the market results URL for the delivery date.

    Existing query parameters on ``base_url`` are kept, the static
    ``params`` follow, and the date parameter comes last.

    Args:
        base_url: Results page URL.
        reference: Reference instant (defaults to now, UTC).
        offset_days: Day offset applied to the reference instant.
        date_param: Name of the date query parameter.
        params: Static query parameters such as region and display mode.

    Returns:
        The complete URL.
    """
    scheme, netloc, path, query, fragment = urlsplit(base_url)

    query_items = [
        (key, value)
        for key, value in parse_qsl(query, keep_blank_values=True)
        if key != date_param and key not in (params or {})
    ]
    query_items.extend((params or {}).items())
    query_items.append((date_param, delivery_date(reference, offset_days)))

    return urlunsplit((scheme, netloc, path, urlencode(query_items), fragment))


def build_url_from_config(config: GlobalConfig, reference: datetime | None = None) -> str:
    """Build the target URL from configuration."""
    return build_url(
        config.base_url,
        reference,
        offset_days=config.date_offset_days,
        date_param=config.date_param,
        params=config.query_params,
    )
