"""Selector resolution and row extraction.

Both operations are independent of where the document lives: they talk to
a ``DocumentSession`` (live page or parsed HTML) for probes and receive
raw cell text, so row ordering and cell indexing stay identical whichever
session backs them.
"""

from collections.abc import Sequence

from pydantic import BaseModel, ValidationError

from config.settings import ColumnMap
from spotpulse.exceptions import DocumentReadError
from spotpulse.logger import get_logger
from spotpulse.session import DocumentSession
from spotpulse.validator import MarketRecord

log = get_logger(__name__)


class ExtractionResult(BaseModel):
    """Successful outcome of the extraction policy.

    Attributes:
        records: Extracted records in document order (never empty).
        attempts: Number of attempts used, including the successful one.
        selector: Row selector that matched the table.
        source_url: URL the document was loaded from.
        rows_seen: Raw rows read on the successful attempt.
    """

    records: tuple[MarketRecord, ...]
    attempts: int
    selector: str
    source_url: str
    rows_seen: int

    @property
    def rows_dropped(self) -> int:
        """Rows that were ineligible or incomplete."""
        return self.rows_seen - len(self.records)


async def resolve_selector(
    document: DocumentSession,
    candidates: Sequence[str],
) -> str | None:
    """Return the first candidate matching at least one element.

    Candidates are probed strictly in order and probing stops at the first
    match. A candidate the document cannot evaluate counts as no match.

    Args:
        document: Session exposing the loaded document.
        candidates: Row selectors in priority order.

    Returns:
        The winning selector, or None when nothing matches.
    """
    for priority, selector in enumerate(candidates):
        try:
            matches = await document.count(selector)
        except DocumentReadError as exc:
            log.warning(
                "Row selector could not be evaluated",
                selector=selector,
                priority=priority,
                error=str(exc),
            )
            continue

        if matches > 0:
            log.debug(
                "Row selector resolved",
                selector=selector,
                priority=priority,
                matches=matches,
            )
            return selector

    log.debug("No row selector matched", candidates=list(candidates))
    return None


def _cell(cells: Sequence[str], position: int) -> str:
    return cells[position] if position < len(cells) else ""


def extract_records(
    rows: Sequence[Sequence[str]],
    column_map: ColumnMap,
) -> list[MarketRecord]:
    """Turn raw rows into records, dropping ineligible and incomplete rows.

    A row is eligible only if it has more cells than the highest mapped
    position. An eligible row yields a record only if all four mapped cells
    are non-blank after trimming.

    Args:
        rows: Raw cell text per row, in document order.
        column_map: Positions of the extracted fields.

    Returns:
        Records in document order.
    """
    records: list[MarketRecord] = []
    short_rows = 0
    blank_rows = 0

    for cells in rows:
        if len(cells) <= column_map.max_position:
            short_rows += 1
            continue

        try:
            records.append(
                MarketRecord(
                    low=_cell(cells, column_map.low),
                    high=_cell(cells, column_map.high),
                    last=_cell(cells, column_map.last),
                    weight_avg=_cell(cells, column_map.weight_avg),
                )
            )
        except ValidationError:
            blank_rows += 1

    log.debug(
        "Rows extracted",
        rows=len(rows),
        records=len(records),
        short_rows=short_rows,
        blank_rows=blank_rows,
    )
    return records
