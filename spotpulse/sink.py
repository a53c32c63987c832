"""CSV export of extracted market records.

The sink is the only component that touches the output directory. It
refuses an empty record set instead of writing a header-only file, so a
scrape that produced nothing can never be mistaken for a valid export.
"""

from collections.abc import Sequence
from pathlib import Path

import pandas as pd

from config.settings import GlobalConfig, get_config
from spotpulse.exceptions import EmptySinkInputError, RecordSinkError
from spotpulse.logger import get_logger
from spotpulse.validator import CSV_COLUMNS, MarketRecord

log = get_logger(__name__)


class CsvRecordSink:
    """Writes market records to ``config.output_path``.

    Attributes:
        config: GlobalConfig with output location.

    Example:
        sink = CsvRecordSink(config)
        path = sink.write(result.records)
    """

    def __init__(self, config: GlobalConfig | None = None) -> None:
        self.config = config or get_config()

    def _ensure_output_dir(self) -> Path:
        """Create the output directory if needed.

        Raises:
            RecordSinkError: If the directory cannot be created.
        """
        try:
            self.config.output_dir.mkdir(parents=True, exist_ok=True)
            return self.config.output_dir
        except OSError as exc:
            raise RecordSinkError(
                reason=f"Cannot create output directory: {exc}",
                output_path=str(self.config.output_dir),
            ) from exc

    @staticmethod
    def to_dataframe(records: Sequence[MarketRecord]) -> pd.DataFrame:
        """Tabulate records under the CSV header, preserving order."""
        return pd.DataFrame([record.as_row() for record in records], columns=list(CSV_COLUMNS))

    def write(self, records: Sequence[MarketRecord]) -> Path:
        """Write ``records`` as CSV and return the file path.

        Args:
            records: Records in extraction order.

        Returns:
            Path to the written CSV file.

        Raises:
            EmptySinkInputError: If ``records`` is empty.
            RecordSinkError: If the file cannot be written.
        """
        output_path = self.config.output_path

        if not records:
            raise EmptySinkInputError(output_path=str(output_path))

        self._ensure_output_dir()
        log.info("Writing market records", output_path=str(output_path), records=len(records))

        try:
            self.to_dataframe(records).to_csv(output_path, index=False, encoding="utf-8")
        except OSError as exc:
            raise RecordSinkError(reason=str(exc), output_path=str(output_path)) from exc

        if not output_path.exists():
            raise RecordSinkError(reason="CSV file was not created", output_path=str(output_path))

        log.info(
            "CSV file written",
            output_path=str(output_path),
            size_bytes=output_path.stat().st_size,
            records=len(records),
        )
        return output_path
