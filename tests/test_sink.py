"""Tests for CSV export."""

import csv
from pathlib import Path

import pytest
from pytest_mock import MockerFixture

from config.settings import ColumnMap, GlobalConfig
from spotpulse.exceptions import EmptySinkInputError, RecordSinkError
from spotpulse.extractor import extract_records
from spotpulse.sink import CsvRecordSink
from spotpulse.validator import MarketRecord
from tests.conftest import MARKET_ROWS


class TestCsvRecordSink:
    """Test suite for CsvRecordSink.write()."""

    def test_writes_header_and_rows(self, mock_config: GlobalConfig) -> None:
        records = extract_records(MARKET_ROWS, ColumnMap())

        path = CsvRecordSink(mock_config).write(records)

        assert path == mock_config.output_path
        lines = path.read_text(encoding="utf-8").splitlines()
        assert lines[0] == "Low,High,Last,Weight Avg"
        assert lines[1] == "45.23,48.75,47.50,46.82"
        assert len(lines) == 7

    def test_values_are_written_verbatim(self, mock_config: GlobalConfig) -> None:
        """Text such as trailing zeros is not reformatted."""
        record = MarketRecord(low="0.10", high="007", last="1e3", weight_avg="-0.0")

        path = CsvRecordSink(mock_config).write([record])

        assert path.read_text(encoding="utf-8").splitlines()[1] == "0.10,007,1e3,-0.0"

    def test_commas_are_quoted(self, mock_config: GlobalConfig) -> None:
        record = MarketRecord(low="1,250.00", high="2", last="3", weight_avg="4")

        path = CsvRecordSink(mock_config).write([record])

        with path.open(encoding="utf-8", newline="") as handle:
            rows = list(csv.reader(handle))
        assert rows[1] == ["1,250.00", "2", "3", "4"]
        assert '"1,250.00"' in path.read_text(encoding="utf-8")

    def test_empty_input_raises_and_writes_nothing(self, mock_config: GlobalConfig) -> None:
        with pytest.raises(EmptySinkInputError, match="No data to write"):
            CsvRecordSink(mock_config).write([])

        assert not mock_config.output_path.exists()

    def test_creates_missing_output_directory(self, mock_config: GlobalConfig, tmp_path: Path) -> None:
        config = mock_config.model_copy(update={"output_dir": tmp_path / "nested" / "out"})

        path = CsvRecordSink(config).write(extract_records(MARKET_ROWS[:1], ColumnMap()))

        assert path.parent == tmp_path / "nested" / "out"
        assert path.exists()

    def test_unwritable_directory_raises_sink_error(
        self, mock_config: GlobalConfig, mocker: MockerFixture
    ) -> None:
        mocker.patch.object(Path, "mkdir", side_effect=PermissionError("Access denied"))

        with pytest.raises(RecordSinkError) as exc_info:
            CsvRecordSink(mock_config).write(extract_records(MARKET_ROWS[:1], ColumnMap()))

        assert not isinstance(exc_info.value, EmptySinkInputError)

    def test_dataframe_column_order(self) -> None:
        frame = CsvRecordSink.to_dataframe(extract_records(MARKET_ROWS, ColumnMap()))

        assert list(frame.columns) == ["Low", "High", "Last", "Weight Avg"]
        assert frame["Low"].tolist() == [row[2] for row in MARKET_ROWS]
