"""Pydantic schema for extracted market records.

A record is only valid when every field carries text after trimming.
The row extractor relies on ``ValidationError`` to drop incomplete rows,
so malformed rows are filtered without ever surfacing as errors.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Header of the persisted CSV, in column order.
CSV_COLUMNS: tuple[str, ...] = ("Low", "High", "Last", "Weight Avg")


class MarketRecord(BaseModel):
    """One fully populated price tuple taken from a single table row.

    Attributes:
        low: Lowest traded price.
        high: Highest traded price.
        last: Last traded price.
        weight_avg: Volume-weighted average price.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    low: str = Field(..., alias="Low")
    high: str = Field(..., alias="High")
    last: str = Field(..., alias="Last")
    weight_avg: str = Field(..., alias="WeightAvg")

    @field_validator("low", "high", "last", "weight_avg", mode="before")
    @classmethod
    def clean_cell(cls, value: Any) -> str:
        """Trim surrounding whitespace and reject blank cells.

        Raises:
            ValueError: If the value is not text or is blank after trimming.
        """
        if not isinstance(value, str):
            raise ValueError(f"Cell must be a string, got {type(value).__name__}")

        cleaned = value.strip()
        if not cleaned:
            raise ValueError("Cell is blank")

        return cleaned

    def as_row(self) -> dict[str, str]:
        """Return the record keyed by CSV header."""
        return dict(zip(CSV_COLUMNS, (self.low, self.high, self.last, self.weight_avg)))
