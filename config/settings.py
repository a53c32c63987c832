"""Global configuration management using pydantic-settings.

This module implements the 12-factor app methodology for configuration,
loading values from environment variables with strict type validation.
The cached accessor ensures consistent configuration state across the application.
"""

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, NonNegativeInt, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ColumnMap(BaseModel):
    """Zero-based cell positions of the extracted fields within a table row.

    The highest position defines the minimum number of cells a row needs
    before it is considered for extraction.
    """

    model_config = ConfigDict(frozen=True)

    low: NonNegativeInt = 2
    high: NonNegativeInt = 3
    last: NonNegativeInt = 4
    weight_avg: NonNegativeInt = 5

    @property
    def max_position(self) -> int:
        """Highest configured cell position."""
        return max(self.low, self.high, self.last, self.weight_avg)


class GlobalConfig(BaseSettings):
    """Centralized configuration with environment variable binding.

    All configuration values are loaded from environment variables,
    with sensible defaults for development. Production deployments
    should override these via .env or environment injection.

    Attributes:
        app_name: Application identifier for logging.
        environment: Deployment environment (development/staging/production).
        debug: Enable verbose debugging output.
        headless: Run Chromium without a visible window.
        user_agent: Optional fixed user-agent for the browser context.
        log_level: Minimum log level for output filtering.
        log_dir: Directory path for structured JSON log files.
        log_rotation: Log file rotation interval.
        log_retention: Log file retention period.
        base_url: Market results page URL.
        query_params: Static query parameters (region code, display mode).
        date_param: Name of the delivery-date query parameter.
        date_offset_days: Day offset applied to the reference instant.
        column_map: Cell positions of Low/High/Last/Weight Avg.
        row_selectors: Candidate row selectors, canonical layout first.
        cell_selector: Selector for the cells of a matched row.
        access_denial_markers: Content markers identifying a blocked page.
        access_denied_status_codes: HTTP statuses treated as access denial.
        navigation_timeout_ms: Timeout for a single navigation.
        ready_timeout_ms: Timeout for the document quiescence wait.
        retry_max_attempts: Maximum extraction attempts.
        retry_backoff_ms: Constant pause between attempts.
        extraction_deadline_sec: Overall extraction deadline (0 = none).
        skip_on_unavailable: Exit successfully when the source is blocked or unreachable.
        output_dir: Directory for the CSV export.
        output_file: CSV file name.
        source_html_path: Extract from a saved HTML file instead of the live site.
        diagnostic_urls: Domains probed by the reachability diagnostics.
        diagnostic_timeout_sec: Per-domain probe timeout.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    # Application Metadata
    app_name: str = Field(default="SpotPulse", description="Application identifier")
    environment: Literal["development", "staging", "production"] = Field(
        default="development", description="Deployment environment"
    )
    debug: bool = Field(default=False, description="Enable debug mode")

    # Browser Configuration
    headless: bool = Field(default=True, description="Run browser in headless mode")
    user_agent: str | None = Field(default=None, description="Fixed user-agent override")

    # Logging Configuration
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Minimum log level"
    )
    log_dir: Path = Field(default=Path("logs"), description="Log output directory")
    log_rotation: str = Field(default="1 week", description="Log rotation interval")
    log_retention: str = Field(default="1 month", description="Log retention period")

    # Target Configuration
    base_url: str = Field(
        default="https://www.epexspot.com/en/market-results",
        description="Market results page URL",
    )
    query_params: dict[str, str] = Field(
        default={"market_area": "DE", "data_mode": "table"},
        description="Static query parameters",
    )
    date_param: str = Field(default="delivery_date", min_length=1)
    date_offset_days: int = Field(default=-1, ge=-31, le=31)

    # Table Layout
    column_map: ColumnMap = Field(default_factory=ColumnMap)
    row_selectors: list[str] = Field(
        default=["table tbody tr", "table tr", "[role='row']"],
        description="Row selectors in priority order",
    )
    cell_selector: str = Field(
        default="td, [role='cell'], [role='gridcell']",
        description="Cell selector within a row",
    )

    # Access Denial Detection
    access_denial_markers: list[str] = Field(
        default=["403 Forbidden", "Error 403", "Access Denied", "Forbidden"],
        description="Content markers of a blocked page",
    )
    access_denied_status_codes: list[int] = Field(default=[403])

    # Resilience Parameters
    navigation_timeout_ms: int = Field(
        default=60000, ge=1000, le=300000, description="Navigation timeout in milliseconds"
    )
    ready_timeout_ms: int = Field(
        default=30000, ge=0, le=300000, description="Quiescence wait timeout in milliseconds"
    )
    retry_max_attempts: int = Field(
        default=3, ge=1, le=10, description="Maximum extraction attempts"
    )
    retry_backoff_ms: int = Field(
        default=2000, ge=0, le=60000, description="Constant backoff between attempts"
    )
    extraction_deadline_sec: float = Field(
        default=0.0, ge=0.0, description="Overall extraction deadline (0 = none)"
    )

    # Outcome Policy
    skip_on_unavailable: bool = Field(
        default=False, description="Skip with warning on AccessDenied/Unreachable"
    )

    # Output Configuration
    output_dir: Path = Field(default=Path("output"), description="CSV output directory")
    output_file: str = Field(default="market_data.csv", min_length=1)

    # Offline Source
    source_html_path: Path | None = Field(
        default=None, description="Saved HTML document to extract from"
    )

    # Diagnostics
    diagnostic_urls: list[str] = Field(
        default=[
            "https://www.epexspot.com/",
            "https://www.google.com/",
            "https://www.github.com/",
        ],
    )
    diagnostic_timeout_sec: float = Field(default=5.0, gt=0.0, le=60.0)

    @field_validator("log_dir", "output_dir", mode="before")
    @classmethod
    def ensure_path(cls, value: str | Path) -> Path:
        """Convert string paths to Path objects."""
        return Path(value) if isinstance(value, str) else value

    @field_validator("row_selectors")
    @classmethod
    def validate_selectors(cls, value: list[str]) -> list[str]:
        """Reject an empty candidate list and blank selectors."""
        selectors = [selector.strip() for selector in value]
        if not selectors or not all(selectors):
            raise ValueError("row_selectors must contain at least one non-blank selector")
        return selectors

    @property
    def output_path(self) -> Path:
        """Full path of the CSV export."""
        return self.output_dir / self.output_file


@lru_cache(maxsize=1)
def get_config() -> GlobalConfig:
    """Retrieve the cached GlobalConfig instance.

    Returns:
        GlobalConfig: The validated configuration instance.
    """
    return GlobalConfig()
