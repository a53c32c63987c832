"""Tests for configuration management and validation.

Validates GlobalConfig behavior including:
- Environment variable loading precedence
- Pydantic validation rules
- Path normalization
- Singleton cache behavior

Testing Philosophy:
    Configuration errors should fail-fast at startup, not during runtime.
    These tests ensure invalid configurations are caught immediately.
"""

from pathlib import Path

import pytest
from pydantic import ValidationError

from config.settings import ColumnMap, GlobalConfig


class TestGlobalConfigValidation:
    """Test suite for GlobalConfig validation rules."""

    def test_default_values_are_sane(self, mock_config: GlobalConfig) -> None:
        """Verify default configuration provides safe production values."""
        assert mock_config.headless is True
        assert mock_config.retry_max_attempts >= 1
        assert mock_config.navigation_timeout_ms >= 1000
        assert mock_config.skip_on_unavailable is False
        assert mock_config.row_selectors[0] == "table tbody tr"

    def test_resilience_defaults(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Verify untouched resilience settings match the documented defaults."""
        for key in (
            "NAVIGATION_TIMEOUT_MS",
            "RETRY_MAX_ATTEMPTS",
            "RETRY_BACKOFF_MS",
            "OUTPUT_DIR",
            "OUTPUT_FILE",
        ):
            monkeypatch.delenv(key, raising=False)

        config = GlobalConfig(_env_file=None)

        assert config.navigation_timeout_ms == 60000
        assert config.retry_max_attempts == 3
        assert config.retry_backoff_ms == 2000
        assert config.column_map == ColumnMap(low=2, high=3, last=4, weight_avg=5)
        assert config.output_path == Path("output") / "market_data.csv"

    def test_retry_attempts_bounds(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Verify retry_max_attempts enforces sensible bounds (1-10)."""
        from config.settings import get_config

        get_config.cache_clear()

        monkeypatch.setenv("RETRY_MAX_ATTEMPTS", "0")
        with pytest.raises(ValidationError) as exc_info:
            get_config()

        assert "retry_max_attempts" in str(exc_info.value)

        get_config.cache_clear()

        monkeypatch.setenv("RETRY_MAX_ATTEMPTS", "50")
        with pytest.raises(ValidationError):
            get_config()

        get_config.cache_clear()

    def test_negative_timeouts_rejected(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Verify timeouts and backoff cannot be negative."""
        from config.settings import get_config

        for key in ("READY_TIMEOUT_MS", "RETRY_BACKOFF_MS", "EXTRACTION_DEADLINE_SEC"):
            get_config.cache_clear()
            monkeypatch.setenv(key, "-1")
            with pytest.raises(ValidationError):
                get_config()
            monkeypatch.delenv(key)

        get_config.cache_clear()

    def test_empty_row_selectors_rejected(self) -> None:
        """Verify the candidate selector list cannot be empty or blank."""
        with pytest.raises(ValidationError):
            GlobalConfig(_env_file=None, row_selectors=[])

        with pytest.raises(ValidationError):
            GlobalConfig(_env_file=None, row_selectors=["table tr", "   "])

    def test_row_selectors_are_stripped(self) -> None:
        config = GlobalConfig(_env_file=None, row_selectors=["  table tr  "])
        assert config.row_selectors == ["table tr"]

    def test_path_field_normalization(self, mock_config: GlobalConfig) -> None:
        """Verify string paths are converted to Path objects."""
        assert isinstance(mock_config.log_dir, Path)
        assert isinstance(mock_config.output_dir, Path)
        assert mock_config.output_path.parent == mock_config.output_dir


class TestColumnMap:
    """Test suite for the cell position mapping."""

    def test_max_position(self) -> None:
        assert ColumnMap().max_position == 5
        assert ColumnMap(low=7, high=1, last=0, weight_avg=2).max_position == 7

    def test_negative_position_rejected(self) -> None:
        with pytest.raises(ValidationError):
            ColumnMap(low=-1)

    def test_nested_env_override(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Verify COLUMN_MAP__<FIELD> overrides a single position."""
        from config.settings import get_config

        get_config.cache_clear()
        monkeypatch.setenv("COLUMN_MAP__WEIGHT_AVG", "6")

        config = get_config()

        assert config.column_map.weight_avg == 6
        assert config.column_map.low == 2
        assert config.column_map.max_position == 6

        get_config.cache_clear()


class TestConfigSingletonBehavior:
    """Test suite for get_config() singleton caching."""

    def test_singleton_returns_same_instance(self, mock_config: GlobalConfig) -> None:
        """Verify get_config() returns cached instance within same scope."""
        from config.settings import get_config

        config1 = get_config()
        config2 = get_config()

        assert config1 is config2

    def test_cache_clear_forces_new_instance(
        self, mock_config: GlobalConfig, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Verify cache_clear() allows reconfiguration."""
        from config.settings import get_config

        config1 = get_config()
        original_app_name = config1.app_name

        get_config.cache_clear()
        monkeypatch.setenv("APP_NAME", "NewApp")

        config2 = get_config()

        assert config1 is not config2
        assert config2.app_name == "NewApp"
        assert original_app_name != config2.app_name

        get_config.cache_clear()


class TestEnvironmentVariableOverrides:
    """Test suite for environment variable precedence."""

    def test_env_var_overrides_default(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Verify environment variables override default values."""
        from config.settings import get_config

        get_config.cache_clear()

        monkeypatch.setenv("NAVIGATION_TIMEOUT_MS", "90000")
        monkeypatch.setenv("QUERY_PARAMS", '{"market_area": "FR"}')

        config = get_config()
        assert config.navigation_timeout_ms == 90000
        assert config.query_params == {"market_area": "FR"}

        get_config.cache_clear()

    def test_boolean_env_var_parsing(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Verify boolean environment variables are parsed correctly.

        Pydantic accepts: true/false, 1/0, yes/no, on/off (case-insensitive).
        """
        from config.settings import get_config

        test_cases = [
            ("true", True),
            ("True", True),
            ("1", True),
            ("yes", True),
            ("false", False),
            ("False", False),
            ("0", False),
            ("no", False),
        ]

        for env_value, expected in test_cases:
            get_config.cache_clear()
            monkeypatch.setenv("SKIP_ON_UNAVAILABLE", env_value)
            config = get_config()
            assert config.skip_on_unavailable is expected, f"Failed for {env_value}"

        get_config.cache_clear()
