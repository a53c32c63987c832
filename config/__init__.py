"""Configuration module for SpotPulse.

This module provides centralized configuration management using pydantic-settings,
ensuring 12-factor app compliance and strict validation of all environment variables.
"""

from config.settings import ColumnMap, GlobalConfig, get_config

__all__ = ["ColumnMap", "GlobalConfig", "get_config"]
