"""Configuration package."""

from recurring_engine.config.settings import (
    AppSettings,
    EngineSettings,
    GoogleSheetsSettings,
    LoggingSettings,
    Settings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "EngineSettings",
    "GoogleSheetsSettings",
    "LoggingSettings",
    "Settings",
    "get_settings",
    "validate_all_settings",
]
