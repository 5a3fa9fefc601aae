"""Configuration module for librarysync."""

from .settings import (
    DatabaseSettings,
    ObservabilitySettings,
    RoutingSettings,
    Settings,
    StorageSettings,
    get_settings,
)

__all__ = [
    "DatabaseSettings",
    "ObservabilitySettings",
    "RoutingSettings",
    "Settings",
    "StorageSettings",
    "get_settings",
]
