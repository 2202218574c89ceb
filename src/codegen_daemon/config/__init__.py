"""Configuration package for the code-generation daemon."""

from .exceptions import ConfigurationError
from .settings import (
    SearchConfig,
    Settings,
    SourceConfig,
    SyncConfig,
    UsageConfig,
    load_sources_file,
)

__all__ = [
    "ConfigurationError",
    "SearchConfig",
    "Settings",
    "SourceConfig",
    "SyncConfig",
    "UsageConfig",
    "load_sources_file",
]
