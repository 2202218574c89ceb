"""Application configuration settings."""

from pathlib import Path
from typing import List, Optional

import yaml
from pydantic import AliasChoices, BaseModel, Field, ValidationError
from pydantic_settings import BaseSettings

from .exceptions import ConfigurationError


class LoggingConfig(BaseSettings):
    """Logging configuration settings."""

    level: str = Field(default="INFO", description="Log level")
    file_path: Optional[str] = Field(default=None, description="Log file path")
    json_format: bool = Field(default=True, description="Use JSON log format")
    enable_performance: bool = Field(
        default=True, description="Enable performance logging"
    )

    class Config:
        env_prefix = "LOG_"


class ServerConfig(BaseSettings):
    """Daemon HTTP server configuration settings."""

    name: str = Field(default="codegen-daemon", description="Server name")
    host: str = Field(default="127.0.0.1", description="Bind host")
    port: int = Field(default=5050, description="Bind port")
    request_timeout: int = Field(
        default=30, description="Client request timeout in seconds"
    )

    class Config:
        env_prefix = "SERVER_"


class SearchFieldWeights(BaseSettings):
    """Per-field boosts applied to text matches."""

    operation_id: float = Field(default=5.0, description="Operation ID weight")
    name: float = Field(default=3.0, description="Display name weight")
    path: float = Field(default=2.5, description="Grouping path weight")
    url: float = Field(default=2.5, description="URL template weight")
    method: float = Field(default=2.0, description="HTTP method weight")
    summary: float = Field(default=1.0, description="Summary weight")
    description: float = Field(default=0.5, description="Description weight")
    package: float = Field(default=0.5, description="Tag path weight")
    data_types: float = Field(default=0.5, description="Referenced schema weight")
    catch_all: float = Field(
        default=0.01, description="Sentinel match-all weight"
    )

    class Config:
        env_prefix = "SEARCH_WEIGHTS_"


class IntentAlphaConfig(BaseSettings):
    """Relevance weight used for each detected query intent."""

    path: float = Field(default=0.95, ge=0.0, le=1.0)
    http_method: float = Field(default=0.85, ge=0.0, le=1.0)
    camelcase: float = Field(default=0.80, ge=0.0, le=1.0)

    class Config:
        env_prefix = "SEARCH_INTENT_"


class SearchConfig(BaseSettings):
    """Search configuration settings."""

    alpha: float = Field(
        default=0.75,
        ge=0.0,
        le=1.0,
        description="Weight of text relevance against recency",
    )
    half_life_hours: float = Field(
        default=24.0, gt=0.0, description="Recency decay half-life"
    )
    fuzzy: float = Field(
        default=0.2, ge=0.0, le=1.0, description="Default fuzzy tolerance"
    )
    default_limit: int = Field(default=20, ge=1, description="Default page size")
    max_fuzzy_distance: int = Field(
        default=2, ge=0, description="Upper bound on fuzzy edit distance"
    )
    max_fuzzy_term_length: int = Field(
        default=40, ge=1, description="Longest token expanded fuzzily"
    )
    prefix_weight: float = Field(default=0.375, ge=0.0)
    fuzzy_weight: float = Field(default=0.45, ge=0.0)
    method_intent_fallback: bool = Field(
        default=False,
        description="Fall back to unfiltered ranking when a method query misses",
    )

    field_weights: SearchFieldWeights = Field(
        default_factory=SearchFieldWeights
    )
    intent_alpha: IntentAlphaConfig = Field(default_factory=IntentAlphaConfig)

    class Config:
        env_prefix = "SEARCH_"


class SyncConfig(BaseSettings):
    """Sync coordination settings."""

    timeout_seconds: float = Field(
        default=300.0, gt=0.0, description="Ceiling for a single sync run"
    )

    class Config:
        env_prefix = "SYNC_"


class UsageConfig(BaseSettings):
    """Settings for the generated-client usage scan."""

    enabled: bool = Field(default=True, description="Scan on sync and start")
    root_dir: Optional[str] = Field(
        default=None, description="Project root (defaults to cwd)"
    )
    source_globs: List[str] = Field(
        default_factory=lambda: ["**/*.ts", "**/*.tsx"]
    )
    exclude_dirs: List[str] = Field(
        default_factory=lambda: ["node_modules", ".git", "dist", "build"]
    )
    package_scope: str = Field(
        default="@codegen", description="Scope of the generated package"
    )

    class Config:
        env_prefix = "USAGE_"

    def get_root_dir(self) -> Path:
        """Get the project root scanned for imports."""
        return Path(self.root_dir) if self.root_dir else Path.cwd()


class SourceConfig(BaseModel):
    """One configured OpenAPI source."""

    id: str
    spec_url: str = Field(validation_alias=AliasChoices("specUrl", "spec_url"))


class Settings(BaseSettings):
    """Main application settings."""

    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    search: SearchConfig = Field(default_factory=SearchConfig)
    sync: SyncConfig = Field(default_factory=SyncConfig)
    usage: UsageConfig = Field(default_factory=UsageConfig)

    debug: bool = Field(default=False, description="Enable debug mode")
    data_dir: str = Field(default=".codegen", description="Data directory path")
    sources_file: str = Field(
        default="sources.yaml", description="YAML file listing sources"
    )

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"

    def get_data_dir(self) -> Path:
        """Get the data directory path."""
        return Path(self.data_dir)

    def get_specs_dir(self) -> Path:
        """Get the directory holding normalized specs."""
        return self.get_data_dir() / "specs"

    def load_sources(self) -> List[SourceConfig]:
        """Load the configured sources from the YAML sources file.

        Returns:
            List[SourceConfig]: Configured sources, empty if the file is absent

        Raises:
            ConfigurationError: If the file cannot be parsed
        """
        return load_sources_file(Path(self.sources_file))


def load_sources_file(path: Path) -> List[SourceConfig]:
    """Parse a sources YAML file of shape ``{sources: [{id, specUrl}]}``."""
    if not path.exists():
        return []

    try:
        with open(path, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigurationError(
            f"Invalid sources file: {path}", {"error": str(e)}
        ) from e

    if not isinstance(raw, dict) or not isinstance(raw.get("sources", []), list):
        raise ConfigurationError(
            f"Sources file must contain a 'sources' list: {path}"
        )

    try:
        sources = [SourceConfig(**entry) for entry in raw.get("sources", [])]
    except (TypeError, ValidationError) as e:
        raise ConfigurationError(
            f"Invalid source entry in {path}", {"error": str(e)}
        ) from e

    seen = set()
    for source in sources:
        if source.id in seen:
            raise ConfigurationError(f"Duplicate source id '{source.id}'")
        seen.add(source.id)

    return sources
