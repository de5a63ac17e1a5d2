"""Central configuration for RelationScope.

Every module that needs settings imports from here.

Configuration priority (highest wins):
1. Environment variables (``RELATIONSCOPE_*``, nested with ``__``)
2. Config file (YAML)
3. In-code defaults

The Gemini API key is never part of the settings model. It is looked up on
demand from ``GEMINI_API_KEY``, then ``API_KEY``, then the system keyring.

Example:
    >>> from relationscope.config import get_config, get_api_key
    >>> cfg = get_config()
    >>> cfg.ai.model_name
    'gemini-2.5-flash'

Config File Format (YAML):
    ```yaml
    ai:
      model_name: gemini-2.5-flash
      temperature: 0.7
      max_output_tokens: 65536
      timeout_seconds: 300
      max_retries: 3
      max_transcript_chars: 3000000

    history:
      capacity: 10
      file_name: history.json

    paths:
      data_dir: ~/.relationscope
      output_dir: ./output

    report:
      title: RelationScope Report
      page_width: 1240

    debug: false
    verbose: false
    ```
"""

from __future__ import annotations

import functools
import logging
import os
from pathlib import Path
from typing import Any

import keyring
import keyring.errors
import yaml
from pydantic import BaseModel, Field, SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource

from relationscope.core.errors import RelationScopeError

# Never log secrets from this module
logger = logging.getLogger(__name__)

API_KEY_ENV_VARS = ("GEMINI_API_KEY", "API_KEY")
KEYRING_SERVICE = "relationscope"
KEYRING_USERNAME = "gemini"


# =============================================================================
# Exceptions
# =============================================================================


class ConfigError(RelationScopeError):
    """Base exception for configuration errors."""

    pass


class APIKeyNotFoundError(ConfigError):
    """Raised when no API key is found in the environment or the keyring."""

    pass


# =============================================================================
# Configuration Models
# =============================================================================


class AIConfig(BaseModel):
    """Configuration for the Gemini analyzer.

    Attributes:
        model_name: Gemini model identifier.
        temperature: Sampling temperature (0.0=deterministic, 2.0=creative).
        max_output_tokens: Maximum tokens in the model response.
        timeout_seconds: Request timeout for one analyzer call.
        max_retries: Retry attempts on transient failures.
        retry_base_delay: Base delay for exponential backoff between retries.
        max_transcript_chars: Transcripts longer than this keep only their tail.
    """

    model_name: str = Field(default="gemini-2.5-flash", description="Gemini model identifier.")
    temperature: float = Field(
        default=0.7,
        ge=0.0,
        le=2.0,
        description="Sampling temperature (0=deterministic, 2=creative).",
    )
    max_output_tokens: int = Field(
        default=65536, ge=1024, le=65536, description="Maximum tokens in model response."
    )
    timeout_seconds: int = Field(
        default=300, ge=10, le=1800, description="Request timeout in seconds."
    )
    max_retries: int = Field(
        default=3, ge=0, le=10, description="Number of retry attempts on transient failures."
    )
    retry_base_delay: float = Field(
        default=1.0, ge=0.1, le=10.0, description="Base delay for exponential backoff (seconds)."
    )
    max_transcript_chars: int = Field(
        default=3_000_000,
        ge=1,
        description="Maximum transcript length sent to the analyzer; the tail is kept.",
    )


class HistoryConfig(BaseModel):
    """Configuration for the persisted report history."""

    capacity: int = Field(default=10, ge=1, le=100, description="Number of reports retained.")
    namespace: str = Field(
        default="relationScopeHistory", description="Top-level key of the history document."
    )
    file_name: str = Field(default="history.json", description="History file under data_dir.")


class PathsConfig(BaseModel):
    """File system locations.

    Attributes:
        data_dir: Base directory for persisted state. Default ~/.relationscope
        output_dir: Directory for exported reports. Default ./output
        log_dir: Directory for log files. Default data_dir/logs
    """

    data_dir: Path = Field(
        default_factory=lambda: Path.home() / ".relationscope",
        description="Base directory for persisted state.",
    )
    output_dir: Path = Field(
        default_factory=lambda: Path.cwd() / "output",
        description="Output directory for exported reports.",
    )
    log_dir: Path | None = Field(default=None, description="Log directory.")

    @field_validator("data_dir", "output_dir", "log_dir", mode="before")
    @classmethod
    def expand_path(cls, v: Any) -> Any:
        """Expand ~ and resolve path."""
        if isinstance(v, (str, Path)):
            return Path(v).expanduser().resolve()
        return v

    @model_validator(mode="after")
    def resolve_defaults(self) -> "PathsConfig":
        if self.log_dir is None:
            self.log_dir = self.data_dir / "logs"
        return self


class ReportConfig(BaseModel):
    """Configuration for rendered and exported reports."""

    title: str = Field(default="RelationScope Report", description="Report page title.")
    page_width: int = Field(
        default=1240, ge=600, le=4000, description="Raster page width in pixels for PDF export."
    )


class AppConfig(BaseSettings):
    """Top-level application configuration.

    Attributes:
        ai: Gemini analyzer settings.
        history: Report history settings.
        paths: Filesystem path configuration.
        report: Report rendering settings.
        debug: Enable debug mode (debug logging, tracebacks in the CLI).
        verbose: Enable verbose output to console.
    """

    ai: AIConfig = Field(default_factory=AIConfig)
    history: HistoryConfig = Field(default_factory=HistoryConfig)
    paths: PathsConfig = Field(default_factory=PathsConfig)
    report: ReportConfig = Field(default_factory=ReportConfig)
    debug: bool = Field(default=False, description="Enable debug mode.")
    verbose: bool = Field(default=False, description="Enable verbose output.")

    model_config = {
        "env_prefix": "RELATIONSCOPE_",
        "env_nested_delimiter": "__",
        "case_sensitive": False,
        "extra": "ignore",
    }

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        # Init kwargs carry the YAML file; environment variables win over it
        return (env_settings, init_settings)

    @property
    def history_path(self) -> Path:
        return self.paths.data_dir / self.history.file_name


# =============================================================================
# Module-Level Functions
# =============================================================================


def _read_config_file(config_file: Path) -> dict[str, Any]:
    try:
        content = config_file.read_text(encoding="utf-8")
    except OSError as e:
        logger.warning(f"Failed to read config file {config_file}: {type(e).__name__}. Using defaults.")
        return {}

    if not content.strip():
        return {}

    try:
        loaded = yaml.safe_load(content)
    except yaml.YAMLError as e:
        logger.warning(f"Failed to parse config file {config_file}: {e}. Using defaults.")
        return {}

    if loaded is None:
        return {}
    if not isinstance(loaded, dict):
        logger.warning(f"Config file {config_file} has unexpected format. Using defaults.")
        return {}
    return loaded


def load_config(path: Path | None = None) -> AppConfig:
    """Load configuration from file, environment, and defaults.

    If no config file is found, defaults and environment variables are used.
    A malformed file or invalid values are logged and replaced by defaults.

    Args:
        path: Optional path to a YAML config file. If None, searches
            ``./relationscope.yaml`` and ``~/.relationscope/config.yaml``.

    Returns:
        Fully-populated AppConfig instance.
    """
    search_paths = [
        path,
        Path("./relationscope.yaml"),
        Path("./relationscope.yml"),
        Path.home() / ".relationscope" / "config.yaml",
    ]

    config_data: dict[str, Any] = {}
    for search_path in search_paths:
        if search_path is not None and search_path.exists():
            config_data = _read_config_file(search_path)
            logger.debug(f"Loaded config file {search_path}")
            break

    try:
        return AppConfig(**config_data)
    except ValueError as e:
        logger.warning(f"Error parsing config values: {e}. Using defaults.")
        return AppConfig()


@functools.lru_cache(maxsize=1)
def get_config() -> AppConfig:
    """Get the cached configuration singleton."""
    return load_config()


def get_api_key() -> SecretStr:
    """Return the Gemini API key.

    Sources tried in order: ``GEMINI_API_KEY``, ``API_KEY``, system keyring.

    Raises:
        APIKeyNotFoundError: If no source holds a key.
    """
    for name in API_KEY_ENV_VARS:
        value = os.environ.get(name, "").strip()
        if value:
            logger.debug(f"API key loaded from environment variable {name}")
            return SecretStr(value)

    try:
        value = keyring.get_password(KEYRING_SERVICE, KEYRING_USERNAME)
    except keyring.errors.KeyringError as e:
        logger.debug(f"Keyring access failed: {type(e).__name__}")
        value = None

    if value and value.strip():
        logger.debug("API key loaded from system keyring")
        return SecretStr(value.strip())

    raise APIKeyNotFoundError(
        "No API key found. Set the GEMINI_API_KEY environment variable "
        f"or store a key with: keyring set {KEYRING_SERVICE} {KEYRING_USERNAME}"
    )


def reset_config() -> None:
    """Clear the configuration cache so the next get_config() reloads."""
    get_config.cache_clear()
