"""Application configuration using Pydantic v2 Settings.

Host-level settings loaded from environment variables (``ESI_`` prefix) or
a .env file. The substitution engine never reads these directly; they are
turned into an EsiConfig layer by ``Settings.to_config()``.
"""

import logging
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from esi_engine.core.options import DEFAULT_MAX_DEPTH, DEFAULT_TIMEOUT, EsiConfig

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    All settings have sensible defaults and can be overridden via
    environment variables or a .env file.
    """

    model_config = SettingsConfigDict(
        env_prefix="ESI_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ESI resolution
    base_url: str | None = Field(
        default=None,
        description="Base URL used to resolve relative include sources.",
    )
    headers: dict[str, str] = Field(
        default_factory=dict,
        description="Headers forwarded with every fragment request (JSON object).",
    )
    timeout: float = Field(
        default=DEFAULT_TIMEOUT,
        gt=0,
        description="Per-fragment fetch timeout in seconds.",
    )
    max_depth: int = Field(
        default=DEFAULT_MAX_DEPTH,
        ge=0,
        description="Maximum include nesting depth that is resolved.",
    )
    html_media_types: list[str] = Field(
        default_factory=lambda: ["text/html"],
        description="Response media types whose bodies are scanned for directives.",
    )

    # Strategy Selection
    scanner_type: str = Field(
        default="state_machine",
        description="Directive scanner strategy: 'state_machine'.",
    )
    fetcher_type: str = Field(
        default="httpx",
        description="Fragment fetcher strategy: 'httpx'.",
    )
    follow_redirects: bool = Field(
        default=True,
        description="Whether fragment requests follow redirects.",
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level: DEBUG, INFO, WARNING, ERROR.",
    )
    log_dir: Path | None = Field(
        default=None,
        description="Optional directory for info.log and error.log files.",
    )

    @field_validator("log_level")
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        """Normalize log level to uppercase."""
        return v.upper()

    @field_validator("html_media_types")
    @classmethod
    def normalize_media_types(cls, v: list[str]) -> list[str]:
        """Lowercase media types and drop parameters."""
        return [media_type.split(";")[0].strip().lower() for media_type in v]

    def to_config(self) -> EsiConfig:
        """Build the global ESI configuration layer from these settings."""
        return EsiConfig(
            base_url=self.base_url,
            headers=self.headers,
            timeout=self.timeout,
            max_depth=self.max_depth,
        )

    def configure_logging(self) -> None:
        """Configure global logging based on settings."""
        import structlog

        level = getattr(logging, self.log_level, logging.INFO)

        structlog.configure(
            processors=[
                structlog.stdlib.filter_by_level,
                structlog.stdlib.add_logger_name,
                structlog.stdlib.add_log_level,
                structlog.stdlib.PositionalArgumentsFormatter(),
                structlog.processors.TimeStamper(fmt="iso"),
                structlog.processors.StackInfoRenderer(),
                structlog.processors.format_exc_info,
                structlog.processors.JSONRenderer(),
            ],
            wrapper_class=structlog.stdlib.BoundLogger,
            context_class=dict,
            logger_factory=structlog.stdlib.LoggerFactory(),
            cache_logger_on_first_use=True,
        )

        logging.basicConfig(
            format="%(message)s",
            level=level,
        )

        logger.setLevel(level)


# Global settings instance
_settings: Settings | None = None


def get_settings() -> Settings:
    """Get or create the global Settings instance.

    Returns:
        The singleton Settings instance.
    """
    global _settings
    if _settings is None:
        _settings = Settings()
        _settings.configure_logging()
    return _settings
