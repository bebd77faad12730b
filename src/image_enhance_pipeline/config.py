"""Pipeline configuration via pydantic-settings (.env + env vars)."""

import sys
from pathlib import Path

from loguru import logger
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .errors import ConfigError


class PipelineConfig(BaseSettings):
    """All pipeline configuration with layered resolution:
    .env file < environment variables < constructor kwargs.

    Enhancement values (endpoint, model, quality, format) are kept as raw
    strings here and validated against their allow-lists by
    enhance.resolve_settings() so a bad value fails with the accepted list.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
    )

    # -- Dropbox auth --
    dropbox_access_token: str = ""
    dropbox_refresh_token: str = ""
    dropbox_app_key: str = ""
    dropbox_app_secret: str = ""

    # -- Dropbox folders --
    dropbox_input_path: str = "/INPUT"
    dropbox_output_path: str = "/OUTPUT"

    # -- Output naming --
    output_suffix: str = "_ENHANCED"
    output_format: str = ""  # empty = keep source extension

    # -- Scheduling --
    concurrency: int = Field(default=4, ge=1)

    # -- OpenAI --
    openai_api_key: str = ""
    openai_base_url: str = ""
    openai_image_endpoint: str = "responses"
    openai_image_model: str = "gpt-image-1.5"
    openai_responses_model: str = "gpt-5-mini"
    openai_image_quality: str = "medium"

    # -- State + logging --
    state_dir: Path = Path("/var/lib/image-enhance-pipeline")
    lock_dir: Path = Path("/var/lib/image-enhance-pipeline/locks")
    log_dir: Path = Path("/var/log/image-enhance-pipeline")
    log_level: str = "INFO"
    verbose: bool = False

    @property
    def cursor_db_path(self) -> Path:
        """Path to the SQLite database holding the listing cursor."""
        return self.state_dir / "cursor.db"

    @property
    def dropbox_auth_mode(self) -> str:
        """refresh_token, access_token, or none."""
        if self.dropbox_refresh_token.strip():
            return "refresh_token"
        if self.dropbox_access_token.strip():
            return "access_token"
        return "none"

    def require_dropbox_auth(self) -> None:
        """Raise ConfigError unless a usable Dropbox auth mode is configured."""
        mode = self.dropbox_auth_mode
        if mode == "refresh_token":
            if not self.dropbox_app_key.strip() or not self.dropbox_app_secret.strip():
                raise ConfigError(
                    "Missing DROPBOX_APP_KEY or DROPBOX_APP_SECRET for refresh "
                    "auth (required with DROPBOX_REFRESH_TOKEN)"
                )
        elif mode == "none":
            raise ConfigError(
                "Missing Dropbox auth: set DROPBOX_ACCESS_TOKEN or set "
                "DROPBOX_REFRESH_TOKEN + DROPBOX_APP_KEY + DROPBOX_APP_SECRET"
            )

    def require_openai_auth(self) -> None:
        if not self.openai_api_key.strip():
            raise ConfigError("Missing OPENAI_API_KEY")

    def ensure_dirs(self) -> None:
        """Create state, lock, and log directories if they don't exist."""
        for d in (self.state_dir, self.lock_dir, self.log_dir):
            d.mkdir(parents=True, exist_ok=True)

    def setup_logging(self) -> None:
        """Configure loguru for the pipeline."""
        logger.remove()  # Remove default stderr handler

        log_format = (
            "{time:YYYY-MM-DDTHH:mm:ssZ} | {level:<8} | "
            "{extra[stage]:<12} | {message}"
        )

        def _default_extra(record):
            record["extra"].setdefault("stage", "")
            return True

        logger.add(
            sys.stderr,
            format=log_format,
            level="DEBUG" if self.verbose else self.log_level.upper(),
            filter=_default_extra,
        )

        self.log_dir.mkdir(parents=True, exist_ok=True)
        logger.add(
            str(self.log_dir / "pipeline.log"),
            format=log_format,
            level="DEBUG",
            rotation="10 MB",
            retention="30 days",
            filter=_default_extra,
        )
