"""Application settings via pydantic-settings. Loads from environment and .env file."""

from __future__ import annotations

from pydantic import field_validator
from pydantic_settings import BaseSettings

from scorebook.models.events import Platform
from scorebook.models.templates import DEFAULT_TEMPLATE, template_ids


class Settings(BaseSettings):
    """Scorebook application configuration.

    All values can be overridden via environment variables or .env file.
    """

    # Database
    database_url: str = "sqlite+aiosqlite:///scorebook.db"

    # Environment
    scorebook_env: str = "development"

    # Matches
    scorebook_default_template: str = DEFAULT_TEMPLATE.id

    # Event source tagging for events created by this server
    scorebook_device_id: str = "scorebook-api"
    scorebook_platform: Platform = "api"

    # Logging
    scorebook_log_level: str = "INFO"

    model_config = {"env_prefix": "", "env_file": ".env", "extra": "ignore"}

    @field_validator("scorebook_default_template")
    @classmethod
    def _known_template(cls, value: str) -> str:
        """Reject a default template id that no registered template has."""
        if value not in template_ids():
            msg = f"Unknown default template {value!r}. Known: {', '.join(template_ids())}"
            raise ValueError(msg)
        return value
