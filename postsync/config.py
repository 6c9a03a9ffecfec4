"""Application configuration loaded from environment variables."""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_API_TOKEN = "change-me-in-production"


class Settings(BaseSettings):
    """PostSync application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Core
    debug: bool = False
    api_token: str = DEFAULT_API_TOKEN

    # Database
    database_url: str = "sqlite+aiosqlite:///data/db/postsync.db"

    # Server
    host: str = "0.0.0.0"
    port: int = Field(default=8000, ge=1, le=65535)

    # Site
    site_url: str = "http://localhost:8000"
    site_name: str = "PostSync"

    # GitHub
    github_token: str = ""
    github_repository: str = ""
    github_branch: str = "master"
    github_api_url: str = "https://api.github.com"
    github_timeout_seconds: float = Field(default=30.0, gt=0)
    webhook_secret: str = ""

    # Import
    render_markdown: bool = False

    def validate_runtime_security(self) -> None:
        """Validate security-critical production settings."""
        if self.debug:
            return

        violations: list[str] = []
        if self.api_token == DEFAULT_API_TOKEN or len(self.api_token) < 32:
            violations.append("API_TOKEN must be overridden with a high-entropy value (>=32 chars)")
        if self.github_repository and "/" not in self.github_repository:
            violations.append("GITHUB_REPOSITORY must have the form owner/name")

        if violations:
            joined = "; ".join(violations)
            raise ValueError(f"Insecure production configuration: {joined}")

    @property
    def github_configured(self) -> bool:
        """True when both the token and the repository are set."""
        return bool(self.github_token) and bool(self.github_repository)
