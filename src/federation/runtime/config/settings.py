"""Secrets and deployment values loaded from environment variables and .env files."""

from __future__ import annotations

from typing import Literal

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from src.federation.runtime.config.config_data import ConfigData


class EnvironmentVariables(BaseSettings):
    """Simple primitive values loaded from environment variables and .env files."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_ignore_empty=True,
        extra="ignore",
    )

    # Environment and deployment
    environment: Literal["development", "production", "test"] | None = Field(
        default=None, validation_alias=AliasChoices("APP_ENVIRONMENT", "ENVIRONMENT")
    )
    log_level: str | None = Field(default=None, validation_alias="LOG_LEVEL")
    base_url: str | None = Field(
        default=None, validation_alias=AliasChoices("APP_URL", "BASE_URL")
    )
    database_url: str | None = Field(default=None, validation_alias="DATABASE_URL")
    redis_url: str | None = Field(default=None, validation_alias="REDIS_URL")

    # Google
    google_client_id: str | None = Field(
        default=None,
        validation_alias=AliasChoices(
            "GOOGLE_OAUTH_CLIENT_ID",
            "SOCIAL_MEDIA_GOOGLE_CLIENT_ID",
            "GOOGLE_CLIENT_ID",
        ),
    )
    google_client_secret: str | None = Field(
        default=None,
        validation_alias=AliasChoices(
            "SOCIAL_MEDIA_GOOGLE_CLIENT_SECRET", "GOOGLE_CLIENT_SECRET"
        ),
    )

    # GitHub
    github_client_id: str | None = Field(default=None, validation_alias="GITHUB_CLIENT_ID")
    github_client_secret: str | None = Field(
        default=None, validation_alias="GITHUB_CLIENT_SECRET"
    )

    # Facebook
    facebook_app_id: str | None = Field(default=None, validation_alias="FACEBOOK_APP_ID")
    facebook_app_secret: str | None = Field(
        default=None, validation_alias="FACEBOOK_APP_SECRET"
    )

    # Apple
    apple_client_id: str | None = Field(
        default=None, validation_alias=AliasChoices("APPLE_BUNDLE_ID", "APPLE_CLIENT_ID")
    )
    apple_team_id: str | None = Field(default=None, validation_alias="APPLE_TEAM_ID")
    apple_key_id: str | None = Field(default=None, validation_alias="APPLE_KEY_ID")
    apple_private_key: str | None = Field(
        default=None, validation_alias="APPLE_PRIVATE_KEY"
    )

    # Demo account
    demo_password: str | None = Field(default=None, validation_alias="DEMO_PASSWORD")

    def apply_to(self, config: ConfigData) -> ConfigData:
        """Overlay the values that are set onto ``config`` and return it."""
        if self.environment:
            config.app.environment = self.environment
        if self.log_level:
            config.logging.level = self.log_level
        if self.base_url:
            config.app.base_url = self.base_url.rstrip("/")
        if self.database_url:
            config.database.url = self.database_url
        if self.redis_url:
            config.redis.url = self.redis_url

        fed = config.federation
        if self.google_client_id:
            fed.google.client_id = self.google_client_id
        if self.google_client_secret:
            fed.google.client_secret = self.google_client_secret
        if self.github_client_id:
            fed.github.client_id = self.github_client_id
        if self.github_client_secret:
            fed.github.client_secret = self.github_client_secret
        if self.facebook_app_id:
            fed.facebook.client_id = self.facebook_app_id
        if self.facebook_app_secret:
            fed.facebook.client_secret = self.facebook_app_secret
        if self.apple_client_id:
            fed.apple.client_id = self.apple_client_id
        if self.apple_team_id:
            fed.apple.team_id = self.apple_team_id
        if self.apple_key_id:
            fed.apple.key_id = self.apple_key_id
        if self.apple_private_key:
            fed.apple.private_key = self.apple_private_key

        if self.demo_password:
            config.demo_account.password = self.demo_password

        return config
