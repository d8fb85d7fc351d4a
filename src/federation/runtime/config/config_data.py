"""Pydantic models for parsing the config.yaml configuration file.

This module contains Pydantic models that correspond to the structure of config.yaml.
These models handle validation and type conversion of the YAML configuration data.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field, computed_field

# Apple documents a maximum client secret lifetime of 6 months.
APPLE_ASSERTION_LIFETIME_SECONDS = 15777000


class ProviderConfig(BaseModel):
    """Static-secret OAuth2 provider configuration model."""

    client_id: str = Field(default="", description="Client ID issued by the provider")
    client_secret: str = Field(
        default="", description="Client secret issued by the provider"
    )
    authorization_endpoint: str = Field(description="Authorization endpoint URL")
    token_endpoint: str = Field(description="Token endpoint URL")
    userinfo_endpoint: str = Field(description="Userinfo/profile endpoint URL")
    scopes: list[str] = Field(
        default_factory=lambda: ["profile", "email"],
        description="Scopes to request during authentication",
    )
    enabled: bool = Field(default=True, description="Enable this provider")

    @computed_field
    @property
    def is_configured(self) -> bool:
        """A provider is usable only when both client credentials are present."""
        return self.enabled and bool(self.client_id) and bool(self.client_secret)


class GitHubProviderConfig(ProviderConfig):
    """GitHub needs an extra endpoint to look up private email addresses."""

    emails_endpoint: str = Field(
        default="https://api.github.com/user/emails",
        description="Endpoint listing the user's email addresses",
    )


class AppleProviderConfig(BaseModel):
    """Signed-assertion provider configuration model."""

    client_id: str = Field(default="", description="Services ID / bundle ID")
    team_id: str = Field(default="", description="Developer team ID (assertion issuer)")
    key_id: str = Field(default="", description="Signing key ID (assertion kid)")
    private_key: str = Field(
        default="", description="ES256 private key material, framing optional"
    )
    authorization_endpoint: str = Field(
        default="https://appleid.apple.com/auth/authorize"
    )
    token_endpoint: str = Field(default="https://appleid.apple.com/auth/token")
    jwks_uri: str = Field(default="https://appleid.apple.com/auth/keys")
    issuer: str = Field(
        default="https://appleid.apple.com",
        description="Identity token issuer and client assertion audience",
    )
    scopes: list[str] = Field(default_factory=lambda: ["name", "email"])
    assertion_lifetime_seconds: int = Field(
        default=APPLE_ASSERTION_LIFETIME_SECONDS,
        description="Lifetime of the generated client assertion",
    )
    verify_id_token: bool = Field(
        default=True,
        description="Verify identity token signature, issuer and audience",
    )
    enabled: bool = Field(default=True, description="Enable this provider")

    @computed_field
    @property
    def is_configured(self) -> bool:
        return self.enabled and all(
            (self.client_id, self.team_id, self.key_id, self.private_key)
        )


class FederationConfig(BaseModel):
    """Identity federation configuration model."""

    google: ProviderConfig = Field(
        default_factory=lambda: ProviderConfig(
            authorization_endpoint="https://accounts.google.com/o/oauth2/v2/auth",
            token_endpoint="https://oauth2.googleapis.com/token",
            userinfo_endpoint="https://www.googleapis.com/oauth2/v2/userinfo",
            scopes=["openid", "email", "profile"],
        )
    )
    github: GitHubProviderConfig = Field(
        default_factory=lambda: GitHubProviderConfig(
            authorization_endpoint="https://github.com/login/oauth/authorize",
            token_endpoint="https://github.com/login/oauth/access_token",
            userinfo_endpoint="https://api.github.com/user",
            scopes=["user:email"],
        )
    )
    facebook: ProviderConfig = Field(
        default_factory=lambda: ProviderConfig(
            authorization_endpoint="https://www.facebook.com/v19.0/dialog/oauth",
            token_endpoint="https://graph.facebook.com/v19.0/oauth/access_token",
            userinfo_endpoint="https://graph.facebook.com/me",
            scopes=["email"],
        )
    )
    apple: AppleProviderConfig = Field(default_factory=AppleProviderConfig)
    callback_path: str = Field(
        default="/auth/{provider}/callback",
        description="Callback path template appended to app.base_url",
    )
    http_timeout_seconds: float = Field(
        default=10.0, description="Timeout for every call to a provider"
    )
    link_requires_verified_email: bool = Field(
        default=False,
        description="Only link an existing account by email when the provider "
        "asserts the email is verified",
    )


class LoggingConfig(BaseModel):
    """Logging configuration model."""

    level: str = Field(default="INFO", description="Logging level")
    format: Literal["json", "plain"] = Field(default="json", description="Log format")
    file: str | None = Field(default=None, description="Log file path")
    max_size_mb: int = Field(default=10, description="Maximum log file size in MB")
    backup_count: int = Field(
        default=5, description="Number of backup log files to keep"
    )


class DatabaseConfig(BaseModel):
    """Database configuration model."""

    url: str = Field(
        default="sqlite:///./federation.db", description="Database connection URL"
    )
    pool_size: int = Field(default=10, description="Connection pool size")
    max_overflow: int = Field(default=10, description="Maximum pool overflow")
    pool_timeout: int = Field(default=30, description="Pool timeout in seconds")
    pool_recycle: int = Field(default=1800, description="Pool recycle time in seconds")
    create_tables: bool = Field(
        default=True, description="Create missing tables at startup"
    )


class RedisConfig(BaseModel):
    """Redis configuration model."""

    url: str = Field(default="", description="Redis connection URL")
    password: str | None = Field(
        default=None, description="Password for Redis authentication"
    )

    @computed_field
    @property
    def connection_string(self) -> str:
        """Construct the Redis connection string with password if provided."""
        if self.password and "@" not in self.url:
            parts = self.url.split("://", 1)
            if len(parts) == 2:
                scheme, rest = parts
                return f"{scheme}://:{self.password}@{rest}"
        return self.url


class SessionStorageConfig(BaseModel):
    """Where authenticated sessions are persisted."""

    backend: Literal["database", "redis", "memory"] = Field(
        default="database", description="Session storage backend"
    )


class DemoAccountConfig(BaseModel):
    """Local username/password account seeded at startup."""

    enabled: bool = Field(default=False, description="Seed the demo account")
    username: str = Field(default="demo")
    password: str | None = Field(default=None)
    email: str | None = Field(default=None)
    first_name: str = Field(default="Demo")
    last_name: str = Field(default="User")


class AppConfig(BaseModel):
    """Application configuration model."""

    environment: Literal["development", "production", "test"] = Field(
        default="development", description="Application environment"
    )
    base_url: str = Field(
        default="http://localhost:5000",
        description="Public base URL used to build provider callback URLs",
    )
    session_max_age: int = Field(
        default=7 * 24 * 3600, description="Session maximum idle age in seconds"
    )
    cors_origins: list[str] = Field(default_factory=list)

    @property
    def is_https(self) -> bool:
        return self.base_url.startswith("https://") or self.environment == "production"


class SecurityConfig(BaseModel):
    """Security configuration for authentication and sessions."""

    session_cookie_name: str = Field(default="sid", description="Session cookie name")
    secure_cookies: bool | None = Field(
        default=None,
        description="Force the Secure attribute; derived from app.base_url when unset",
    )
    cookie_samesite: Literal["auto", "lax", "strict", "none"] = Field(
        default="auto",
        description="SameSite attribute; 'auto' uses None over TLS so that "
        "cross-site form_post callbacks carry the cookie, Lax otherwise",
    )
    flow_state_ttl_seconds: int = Field(
        default=600, description="Maximum age of a pending login flow"
    )


class ConfigData(BaseModel):
    """Root configuration model that matches the config.yaml structure."""

    app: AppConfig = Field(
        default_factory=AppConfig, description="Application configuration"
    )
    security: SecurityConfig = Field(
        default_factory=SecurityConfig, description="Security configuration"
    )
    federation: FederationConfig = Field(
        default_factory=FederationConfig, description="Identity provider configuration"
    )
    session_storage: SessionStorageConfig = Field(
        default_factory=SessionStorageConfig, description="Session storage"
    )
    database: DatabaseConfig = Field(
        default_factory=DatabaseConfig, description="Database configuration"
    )
    redis: RedisConfig = Field(
        default_factory=RedisConfig, description="Redis configuration"
    )
    logging: LoggingConfig = Field(
        default_factory=LoggingConfig, description="Logging configuration"
    )
    demo_account: DemoAccountConfig = Field(
        default_factory=DemoAccountConfig, description="Demo account seeding"
    )
