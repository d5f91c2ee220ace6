"""Application settings and configuration.

This module defines all configuration options for the ChatChain sync engine.
Settings are loaded from environment variables with sensible defaults.
"""

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Settings can be overridden via environment variables or .env files.
    """

    # Application metadata
    app_name: str = Field(default="ChatChain", alias="APP_NAME")
    app_version: str = Field(default="0.1.0", alias="APP_VERSION")
    debug: bool = Field(default=False, alias="DEBUG")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Bearer tokens are issued by the session service; we only verify them
    secret_key: str = Field(alias="SECRET_KEY")
    jwt_algorithm: str = Field(default="HS256", alias="JWT_ALGORITHM")

    # Remote ledger (shared relational store)
    database_url: str = Field(default="sqlite:///./chatchain.db", alias="DATABASE_URL")
    test_database_url: str | None = Field(default=None, alias="TEST_DATABASE_URL")
    use_testing_database: bool = Field(default=False, alias="USE_TEST_DATABASE")
    sql_debug: bool = Field(default=False, alias="SQL_DEBUG")

    # Local persistent state (message cache, deletion overlay, publish config)
    data_dir: Path = Field(default=Path("./.chatchain"), alias="CHATCHAIN_DATA_DIR")

    # Content-addressed publish target (Pinata-compatible IPFS pinning)
    pinata_api_key: str | None = Field(default=None, alias="PINATA_API_KEY")
    pinata_secret_api_key: str | None = Field(default=None, alias="PINATA_SECRET_API_KEY")
    pinata_api_url: str = Field(default="https://api.pinata.cloud", alias="PINATA_API_URL")
    ipfs_gateway_url: str = Field(
        default="https://gateway.pinata.cloud",
        alias="IPFS_GATEWAY_URL",
    )
    http_timeout_seconds: float = Field(default=10.0, alias="CHATCHAIN_HTTP_TIMEOUT_SECONDS")
    fallback_latency_seconds: float = Field(
        default=0.3,
        alias="CHATCHAIN_FALLBACK_LATENCY_SECONDS",
    )
    enrich_on_fetch: bool = Field(default=False, alias="CHATCHAIN_ENRICH_ON_FETCH")

    # Conversation refresh
    poll_interval_seconds: float = Field(default=3.0, alias="CHATCHAIN_POLL_INTERVAL_SECONDS")

    # CORS configuration for web frontend access
    cors_origins: list[str] = Field(default=["*"], alias="CORS_ORIGINS")
    cors_allow_credentials: bool = Field(default=True, alias="CORS_ALLOW_CREDENTIALS")
    cors_allow_methods: list[str] = Field(
        default=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        alias="CORS_ALLOW_METHODS",
    )
    cors_allow_headers: list[str] = Field(default=["*"], alias="CORS_ALLOW_HEADERS")

    model_config = SettingsConfigDict(
        env_file=".env",
        validate_assignment=True,
        populate_by_name=True,
        extra="ignore",
    )

    @property
    def effective_database_url(self) -> str:
        """Return the database URL respecting testing overrides."""
        if self.use_testing_database and self.test_database_url:
            return self.test_database_url
        return self.database_url

    @property
    def messages_path(self) -> Path:
        return self.data_dir / "messages.json"

    @property
    def deleted_messages_path(self) -> Path:
        return self.data_dir / "deleted_messages.json"

    @property
    def publish_config_path(self) -> Path:
        return self.data_dir / "publish_config.json"


settings = Settings()  # type: ignore[call-arg]
