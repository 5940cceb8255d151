"""Application settings and configuration.

This module defines all configuration options for the TEASR Stage service.
Settings are loaded from environment variables with sensible defaults; the
master secret has no default and must always be provided.
"""

from decimal import Decimal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

PRODUCTION_ENVIRONMENT = "production"


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Settings can be overridden via environment variables or .env files.
    """

    # Application metadata
    app_name: str = Field(default="TEASR Stage", alias="APP_NAME")
    app_version: str = Field(default="0.1.0", alias="APP_VERSION")
    environment: str = Field(default="development", alias="APP_ENV")
    debug: bool = Field(default=False, alias="DEBUG")

    # Master secret used to wrap per-post content keys and to sign bearer tokens
    secret_key: str = Field(alias="SECRET_KEY")

    # Database configuration
    database_url: str = Field(default="sqlite+aiosqlite:///./teasr.db", alias="DATABASE_URL")
    sql_debug: bool = Field(default=False, alias="SQL_DEBUG")

    # Blob storage for encrypted media and blurred thumbnails
    blob_storage_dir: str = Field(default="./uploads", alias="BLOB_STORAGE_DIR")

    # Platform fee (flat, independent of the payment amount)
    platform_fee_amount: Decimal = Field(default=Decimal("0.05"), alias="PLATFORM_FEE_AMOUNT")
    platform_fee_currency: str = Field(default="USDC", alias="PLATFORM_FEE_CURRENCY")
    platform_wallet: str = Field(
        default="0x47aB5ba5f987A8f75f8Ef2F0D8FF33De1A04a020",
        alias="PLATFORM_WALLET",
    )
    solana_platform_wallet: str = Field(
        default="YOUR_SOLANA_WALLET_ADDRESS_HERE",
        alias="SOLANA_PLATFORM_WALLET",
    )

    # Investor pool defaults
    default_max_investor_slots: int = Field(
        default=10, ge=1, le=100, alias="DEFAULT_MAX_INVESTOR_SLOTS"
    )
    payment_max_attempts: int = Field(default=3, ge=1, alias="PAYMENT_MAX_ATTEMPTS")

    # Viral detection sweep
    viral_upvote_threshold: int = Field(default=10, ge=1, alias="VIRAL_UPVOTE_THRESHOLD")
    viral_sweep_enabled: bool = Field(default=True, alias="VIRAL_SWEEP_ENABLED")
    viral_sweep_interval_seconds: float = Field(
        default=300.0, alias="VIRAL_SWEEP_INTERVAL_SECONDS"
    )

    # Event fan-out; in-process when no Redis URL is configured
    redis_url: str | None = Field(default=None, alias="REDIS_URL")
    broadcast_channel: str = Field(default="teasr:events", alias="BROADCAST_CHANNEL")

    # Static USD price table consumed by the revenue reports
    usd_prices: dict[str, Decimal] = Field(
        default_factory=lambda: {
            "USDC": Decimal("1"),
            "SOL": Decimal("150"),
            "ETH": Decimal("3000"),
            "MATIC": Decimal("0.8"),
            "BNB": Decimal("600"),
        },
        alias="USD_PRICES",
    )

    # JWT authentication settings
    jwt_algorithm: str = Field(default="HS256", alias="JWT_ALGORITHM")
    access_token_expire_minutes: int = Field(
        default=60 * 24 * 30,
        alias="ACCESS_TOKEN_EXPIRE_MINUTES",
    )

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
        extra="ignore",
        populate_by_name=True,
    )

    @field_validator("secret_key")
    @classmethod
    def _require_secret(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("SECRET_KEY must be set to a non-empty value")
        return value

    @property
    def is_production(self) -> bool:
        """Return True when running with the production network table."""
        return self.environment.lower() == PRODUCTION_ENVIRONMENT

    @property
    def database_url_sync(self) -> str:
        """Return a sync-compatible database URL for tooling.

        Converts async driver URLs so Alembic can run migrations synchronously.
        """
        url = self.database_url
        if url.startswith("sqlite+aiosqlite"):
            return url.replace("sqlite+aiosqlite", "sqlite", 1)
        if url.startswith("postgresql+asyncpg"):
            return url.replace("postgresql+asyncpg", "postgresql+psycopg", 1)
        return url


settings = Settings()  # type: ignore[call-arg]
