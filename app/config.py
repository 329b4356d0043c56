"""Application configuration."""

from datetime import timedelta
from functools import lru_cache

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        env_parse_none_str="null",
    )

    # Application
    app_name: str = Field(default="Trainer Auth API", alias="APP_NAME")
    app_version: str = Field(default="0.1.0", alias="APP_VERSION")
    environment: str = Field(default="development", alias="ENVIRONMENT")
    debug: bool = Field(default=False, alias="DEBUG")
    api_v1_prefix: str = Field(default="/api/v1", alias="API_V1_PREFIX")

    # Server
    host: str = Field(default="0.0.0.0", alias="HOST")
    port: int = Field(default=8000, alias="PORT")
    reload: bool = Field(default=False, alias="RELOAD")

    # Database
    database_url: str = Field(..., alias="DATABASE_URL")

    # JWT
    jwt_secret_key: str = Field(..., alias="JWT_SECRET_KEY")
    jwt_algorithm: str = Field(default="HS256", alias="JWT_ALGORITHM")
    access_token_expire_minutes: int = Field(default=15, alias="ACCESS_TOKEN_EXPIRE_MINUTES")
    refresh_token_expire_days: int = Field(default=15, alias="REFRESH_TOKEN_EXPIRE_DAYS")
    refresh_token_bytes: int = Field(default=48, alias="REFRESH_TOKEN_BYTES")

    # Password hashing
    bcrypt_rounds: int = Field(default=12, alias="BCRYPT_ROUNDS")

    # Expired refresh token cleanup
    refresh_token_sweep_enabled: bool = Field(default=True, alias="REFRESH_TOKEN_SWEEP_ENABLED")
    refresh_token_sweep_interval_seconds: int = Field(
        default=3600, alias="REFRESH_TOKEN_SWEEP_INTERVAL_SECONDS"
    )

    # Firebase
    firebase_credentials_path: str | None = Field(
        default=None,
        alias="FIREBASE_CREDENTIALS_PATH",
        description="Path to Firebase service account JSON file",
    )

    firebase_config_json: str | None = Field(
        default=None,
        alias="FIREBASE_CONFIG_JSON",
        description="Raw JSON string of the Firebase service account",
    )

    # Google People API (birthday / gender extras)
    google_people_api_url: str = Field(
        default="https://people.googleapis.com/v1/people/me",
        alias="GOOGLE_PEOPLE_API_URL",
    )

    # CORS
    cors_origins_str: str = Field(
        default="http://localhost:3001",
        alias="CORS_ORIGINS",
    )
    cors_allow_credentials: bool = Field(default=True, alias="CORS_ALLOW_CREDENTIALS")

    @property
    def cors_origins(self) -> list[str]:
        """Get CORS origins as a list."""
        if isinstance(self.cors_origins_str, str):
            return [origin.strip() for origin in self.cors_origins_str.split(",") if origin.strip()]
        return [self.cors_origins_str]

    # Logging
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_format: str = Field(default="json", alias="LOG_FORMAT")

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment.lower() == "production"

    @property
    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.environment.lower() == "development"


class AuthConfig(BaseModel):
    """
    Immutable token configuration.

    Built once at startup and handed to the token issuer and the refresh
    token service; neither reads settings on its own.
    """

    model_config = ConfigDict(frozen=True)

    jwt_secret_key: str = Field(..., min_length=1)
    jwt_algorithm: str = "HS256"
    access_token_ttl: timedelta = timedelta(minutes=15)
    refresh_token_ttl: timedelta = timedelta(days=15)
    # token_urlsafe(191) is 255 characters, the width of refresh_tokens.token
    refresh_token_bytes: int = Field(default=48, ge=16, le=191)
    bcrypt_rounds: int = Field(default=12, ge=4, le=31)

    @field_validator("access_token_ttl", "refresh_token_ttl")
    @classmethod
    def _positive_ttl(cls, value: timedelta) -> timedelta:
        if value <= timedelta(0):
            raise ValueError("token TTL must be positive")
        return value

    @classmethod
    def from_settings(cls, settings: Settings) -> "AuthConfig":
        """Build the token configuration from application settings."""
        return cls(
            jwt_secret_key=settings.jwt_secret_key,
            jwt_algorithm=settings.jwt_algorithm,
            access_token_ttl=timedelta(minutes=settings.access_token_expire_minutes),
            refresh_token_ttl=timedelta(days=settings.refresh_token_expire_days),
            refresh_token_bytes=settings.refresh_token_bytes,
            bcrypt_rounds=settings.bcrypt_rounds,
        )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()  # type: ignore[call-arg]


@lru_cache
def get_auth_config() -> AuthConfig:
    """Get cached token configuration."""
    return AuthConfig.from_settings(get_settings())


# Global settings instance
settings = get_settings()
