"""Configuration management for the PayPal RESTful integration."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

ENDPOINT_SANDBOX = "https://api-m.sandbox.paypal.com/"
ENDPOINT_PRODUCTION = "https://api-m.paypal.com/"


class PayPalSettings(BaseSettings):
    """PayPal REST API credentials and transport settings."""

    environment: str = Field(
        default="Sandbox",
        description="'Production' selects the live endpoint; anything else uses the sandbox",
    )
    client_id: str = Field(default="", description="OAuth2 client id")
    client_secret: str = Field(default="", description="OAuth2 client secret")
    connect_timeout_seconds: float = Field(default=10.0, description="Connect timeout")
    timeout_seconds: float = Field(default=45.0, description="Total request timeout")
    module_version: str = Field(default="1.0.0", description="Recorded as notify_version on ledger rows")

    @property
    def endpoint(self) -> str:
        """Base URL for the configured environment."""
        if self.environment == "Production":
            return ENDPOINT_PRODUCTION
        return ENDPOINT_SANDBOX


class LoggingSettings(BaseSettings):
    """Structured logging settings."""

    level: str = Field(default="INFO", description="Log level")
    format_as_json: bool = Field(default=True, description="Render logs as JSON")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Ledger storage
    database_url: str = Field(
        default="sqlite:///paypal_restful.db",
        description="SQLAlchemy URL of the transaction ledger database",
    )

    # Application
    debug: bool = Field(default=False, description="Debug mode")

    paypal: PayPalSettings = Field(default_factory=PayPalSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="PAYPALR_",
        case_sensitive=False,
        env_nested_delimiter="__",
    )


# Global settings instance
settings = Settings()
