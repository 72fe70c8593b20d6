"""
App configuration. All credentials from environment (no hardcoded secrets).

Load from .env via pydantic_settings. In production, set ENVIRONMENT=production
so provider credentials are validated at startup.
"""
from typing import Optional

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings from environment. Provider secrets are process-wide, never per tenant."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    database_url: str = "sqlite:///./churchledger.db"  # Use postgresql://... for production
    environment: str = "development"  # development | production (production validates secrets)
    session_cookie_name: str = "churchledger_session"

    # QuickBooks Online
    quickbooks_client_id: str = ""
    quickbooks_client_secret: str = ""
    quickbooks_redirect_uri: str = ""
    quickbooks_environment: str = "production"  # sandbox | production
    quickbooks_api_url: Optional[str] = None  # overrides the environment-derived base URL

    # Xero
    xero_client_id: str = ""
    xero_client_secret: str = ""
    xero_redirect_uri: str = ""
    xero_api_url: str = "https://api.xero.com"
    xero_income_account_code: str = "200"
    xero_bank_account_code: str = "090"

    # Ledger sync
    sync_batch_size: int = 100
    token_refresh_margin_seconds: int = 300
    http_timeout_seconds: float = 30.0

    # Rate limiting
    rate_limit_requests_per_minute_ip: int = 100
    rate_limit_requests_per_minute_user: int = 100
    rate_limit_sync_requests_per_minute: int = 10

    @model_validator(mode="after")
    def validate_production_secrets(self):
        """Fail fast in production if no ledger provider is fully configured."""
        if self.environment != "production":
            return self
        quickbooks_ready = bool(self.quickbooks_client_id and self.quickbooks_client_secret)
        xero_ready = bool(self.xero_client_id and self.xero_client_secret)
        if not (quickbooks_ready or xero_ready):
            raise ValueError(
                "In production, QUICKBOOKS_CLIENT_ID/SECRET or XERO_CLIENT_ID/SECRET must be set in .env"
            )
        return self


settings = Settings()
