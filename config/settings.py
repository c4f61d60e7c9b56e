"""
Configuration settings for the application
"""
from pathlib import Path
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

LOGS_DIR = Path("./logs")

# Normalized tier IDs
TIER_FREE = "free"
TIER_SMART = "smart"
TIER_PRO = "pro"


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        populate_by_name=True,  # Allow both field name and alias
        extra="ignore",
    )

    # Session cookie verification (issued by the auth layer)
    jwt_secret_key: Optional[str] = Field(default=None, alias="JWT_SECRET_KEY")

    # Stripe billing configuration
    stripe_secret_key: Optional[str] = Field(default=None, alias="STRIPE_SECRET_KEY")
    stripe_webhook_secret: Optional[str] = Field(default=None, alias="STRIPE_WEBHOOK_SECRET")

    # Stripe price IDs per tier and billing interval
    stripe_price_smart_monthly: Optional[str] = Field(default=None, alias="STRIPE_PRICE_SMART_MONTHLY")
    stripe_price_smart_yearly: Optional[str] = Field(default=None, alias="STRIPE_PRICE_SMART_YEARLY")
    stripe_price_pro_monthly: Optional[str] = Field(default=None, alias="STRIPE_PRICE_PRO_MONTHLY")
    stripe_price_pro_yearly: Optional[str] = Field(default=None, alias="STRIPE_PRICE_PRO_YEARLY")

    # Infrastructure configuration
    database_url: Optional[str] = Field(default="sqlite+aiosqlite:///./pantry.db", alias="DATABASE_URL")

    # Frontend configuration
    frontend_url: Optional[str] = Field(default="http://localhost:5173", alias="FRONTEND_URL")

    # Environment configuration
    env: Optional[str] = Field(default=None, alias="ENV")
    log_dir: Path = Field(default=LOGS_DIR, alias="LOG_DIR")

    # Realtime channel
    ws_reconnect_delay_seconds: float = Field(default=3.0, alias="WS_RECONNECT_DELAY_SECONDS")
    ws_ping_interval_seconds: float = Field(default=30.0, alias="WS_PING_INTERVAL_SECONDS")
    notice_duration_seconds: float = Field(default=3.0, alias="NOTICE_DURATION_SECONDS")

    def price_ids(self) -> dict:
        """Stripe price IDs keyed by tier then interval"""
        return {
            TIER_SMART: {
                "monthly": self.stripe_price_smart_monthly or "",
                "yearly": self.stripe_price_smart_yearly or "",
            },
            TIER_PRO: {
                "monthly": self.stripe_price_pro_monthly or "",
                "yearly": self.stripe_price_pro_yearly or "",
            },
        }


# Instantiate settings object
settings = Settings()

# Determine if we're in production mode
IS_PRODUCTION = bool(settings.env and settings.env.lower() == "production")
