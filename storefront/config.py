"""
Configuration module for the Storefront AI assistant backend.

Loads environment variables and validates required settings.
"""
import os
from typing import List
from dotenv import load_dotenv

# Load .env file
load_dotenv()

# Numbered key variables scanned at startup (GEMINI_API_KEY_1 ... GEMINI_API_KEY_10)
MAX_NUMBERED_API_KEYS = 10


def _load_api_keys() -> List[str]:
    """
    Collect Gemini API keys from the environment, in order.

    GEMINI_API_KEYS (comma separated) comes first, then the numbered
    GEMINI_API_KEY_<n> variables. Blank entries and duplicates are dropped.
    """
    keys: List[str] = []

    for key in os.getenv("GEMINI_API_KEYS", "").split(","):
        key = key.strip()
        if key and key not in keys:
            keys.append(key)

    for n in range(1, MAX_NUMBERED_API_KEYS + 1):
        key = os.getenv(f"GEMINI_API_KEY_{n}", "").strip()
        if key and key not in keys:
            keys.append(key)

    return keys


class Settings:
    """Application settings loaded from environment variables."""

    # Supabase Configuration (catalog + product requests)
    SUPABASE_URL: str = os.getenv("SUPABASE_URL", "")
    # Server-side key: the catalog is shared, not per-user data
    SUPABASE_SERVICE_KEY: str = os.getenv("SUPABASE_SERVICE_KEY", "")

    # Google Gemini API (credential pool)
    GEMINI_API_KEYS: List[str] = _load_api_keys()
    GEMINI_MODEL: str = os.getenv("GEMINI_MODEL", "gemini-2.0-flash")

    # Admin endpoints (key pool reset, product request review)
    ADMIN_API_TOKEN: str = os.getenv("ADMIN_API_TOKEN", "")

    # Recommendation tuning
    RECOMMENDATION_MAX_RESULTS: int = int(os.getenv("RECOMMENDATION_MAX_RESULTS", "5"))
    RECOMMENDATION_CONFIDENCE_THRESHOLD: float = float(
        os.getenv("RECOMMENDATION_CONFIDENCE_THRESHOLD", "0.5")
    )
    RANKING_KEYWORD_WEIGHT: float = float(os.getenv("RANKING_KEYWORD_WEIGHT", "0.6"))
    RANKING_PRICE_WEIGHT: float = float(os.getenv("RANKING_PRICE_WEIGHT", "0.3"))
    RANKING_FEATURED_WEIGHT: float = float(os.getenv("RANKING_FEATURED_WEIGHT", "0.1"))

    # Timeouts (seconds)
    INTENT_TIMEOUT_SECONDS: float = float(os.getenv("INTENT_TIMEOUT_SECONDS", "15"))
    CATALOG_TIMEOUT_SECONDS: float = float(os.getenv("CATALOG_TIMEOUT_SECONDS", "5"))

    # Credential pool health
    KEY_FAILURE_CEILING: int = int(os.getenv("KEY_FAILURE_CEILING", "3"))
    KEY_RATE_LIMIT_BASE_COOLDOWN_SECONDS: float = float(
        os.getenv("KEY_RATE_LIMIT_BASE_COOLDOWN_SECONDS", "60")
    )
    KEY_RATE_LIMIT_MAX_COOLDOWN_SECONDS: float = float(
        os.getenv("KEY_RATE_LIMIT_MAX_COOLDOWN_SECONDS", "900")
    )
    KEY_UNKNOWN_FAILURE_COOLDOWN_SECONDS: float = float(
        os.getenv("KEY_UNKNOWN_FAILURE_COOLDOWN_SECONDS", "30")
    )

    # Application Settings
    ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # Storefront web origins; only read in production
    CORS_ALLOWED_ORIGINS: List[str] = [
        origin.strip()
        for origin in os.getenv("CORS_ALLOWED_ORIGINS", "").split(",")
        if origin.strip()
    ]

    @classmethod
    def validate(cls) -> None:
        """
        Validate that all required settings are configured.

        Missing Gemini keys are NOT an error here: the recommendation
        feature is disabled and /health reports "degraded" instead.

        Raises:
            ValueError: If any required setting is missing.
        """
        required_settings = {
            "SUPABASE_URL": cls.SUPABASE_URL,
            "SUPABASE_SERVICE_KEY": cls.SUPABASE_SERVICE_KEY,
        }

        missing = [key for key, value in required_settings.items() if not value]

        if missing:
            raise ValueError(
                f"Missing required environment variables: {', '.join(missing)}. "
                "Please check your .env file."
            )

    @classmethod
    def is_production(cls) -> bool:
        """Check if running in production environment."""
        return cls.ENVIRONMENT.lower() == "production"

    @classmethod
    def is_development(cls) -> bool:
        """Check if running in development environment."""
        return cls.ENVIRONMENT.lower() == "development"


# Create a singleton instance
settings = Settings()

# Validate settings on module import (will fail fast if misconfigured)
# Skip validation during tests or when importing for introspection
if os.getenv("VALIDATE_CONFIG", "true").lower() == "true":
    try:
        settings.validate()
    except ValueError as e:
        # In development, warn but don't crash
        if settings.is_development():
            print(f"⚠️  Warning: {e}")
            print("   The app may not work correctly until you configure your .env file.")
        else:
            raise
