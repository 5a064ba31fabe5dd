"""App settings — loaded from environment."""
from __future__ import annotations

import os
from typing import Optional

from dotenv import load_dotenv

load_dotenv()


def _env(*keys: str) -> Optional[str]:
    """First non-blank value among ``keys``, trimmed."""
    for key in keys:
        value = (os.getenv(key) or "").strip()
        if value:
            return value
    return None


def _site_url() -> str:
    explicit = _env("SITE_URL", "NEXT_PUBLIC_SITE_URL")
    if explicit:
        return explicit.rstrip("/")
    vercel_host = _env("VERCEL_PROJECT_PRODUCTION_URL")
    if vercel_host:
        host = vercel_host.removeprefix("https://").removeprefix("http://")
        return f"https://{host}".rstrip("/")
    return "http://localhost:3000"


class Settings:
    # Runtime mode ("production" turns on live PA-API calls and strict checks)
    APP_ENV = (_env("APP_ENV") or "development").lower()

    # Public site (robots.txt / sitemap.xml)
    SITE_URL = _site_url()

    # Amazon Associates
    AMAZON_PARTNER_TAG = _env(
        "AMAZON_PARTNER_TAG",
        "NEXT_PUBLIC_AMAZON_PARTNER_TAG",
        "AMAZON_PAAPI_PARTNER_TAG",
        "AMAZON_PA_PARTNER_TAG",
    )

    # Amazon Product Advertising API 5
    AMAZON_PA_ACCESS_KEY = _env("AMAZON_PA_ACCESS_KEY")
    AMAZON_PA_SECRET_KEY = _env("AMAZON_PA_SECRET_KEY")
    AMAZON_PA_REGION = _env("AMAZON_PA_REGION")

    # Supabase (auth + PostgREST), server-side only
    SUPABASE_URL = _env("SUPABASE_URL", "NEXT_PUBLIC_SUPABASE_URL")
    SUPABASE_SERVICE_ROLE_KEY = _env("SUPABASE_SERVICE_ROLE_KEY")

    # Outbound HTTP
    HTTP_TIMEOUT_SECONDS = float(os.getenv("HTTP_TIMEOUT_SECONDS", "10"))

    # CORS origins (comma-separated, or * for dev)
    CORS_ORIGINS = [
        o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",")
    ]

    # Observability
    SENTRY_DSN = os.getenv("SENTRY_DSN", "")
    SENTRY_ENVIRONMENT = os.getenv("SENTRY_ENVIRONMENT", "development")
    SENTRY_TRACES_SAMPLE_RATE = float(os.getenv("SENTRY_TRACES_SAMPLE_RATE", "0.1"))

    # Logging
    LOG_FORMAT = os.getenv("LOG_FORMAT", "text")  # "text" or "json"
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    def is_production(self) -> bool:
        return self.APP_ENV == "production"


settings = Settings()
