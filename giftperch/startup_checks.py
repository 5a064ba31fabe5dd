"""Startup validation — catch misconfigurations before the app serves traffic."""
from __future__ import annotations

import logging
import sys

from config.settings import Settings, settings as default_settings

logger = logging.getLogger(__name__)


def validate_settings(settings: Settings = default_settings) -> list[str]:
    """Validate configuration. Returns list of warnings (empty = all good).

    Raises SystemExit for critical misconfigurations in production.
    """
    warnings: list[str] = []
    is_prod = settings.is_production()

    # Critical: every authenticated route needs Supabase
    if not settings.SUPABASE_URL or not settings.SUPABASE_SERVICE_ROLE_KEY:
        if is_prod:
            logger.critical("SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY are required in production.")
            sys.exit(1)
        warnings.append("Supabase not configured — authenticated routes will return 401")

    if not all([settings.AMAZON_PA_ACCESS_KEY, settings.AMAZON_PA_SECRET_KEY, settings.AMAZON_PA_REGION]):
        warnings.append("PA-API credentials incomplete — product search serves mock products")

    if not settings.AMAZON_PARTNER_TAG:
        warnings.append("AMAZON_PARTNER_TAG not set — affiliate links use the fallback tag")

    if is_prod and "*" in settings.CORS_ORIGINS:
        warnings.append("CORS_ORIGINS is set to * — restrict in production")

    for w in warnings:
        logger.warning("%s", w)

    if not warnings:
        logger.info("All startup checks passed")

    return warnings
