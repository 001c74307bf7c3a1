from __future__ import annotations

from zoneinfo import ZoneInfo

from loguru import logger

from volmon.config import Settings


def validate_runtime_config(settings: Settings) -> None:
    """Validate configuration and abort early if values are inconsistent."""

    logger.info(
        "config resolved",
        base_url=settings.YAHOO_BASE_URL,
        universe=settings.universe_list(),
        threshold=settings.VOL_ALERT_THRESHOLD,
        max_days_to_expiry=settings.MAX_DAYS_TO_EXPIRY,
        timezone=settings.TIMEZONE,
    )

    if not settings.YAHOO_BASE_URL.startswith(("http://", "https://")):
        raise RuntimeError(f"Invalid YAHOO_BASE_URL: {settings.YAHOO_BASE_URL}")

    if not settings.universe_list():
        raise RuntimeError("UNIVERSE is empty")

    if settings.MAX_DAYS_TO_EXPIRY < 0:
        raise RuntimeError("MAX_DAYS_TO_EXPIRY must be >= 0")

    if settings.PROVIDER_CALL_DELAY_SECONDS < 0 or settings.PROVIDER_TIMEOUT_SECONDS <= 0:
        raise RuntimeError("Provider delay must be >= 0 and timeout > 0")

    if settings.TELEGRAM_ENABLED and (not settings.TELEGRAM_BOT_TOKEN or not settings.TELEGRAM_CHAT_ID):
        logger.warning(
            "Telegram enabled but missing config",
            enabled=settings.TELEGRAM_ENABLED,
            missing_token=not bool(settings.TELEGRAM_BOT_TOKEN),
            missing_chat_id=not bool(settings.TELEGRAM_CHAT_ID),
        )

    if settings.YAHOO_BASE_URL.endswith("/"):
        logger.warning(
            "Yahoo base url has trailing slash; recommend removing for consistency",
            base_url=settings.YAHOO_BASE_URL,
        )

    try:
        ZoneInfo(settings.TIMEZONE)
    except Exception as exc:  # noqa: BLE001
        raise RuntimeError(f"Invalid TIMEZONE: {settings.TIMEZONE}") from exc
