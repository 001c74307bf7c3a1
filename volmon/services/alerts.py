from __future__ import annotations

from datetime import datetime, timezone
from typing import Any
from zoneinfo import ZoneInfo

import httpx
from loguru import logger

from volmon.config import get_settings
from volmon.pipeline.entities import VolumeAlert

settings = get_settings()


def send_telegram_message(text: str) -> tuple[int | None, str]:
    enabled = bool(settings.TELEGRAM_ENABLED)
    logger.debug(f"Telegram enabled: {enabled} (TELEGRAM_ENABLED={settings.TELEGRAM_ENABLED})")
    if not enabled:
        return None, "telegram-disabled"
    if not settings.TELEGRAM_BOT_TOKEN or not settings.TELEGRAM_CHAT_ID:
        return None, "telegram-missing-config"
    url = f"https://api.telegram.org/bot{settings.TELEGRAM_BOT_TOKEN}/sendMessage"
    payload = {"chat_id": settings.TELEGRAM_CHAT_ID, "text": text, "parse_mode": "Markdown"}
    try:
        resp = httpx.post(url, json=payload, timeout=10.0)
        return resp.status_code, resp.text
    except httpx.HTTPError as exc:
        logger.error(f"Telegram send failed: {exc}")
        return None, str(exc)


def _format_volume(value: Any) -> str:
    try:
        return f"{int(value):,}"
    except (TypeError, ValueError):
        return "N/A"


def _format_timestamp_local(ts: datetime) -> str:
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    local = ts.astimezone(ZoneInfo(settings.TIMEZONE))
    return local.strftime("%m-%d-%Y %I:%M %p %Z")


def build_alert_text(alert: VolumeAlert) -> str:
    lines = [
        f"📈 VOLUME SPIKE - {alert.ticker}",
        f"Underlying: {alert.underlying_ticker}",
        f"Volume: {_format_volume(alert.prior_volume)} → {_format_volume(alert.current_volume)} "
        f"(+{alert.volume_pct_change:.1f}%)",
        f"Snapshot: {alert.snapshot_date.isoformat()}",
        f"🕒 {_format_timestamp_local(alert.alert_timestamp)}",
    ]
    return "\n".join(lines)


def telegram_notifier(alert: VolumeAlert) -> bool:
    status_code, response = send_telegram_message(build_alert_text(alert))
    sent = status_code == 200
    result_label = "sent" if sent else "failed"
    logger.info(
        f"alert send result | ticker={alert.ticker} channel=telegram result={result_label}",
        ledger_id=alert.ledger_id,
        status_code=status_code,
    )
    if not sent:
        logger.debug("telegram response", ticker=alert.ticker, response=response)
    return sent
