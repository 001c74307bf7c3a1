from __future__ import annotations

import os
import platform
from typing import Any, Dict, List

from fastapi import FastAPI, HTTPException
from loguru import logger
from pydantic import BaseModel, Field

from volmon.config import MonitorConfig, get_settings
from volmon.services.alerts import send_telegram_message
from volmon.services.db import init_db
from volmon.services.monitor import get_monitor
from volmon.utils import configure_logging
from volmon.utils.config_validation import validate_runtime_config

settings = get_settings()
configure_logging("web", level=settings.LOG_LEVEL, json_logging=settings.LOG_JSON)

app = FastAPI(title="Options Volume Monitor")
validate_runtime_config(settings)
DEBUG_ENDPOINTS_ENABLED = os.getenv("DEBUG_ENDPOINTS_ENABLED", "false").lower() == "true"

logger.info(
    "web boot",
    settings=settings.non_secret_dict(),
    python_version=platform.python_version(),
)
init_db()


class FetchRequest(BaseModel):
    symbols: List[str] | None = None
    max_days_to_expiry: int | None = Field(default=None, ge=0)
    threshold: int | None = Field(default=None, ge=1, le=100)

    def to_config(self) -> MonitorConfig:
        defaults = settings.monitor_config()
        return MonitorConfig(
            symbols=self.symbols if self.symbols else defaults.symbols,
            max_days_to_expiry=(
                self.max_days_to_expiry if self.max_days_to_expiry is not None else defaults.max_days_to_expiry
            ),
            threshold=self.threshold if self.threshold is not None else defaults.threshold,
        )


@app.get("/health")
def health() -> Dict[str, str]:
    return {"status": "ok"}


@app.get("/config")
def config() -> Dict[str, Any]:
    return settings.non_secret_dict()


@app.get("/snapshots")
def snapshots() -> Dict[str, Any]:
    data = [snap.as_dict() for snap in get_monitor().get_snapshots()]
    return {"count": len(data), "snapshots": data}


@app.get("/alerts")
def alerts() -> Dict[str, Any]:
    data = [alert.as_dict() for alert in get_monitor().get_alerts()]
    return {"count": len(data), "alerts": data}


@app.post("/fetch-and-detect")
def fetch_and_detect(request: FetchRequest | None = None) -> Dict[str, Any]:
    cycle_config = (request or FetchRequest()).to_config()
    logger.info("Manual cycle triggered via API", symbols=cycle_config.symbols)
    return get_monitor().fetch_and_detect(cycle_config).as_dict()


@app.delete("/clear-data")
def clear_data() -> Dict[str, Any]:
    get_monitor().clear_all()
    return {"ok": True, "message": "All data cleared"}


@app.post("/alerts/{ledger_id}/notified")
def mark_notified(ledger_id: int) -> Dict[str, Any]:
    if not get_monitor().ledger.mark_notified(ledger_id):
        raise HTTPException(status_code=404, detail=f"Unknown alert {ledger_id}")
    return {"ok": True, "ledger_id": ledger_id}


@app.get("/debug/test-telegram")
def test_telegram() -> Dict[str, Any]:
    if not DEBUG_ENDPOINTS_ENABLED:
        raise HTTPException(status_code=404)
    status_code, response = send_telegram_message("✅ Telegram test successful – options volume monitor is live.")
    return {"ok": status_code == 200, "status_code": status_code, "response": response}
