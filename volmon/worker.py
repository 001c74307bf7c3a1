from __future__ import annotations

import asyncio
import platform

from loguru import logger

from volmon.config import get_settings
from volmon.services.db import init_db
from volmon.services.monitor import CycleResult, OptionsMonitor, get_monitor
from volmon.utils import configure_logging
from volmon.utils.config_validation import validate_runtime_config

settings = get_settings()
configure_logging("worker", level=settings.LOG_LEVEL, json_logging=settings.LOG_JSON)
validate_runtime_config(settings)
logger.info(
    "worker boot",
    settings=settings.non_secret_dict(),
    python_version=platform.python_version(),
)


def run_cycle_once(monitor: OptionsMonitor | None = None) -> CycleResult:
    monitor = monitor or get_monitor()
    result = monitor.fetch_and_detect(settings.monitor_config())
    failed = sorted({e.symbol for e in result.errors if e.stage == "provider"})
    if failed:
        logger.warning("cycle finished with provider failures", symbols=failed)
    return result


async def worker_loop() -> None:
    init_db()
    monitor = get_monitor()
    while True:
        try:
            run_cycle_once(monitor)
        except Exception as exc:  # noqa: BLE001
            logger.exception("worker loop error", error=str(exc))
        await asyncio.sleep(settings.SCAN_INTERVAL_SECONDS)


if __name__ == "__main__":
    asyncio.run(worker_loop())
