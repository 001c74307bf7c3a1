from __future__ import annotations

import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from functools import lru_cache
from typing import Any, Callable, Dict, List, Protocol

from loguru import logger

from volmon.config import MonitorConfig, get_settings
from volmon.errors import ProviderError
from volmon.models.cycle_run import CycleRun
from volmon.pipeline.entities import OptionSnapshot, OptionType, VolumeAlert
from volmon.pipeline.generation_store import GenerationStore
from volmon.pipeline.normalizer import days_to_expiry, normalize_contracts
from volmon.pipeline.spike_detector import detect_volume_spikes
from volmon.services.alerts import telegram_notifier
from volmon.services.db import session_scope
from volmon.services.ledger import AlertLedger
from volmon.services.pacing import CallPacer
from volmon.services.snapshot_store import PersistentGenerationStore
from volmon.services.yahoo_client import ChainOverview, YahooOptionsClient

settings = get_settings()

Notifier = Callable[[VolumeAlert], bool]


class OptionsProvider(Protocol):
    def get_chain_overview(self, symbol: str) -> ChainOverview: ...

    def get_contracts(self, symbol: str, expiry: int) -> Dict[str, List[Dict[str, Any]]]: ...


@dataclass
class CycleError:
    symbol: str
    stage: str
    message: str
    contract: str | None = None

    def as_dict(self) -> Dict[str, Any]:
        return {"symbol": self.symbol, "stage": self.stage, "message": self.message, "contract": self.contract}


@dataclass
class CycleResult:
    snapshot_count: int
    alerts: List[VolumeAlert] = field(default_factory=list)
    errors: List[CycleError] = field(default_factory=list)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "snapshot_count": self.snapshot_count,
            "alerts": [a.as_dict() for a in self.alerts],
            "errors": [e.as_dict() for e in self.errors],
        }


class OptionsMonitor:
    """Runs fetch → normalize → write → detect/rotate → ledger cycles.

    The store lock covers write, detect/rotate and the ledger append, so
    overlapping cycles reach the ledger in detection order. Provider calls
    and notifications run outside the lock.
    """

    def __init__(
        self,
        client: OptionsProvider | None = None,
        store: GenerationStore | None = None,
        ledger: AlertLedger | None = None,
        pacer: CallPacer | None = None,
        notifier: Notifier | None = telegram_notifier,
        max_expirations_per_symbol: int | None = None,
        record_runs: bool = True,
    ):
        self.client = client or YahooOptionsClient()
        self.store = store or PersistentGenerationStore(settings.STORE_NAMESPACE)
        self.ledger = ledger or AlertLedger(self.store.namespace)
        self.pacer = pacer or CallPacer(settings.PROVIDER_CALL_DELAY_SECONDS)
        self.notifier = notifier
        self.max_expirations_per_symbol = (
            max_expirations_per_symbol
            if max_expirations_per_symbol is not None
            else settings.MAX_EXPIRATIONS_PER_SYMBOL
        )
        self.record_runs = record_runs

    def _fetch_symbol(
        self, symbol: str, max_days_to_expiry: int, now: datetime, errors: List[CycleError]
    ) -> List[OptionSnapshot]:
        overview = self.client.get_chain_overview(symbol)
        expirations = [
            exp for exp in overview.expirations if 0 <= days_to_expiry(exp, now) <= max_days_to_expiry
        ]
        if self.max_expirations_per_symbol > 0:
            expirations = expirations[: self.max_expirations_per_symbol]
        logger.info(
            "expirations selected",
            symbol=symbol,
            spot=overview.spot_price,
            available=len(overview.expirations),
            selected=len(expirations),
            max_days_to_expiry=max_days_to_expiry,
        )

        snapshots: List[OptionSnapshot] = []
        for expiry in self.pacer.pace(expirations):
            chain = self.client.get_contracts(symbol, expiry)
            for option_type, key in ((OptionType.CALL, "calls"), (OptionType.PUT, "puts")):
                normalized, rejected = normalize_contracts(
                    chain.get(key) or [],
                    symbol=symbol,
                    option_type=option_type,
                    spot_price=overview.spot_price,
                    now=now,
                    expiry=expiry,
                )
                snapshots.extend(normalized)
                errors.extend(
                    CycleError(symbol=symbol, stage="normalize", message=str(exc), contract=exc.contract)
                    for exc in rejected
                )
        return snapshots

    def collect_snapshots(self, config: MonitorConfig, now: datetime) -> tuple[List[OptionSnapshot], List[CycleError]]:
        errors: List[CycleError] = []
        snapshots: List[OptionSnapshot] = []
        seen: set[str] = set()

        for symbol in self.pacer.pace(config.symbols):
            symbol_start = time.perf_counter()
            try:
                symbol_snapshots = self._fetch_symbol(symbol, config.max_days_to_expiry, now, errors)
            except ProviderError as exc:
                status_code = getattr(exc, "status_code", None)
                logger.warning(
                    f"symbol fetch failed | symbol={symbol} status={status_code}",
                    symbol=symbol,
                    stage="provider",
                    exception=exc.__class__.__name__,
                    message=str(exc),
                )
                errors.append(CycleError(symbol=symbol, stage="provider", message=str(exc)))
                continue

            duplicates = 0
            for snap in symbol_snapshots:
                if snap.ticker in seen:
                    duplicates += 1
                    continue
                seen.add(snap.ticker)
                snapshots.append(snap)
            if duplicates:
                logger.warning("duplicate tickers dropped", symbol=symbol, duplicates=duplicates)
            logger.info(
                "symbol fetched",
                symbol=symbol,
                contracts=len(symbol_snapshots) - duplicates,
                duration_ms=int((time.perf_counter() - symbol_start) * 1000),
            )

        return snapshots, errors

    def fetch_and_detect(self, config: MonitorConfig, *, now: datetime | None = None) -> CycleResult:
        now = now or datetime.now(timezone.utc)
        started = time.monotonic()
        logger.info(
            f"cycle start | symbols={len(config.symbols)} threshold={config.threshold}",
            symbols=config.symbols,
            max_days_to_expiry=config.max_days_to_expiry,
        )

        snapshots, errors = self.collect_snapshots(config, now)

        with self.store.locked():
            self.store.write(snapshots)
            alerts = detect_volume_spikes(self.store, config.threshold, now=now)
            stored = self.ledger.append(alerts)

        if self.notifier is not None:
            stored = [self.notify_alert(alert) for alert in stored]

        result = CycleResult(snapshot_count=len(snapshots), alerts=stored, errors=errors)
        if self.record_runs:
            self._record_run(config, now, result)

        logger.info(
            f"cycle end | duration_ms={int((time.monotonic() - started) * 1000)} "
            f"snapshots={result.snapshot_count} alerts={len(result.alerts)} errors={len(errors)}"
        )
        return result

    def notify_alert(self, alert: VolumeAlert) -> VolumeAlert:
        """Hand one alert to the notifier and flip ``notification_sent`` on success."""
        if self.notifier is None or alert.notification_sent:
            return alert
        try:
            sent = bool(self.notifier(alert))
        except Exception as exc:  # noqa: BLE001
            logger.opt(exception=exc).error("notifier failed", ticker=alert.ticker, ledger_id=alert.ledger_id)
            return alert
        if sent and alert.ledger_id is not None and self.ledger.mark_notified(alert.ledger_id):
            alert.notification_sent = True
        return alert

    def _record_run(self, config: MonitorConfig, started_at: datetime, result: CycleResult) -> None:
        notes = "\n".join(f"{e.symbol}:{e.stage}:{e.message}" for e in result.errors if e.stage == "provider")
        try:
            with session_scope() as session:
                session.add(
                    CycleRun(
                        namespace=self.store.namespace,
                        started_at=started_at,
                        finished_at=datetime.now(timezone.utc),
                        symbols=list(config.symbols),
                        threshold=config.threshold,
                        snapshot_count=result.snapshot_count,
                        alert_count=len(result.alerts),
                        errors_count=len(result.errors),
                        notes=notes or None,
                    )
                )
        except Exception as exc:  # noqa: BLE001
            logger.exception("cycle run persist failed", error=str(exc))

    def get_snapshots(self) -> List[OptionSnapshot]:
        return list(self.store.latest())

    def get_alerts(self) -> List[VolumeAlert]:
        return self.ledger.read_all()

    def clear_all(self) -> None:
        with self.store.locked():
            self.store.clear()
            self.ledger.clear()


@lru_cache(maxsize=1)
def get_monitor() -> OptionsMonitor:
    return OptionsMonitor()
