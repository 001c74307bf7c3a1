"""Durable alert history.

The ledger is append-only and reads back most-recent-first: each ``append``
becomes a new batch, batches are returned newest first, and alerts inside a
batch keep the order they were appended in (the detector's ranking).
"""
from __future__ import annotations

import threading
from datetime import timezone
from typing import Callable, ContextManager, List, Sequence

from loguru import logger
from sqlalchemy import delete, func, select, update
from sqlalchemy.orm import Session

from volmon.models.alert import AlertRecord
from volmon.pipeline.entities import VolumeAlert
from volmon.services.db import session_scope

SessionFactory = Callable[[], ContextManager[Session]]


def _to_alert(row: AlertRecord) -> VolumeAlert:
    ts = row.alert_timestamp
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return VolumeAlert(
        id=row.alert_id,
        ticker=row.option_ticker,
        underlying_ticker=row.underlying_ticker,
        snapshot_date=row.snapshot_date,
        current_volume=row.current_volume,
        prior_volume=row.prior_volume,
        volume_pct_change=row.volume_pct_change,
        alert_timestamp=ts,
        notification_sent=row.notification_sent,
        ledger_id=row.ledger_id,
    )


class AlertLedger:
    def __init__(self, namespace: str = "default", session_factory: SessionFactory = session_scope):
        self.namespace = namespace
        self._session_factory = session_factory
        self._lock = threading.Lock()

    def append(self, alerts: Sequence[VolumeAlert]) -> List[VolumeAlert]:
        """Store ``alerts`` ahead of the existing history.

        Returns the stored alerts with their ``ledger_id`` filled in. An empty
        batch touches nothing.
        """
        if not alerts:
            return []

        with self._lock, self._session_factory() as session:
            last_batch = session.scalar(
                select(func.max(AlertRecord.batch_no)).where(AlertRecord.namespace == self.namespace)
            )
            batch_no = (last_batch or 0) + 1
            rows = [
                AlertRecord(
                    namespace=self.namespace,
                    batch_no=batch_no,
                    batch_pos=pos,
                    alert_id=alert.id,
                    option_ticker=alert.ticker,
                    underlying_ticker=alert.underlying_ticker,
                    snapshot_date=alert.snapshot_date,
                    current_volume=alert.current_volume,
                    prior_volume=alert.prior_volume,
                    volume_pct_change=alert.volume_pct_change,
                    alert_timestamp=alert.alert_timestamp,
                    notification_sent=alert.notification_sent,
                )
                for pos, alert in enumerate(alerts)
            ]
            session.add_all(rows)
            session.flush()
            stored = [_to_alert(row) for row in rows]

        logger.info("alerts appended to ledger", namespace=self.namespace, batch_no=batch_no, alerts=len(stored))
        return stored

    def read_all(self) -> List[VolumeAlert]:
        with self._session_factory() as session:
            rows = session.scalars(
                select(AlertRecord)
                .where(AlertRecord.namespace == self.namespace)
                .order_by(AlertRecord.batch_no.desc(), AlertRecord.batch_pos.asc())
            ).all()
            return [_to_alert(row) for row in rows]

    def mark_notified(self, ledger_id: int) -> bool:
        with self._lock, self._session_factory() as session:
            result = session.execute(
                update(AlertRecord)
                .where(AlertRecord.namespace == self.namespace, AlertRecord.ledger_id == ledger_id)
                .values(notification_sent=True)
            )
            updated = result.rowcount > 0
        if not updated:
            logger.warning("mark notified: unknown alert", namespace=self.namespace, ledger_id=ledger_id)
        return updated

    def clear(self) -> None:
        with self._lock, self._session_factory() as session:
            session.execute(delete(AlertRecord).where(AlertRecord.namespace == self.namespace))
        logger.info("alert ledger cleared", namespace=self.namespace)
