from __future__ import annotations

from datetime import datetime, timezone
from typing import Dict, Iterable, List

from loguru import logger

from volmon.pipeline.entities import OptionSnapshot, VolumeAlert
from volmon.pipeline.generation_store import CURRENT, PREVIOUS, GenerationStore
from volmon.utils.math import pct_change

DEFAULT_THRESHOLD = 10.0


def find_volume_spikes(
    current: Iterable[OptionSnapshot],
    previous: Iterable[OptionSnapshot],
    threshold: float = DEFAULT_THRESHOLD,
    *,
    now: datetime | None = None,
) -> List[VolumeAlert]:
    """Compare two generations and return alerts ranked by % change, largest first.

    Contracts without a positive prior volume are never evaluated. The
    threshold is inclusive and applied to the unrounded change.
    """
    now = now or datetime.now(timezone.utc)
    prior_volumes: Dict[str, int] = {snap.ticker: snap.volume for snap in previous}

    alerts: List[VolumeAlert] = []
    next_id = 1
    for snap in current:
        prior = prior_volumes.get(snap.ticker)
        if not prior or prior <= 0:
            continue
        change = pct_change(snap.volume, prior)
        if change < threshold:
            continue
        alerts.append(
            VolumeAlert(
                id=next_id,
                ticker=snap.ticker,
                underlying_ticker=snap.underlying_ticker,
                snapshot_date=snap.snapshot_date,
                current_volume=snap.volume,
                prior_volume=prior,
                volume_pct_change=round(change, 1),
                alert_timestamp=now,
            )
        )
        next_id += 1

    return sorted(alerts, key=lambda a: a.volume_pct_change, reverse=True)


def detect_volume_spikes(
    store: GenerationStore,
    threshold: float = DEFAULT_THRESHOLD,
    *,
    now: datetime | None = None,
) -> List[VolumeAlert]:
    """Run spike detection on the store and rotate ``current`` into ``previous``.

    Read, compare and rotate happen under the store lock. Rotation runs even
    when nothing was emitted, so the first run seeds the baseline.
    """
    with store.locked():
        current = store.read(CURRENT)
        previous = store.read(PREVIOUS)
        alerts = find_volume_spikes(current, previous, threshold, now=now)
        store.rotate()

    logger.info(
        "volume spike detection",
        namespace=store.namespace,
        current=len(current),
        previous=len(previous),
        threshold=threshold,
        alerts=len(alerts),
        top=[{"ticker": a.ticker, "pct": a.volume_pct_change} for a in alerts[:5]],
    )
    return alerts
