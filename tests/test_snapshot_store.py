from datetime import datetime, timezone

import pytest

from factories import make_snapshot
from fakes import FakeProvider
from volmon.config import MonitorConfig
from volmon.errors import StateError
from volmon.pipeline.generation_store import CURRENT, PREVIOUS
from volmon.pipeline.spike_detector import detect_volume_spikes
from volmon.services.ledger import AlertLedger
from volmon.services.monitor import OptionsMonitor
from volmon.services.pacing import CallPacer
from volmon.services.snapshot_store import PersistentGenerationStore

NOW = datetime(2024, 1, 10, 15, 0, tzinfo=timezone.utc)
TICKER = "AAPL 240115C00175000"


def test_generations_round_trip_through_the_database(db):
    store = PersistentGenerationStore("persist-test")
    snapshot = make_snapshot(TICKER, 1234, implied_volatility=32.5, greeks_source="provider")

    store.write([snapshot])

    assert PersistentGenerationStore("persist-test").read(CURRENT) == (snapshot,)


def test_never_written_is_distinct_from_written_empty(db):
    store = PersistentGenerationStore("persist-test")

    with pytest.raises(StateError):
        store.get(PREVIOUS)

    store.write([])
    store.rotate()

    assert store.get(PREVIOUS) == ()
    with pytest.raises(StateError):
        store.get(CURRENT)


def test_two_instances_share_rotation(db):
    web = PersistentGenerationStore("shared")
    worker = PersistentGenerationStore("shared")

    worker.write([make_snapshot(TICKER, 100)])
    worker.rotate()
    web.write([make_snapshot(TICKER, 200)])

    assert [s.volume for s in worker.read(PREVIOUS)] == [100]
    assert [s.volume for s in worker.read(CURRENT)] == [200]
    assert [s.volume for s in web.latest()] == [200]


def test_locked_block_commits_on_exit(db):
    store = PersistentGenerationStore("persist-test")
    other = PersistentGenerationStore("persist-test")
    store.write([make_snapshot(TICKER, 1000)])

    with store.locked():
        store.write([make_snapshot(TICKER, 1500)])
        alerts = detect_volume_spikes(store, 10, now=NOW)
        assert other.read(PREVIOUS) == ()

    assert [a.volume_pct_change for a in alerts] == [50.0]
    assert [s.volume for s in other.read(PREVIOUS)] == [1500]
    assert other.read(CURRENT) == ()


def test_failed_locked_block_is_rolled_back(db):
    store = PersistentGenerationStore("persist-test")
    store.write([make_snapshot(TICKER, 1000)])

    with pytest.raises(RuntimeError):
        with store.locked():
            store.rotate()
            raise RuntimeError("detector crashed")

    assert [s.volume for s in store.read(CURRENT)] == [1000]
    assert store.read(PREVIOUS) == ()


def test_namespaces_are_isolated_and_clear_is_scoped(db):
    first = PersistentGenerationStore("first")
    second = PersistentGenerationStore("second")
    first.write([make_snapshot(TICKER, 1)])
    second.write([make_snapshot(TICKER, 2)])

    second.clear()

    assert [s.volume for s in first.read(CURRENT)] == [1]
    assert second.latest() == ()


def test_separate_monitors_compare_against_one_baseline(db):
    def monitor_for(provider):
        return OptionsMonitor(
            client=provider,
            store=PersistentGenerationStore("deployment"),
            ledger=AlertLedger("deployment"),
            pacer=CallPacer(0),
            notifier=None,
            record_runs=False,
        )

    scheduled = monitor_for(FakeProvider(volumes={175.0: 1000}))
    manual = monitor_for(FakeProvider(volumes={175.0: 1300}))
    config = MonitorConfig(symbols=["AAPL"])

    scheduled.fetch_and_detect(config, now=NOW)

    assert [s.volume for s in manual.get_snapshots()] == [1000]

    result = manual.fetch_and_detect(config, now=NOW)

    assert [(a.prior_volume, a.current_volume) for a in result.alerts] == [(1000, 1300)]
    assert [a.ticker for a in scheduled.get_alerts()] == [TICKER]
