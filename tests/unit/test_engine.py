"""
Unit Tests for the Order Book Engine

End-to-end through one engine instance with a fake transport and the real OKX
connector: frames in, BookUpdate pushes out.

Run with:
    pytest tests/unit/test_engine.py -v
"""

import asyncio
import json
from decimal import Decimal

import pytest

from core.engine import OrderBookEngine
from core.retry import RetrySchedule
from core.schemas import ConnectionState, ConnectionStatus
from exchanges.okx import OKXVenue
from tests.fakes import FakeConnector, settle, wait_until


def okx_frame(bids=(), asks=(), action="update"):
    return json.dumps({
        "arg": {"channel": "books", "instId": "BTC-USDT"},
        "action": action,
        "data": [{
            "bids": [[p, s, "0", "1"] for p, s in bids],
            "asks": [[p, s, "0", "1"] for p, s in asks],
            "ts": "1704110400000",
        }],
    })


def prices(ladder):
    return [level.price for level in ladder]


def make_engine(connector, throttle=0.0, **options):
    updates = []
    engine = OrderBookEngine(
        OKXVenue(),
        "BTC-USDT",
        listener=updates.append,
        throttle=throttle,
        heartbeat_interval=60.0,
        retry=options.pop("retry", RetrySchedule(initial_delay=0.01, max_delay=0.04, max_attempts=5)),
        transport_factory=connector,
        **options,
    )
    return engine, updates


class TestPublishing:
    """Tests for frames flowing into published snapshots"""

    @pytest.mark.asyncio
    async def test_status_then_snapshot(self):
        connector = FakeConnector(frames=[
            okx_frame(bids=[("100", "2"), ("99", "3")], action="snapshot"),
        ])
        engine, updates = make_engine(connector)

        engine.start()
        await settle()

        statuses = [update.status for update in updates]
        assert statuses[:2] == [ConnectionStatus.CONNECTING, ConnectionStatus.CONNECTED]
        assert updates[0].snapshot is None

        connector.last.feed(okx_frame(asks=[("101", "1")]))
        await settle()

        snapshot = updates[-1].snapshot
        assert updates[-1].status is ConnectionStatus.CONNECTED
        assert prices(snapshot.bids) == [Decimal("100"), Decimal("99")]
        assert [level.total for level in snapshot.bids] == [Decimal("2"), Decimal("5")]
        assert prices(snapshot.asks) == [Decimal("101")]
        assert snapshot.spread == Decimal("1")
        assert snapshot.mid_price == Decimal("100.5")
        assert engine.latest_snapshot == snapshot
        await engine.stop()

    @pytest.mark.asyncio
    async def test_subscription_message_sent(self):
        connector = FakeConnector()
        engine, _ = make_engine(connector)

        engine.start()
        await settle()

        assert json.loads(connector.last.sent[0]) == {
            "op": "subscribe",
            "args": [{"channel": "books", "instId": "BTC-USDT"}],
        }
        await engine.stop()

    @pytest.mark.asyncio
    async def test_noise_frames_ignored(self):
        connector = FakeConnector(frames=[
            "pong",
            "not json",
            json.dumps({"event": "subscribe", "arg": {"channel": "books", "instId": "BTC-USDT"}}),
            okx_frame(bids=[("abc", "1")]),
        ])
        engine, updates = make_engine(connector)

        engine.start()
        await settle()

        assert engine.publish_count == 0
        assert engine.dropped_frames == 1
        assert all(update.snapshot is None for update in updates)
        assert engine.status is ConnectionStatus.CONNECTED
        await engine.stop()

    @pytest.mark.asyncio
    async def test_unchanged_ladder_does_not_publish(self):
        connector = FakeConnector(frames=[
            okx_frame(bids=[("100", "1")]),
            okx_frame(bids=[("100", "1")]),
            okx_frame(asks=[("200", "0")]),
        ])
        engine, _ = make_engine(connector)

        engine.start()
        await settle()

        assert engine.publish_count == 1
        await engine.stop()

    @pytest.mark.asyncio
    async def test_throttle_coalesces_burst(self):
        connector = FakeConnector()
        engine, updates = make_engine(connector, throttle=0.05)

        engine.start()
        await settle()
        for price in ("100", "101", "102", "103"):
            connector.last.feed(okx_frame(bids=[(price, "1")]))
        await settle()

        assert engine.publish_count == 1
        assert engine.scheduler.pending

        await wait_until(lambda: engine.publish_count == 2)
        assert prices(updates[-1].snapshot.bids) == [Decimal(p) for p in ("103", "102", "101", "100")]
        await engine.stop()

    @pytest.mark.asyncio
    async def test_depth_limit(self):
        connector = FakeConnector(frames=[
            okx_frame(bids=[(str(p), "1") for p in range(100, 120)], action="snapshot"),
        ])
        engine, _ = make_engine(connector, depth=5)

        engine.start()
        await settle()

        assert prices(engine.latest_snapshot.bids) == [Decimal(p) for p in range(119, 114, -1)]
        await engine.stop()

    @pytest.mark.asyncio
    async def test_failing_listener_does_not_break_engine(self):
        connector = FakeConnector(frames=[okx_frame(bids=[("100", "1")])])
        engine, updates = make_engine(connector)

        def broken(update):
            raise RuntimeError("consumer bug")

        engine.add_listener(broken)
        engine.start()
        await settle()

        assert engine.publish_count == 1
        assert updates[-1].snapshot is not None
        engine.remove_listener(broken)
        await engine.stop()


class TestReconnect:
    """Tests for ladder and scheduler behaviour across reconnects"""

    @pytest.mark.asyncio
    async def test_reconnect_starts_from_fresh_ladder(self):
        connector = FakeConnector()
        engine, updates = make_engine(connector)

        engine.start()
        await settle()
        connector.last.feed(okx_frame(bids=[("100", "1"), ("99", "1")], asks=[("101", "1")]))
        await settle()
        stale = engine.latest_snapshot

        connector.last.drop(1006)
        await settle()

        assert updates[-1].status is ConnectionStatus.CONNECTING
        assert updates[-1].state is ConnectionState.RECONNECTING
        assert updates[-1].attempt == 1
        assert updates[-1].snapshot == stale

        await wait_until(lambda: engine.state is ConnectionState.CONNECTED and connector.calls == 2)
        assert updates[-1].state is ConnectionState.CONNECTED
        assert updates[-1].snapshot is None
        assert engine.latest_snapshot is None

        connector.last.feed(okx_frame(bids=[("50", "1")]))
        await settle()

        assert prices(engine.latest_snapshot.bids) == [Decimal("50")]
        assert engine.latest_snapshot.asks == ()
        await engine.stop()

    @pytest.mark.asyncio
    async def test_drop_cancels_pending_publish(self):
        connector = FakeConnector()
        engine, _ = make_engine(connector, throttle=10.0)

        engine.start()
        await settle()
        connector.last.feed(okx_frame(bids=[("100", "1")]))
        connector.last.feed(okx_frame(bids=[("101", "1")]))
        await settle()
        assert engine.scheduler.pending

        connector.last.drop(1006)
        await settle()
        assert not engine.scheduler.pending
        await engine.stop()

    @pytest.mark.asyncio
    async def test_first_publish_after_reconnect_is_immediate(self):
        connector = FakeConnector()
        engine, _ = make_engine(connector, throttle=10.0)

        engine.start()
        await settle()
        connector.last.feed(okx_frame(bids=[("100", "1")]))
        await settle()
        assert engine.publish_count == 1

        connector.last.drop(1006)
        await wait_until(lambda: engine.state is ConnectionState.CONNECTED and connector.calls == 2)
        connector.last.feed(okx_frame(bids=[("100", "1")]))
        await settle()

        assert engine.publish_count == 2
        await engine.stop()

    @pytest.mark.asyncio
    async def test_exhausted_retries_report_error(self):
        connector = FakeConnector(fail_always=OSError("refused"))
        engine, updates = make_engine(
            connector,
            retry=RetrySchedule(initial_delay=0.001, max_delay=0.002, max_attempts=2),
        )

        engine.start()
        await wait_until(lambda: engine.status is ConnectionStatus.ERROR)

        assert updates[-1].status is ConnectionStatus.ERROR
        assert ConnectionStatus.FALLBACK not in {update.status for update in updates}
        await engine.stop()


class TestStop:
    """Tests for engine teardown"""

    @pytest.mark.asyncio
    async def test_stop_discards_everything(self):
        connector = FakeConnector(frames=[okx_frame(bids=[("100", "1")])])
        engine, updates = make_engine(connector, throttle=10.0)

        engine.start()
        await settle()
        connector.last.feed(okx_frame(bids=[("101", "1")]))
        await settle()
        assert engine.scheduler.pending
        transport = connector.last

        await engine.stop()

        assert transport.closed
        assert not engine.scheduler.pending
        assert engine.latest_snapshot is None
        assert engine.merger.bids == ()
        assert engine.state is ConnectionState.IDLE
        assert updates[-1].status is ConnectionStatus.DISCONNECTED
        assert updates[-1].snapshot is None

        count = len(updates)
        transport.feed(okx_frame(bids=[("102", "1")]))
        await asyncio.sleep(0.02)
        assert len(updates) == count
