"""
Unit tests for the batch poll scheduler.

Tests tick orchestration, bounded fan-out and lifecycle.
"""

import asyncio
import json
import pytest
from unittest.mock import AsyncMock, MagicMock, Mock

from wallet_monitor.core.classifier import BurstClassifier
from wallet_monitor.core.explorer_client import ExplorerClient
from wallet_monitor.core.fetcher import ResilientFetcher
from wallet_monitor.core.rate_limiter import KeyRotatedRateLimiter
from wallet_monitor.core.scheduler import BatchPollScheduler, TickEvent
from wallet_monitor.models.wallet import Transition


ADDRESSES = {"0x" + f"{i:02x}" * 20: f"0x{i:02x}{i:02x}{i:01x} (wallet {i})" for i in range(1, 6)}


@pytest.fixture
def fetcher():
    mock = Mock()
    mock.fetch_chain_height = AsyncMock(return_value=103)
    mock.fetch_recent_transactions = AsyncMock(return_value=[])
    return mock


def build_scheduler(fetcher, state_store, notifier, addresses=None, **kwargs):
    return BatchPollScheduler(
        fetcher,
        BurstClassifier(),
        state_store,
        lambda: dict(ADDRESSES if addresses is None else addresses),
        notifier,
        **kwargs,
    )


class TestRunTick:
    """Tests for a single poll/classify/notify cycle."""

    def test_skips_tick_without_height(self, fetcher, state_store, mock_notifier):
        fetcher.fetch_chain_height.return_value = None
        scheduler = build_scheduler(fetcher, state_store, mock_notifier)

        events = asyncio.run(scheduler.run_tick())

        assert events == []
        assert scheduler.skipped_ticks == 1
        fetcher.fetch_recent_transactions.assert_not_awaited()
        mock_notifier.send_transition_alert.assert_not_awaited()

    def test_zero_height_is_skipped(self, fetcher, state_store, mock_notifier):
        fetcher.fetch_chain_height.return_value = 0
        scheduler = build_scheduler(fetcher, state_store, mock_notifier)

        assert asyncio.run(scheduler.run_tick()) == []
        assert scheduler.skipped_ticks == 1

    def test_height_fetched_once_per_tick(self, fetcher, state_store, mock_notifier):
        scheduler = build_scheduler(fetcher, state_store, mock_notifier)

        asyncio.run(scheduler.run_tick())

        assert fetcher.fetch_chain_height.await_count == 1
        assert fetcher.fetch_recent_transactions.await_count == len(ADDRESSES)

    def test_burst_start_is_notified(self, fetcher, state_store, mock_notifier, make_tx, now):
        address = next(iter(ADDRESSES))
        burst = [make_tx(102, "0xc", recipient=address),
                 make_tx(101, "0xb", recipient=address),
                 make_tx(100, "0xa", recipient=address)]

        async def fetch(addr):
            return burst if addr == address else []

        fetcher.fetch_recent_transactions.side_effect = fetch
        scheduler = build_scheduler(fetcher, state_store, mock_notifier)

        events = asyncio.run(scheduler.run_tick(now=now))

        assert events == [TickEvent(address, Transition.BURST_STARTED, burst[0])]
        mock_notifier.send_transition_alert.assert_awaited_once_with(
            Transition.BURST_STARTED, burst[0], address, ADDRESSES[address]
        )
        assert scheduler.alerts_sent == 1
        assert state_store.get(address).is_bursting is True

    def test_failed_delivery_still_records_transition(self, fetcher, state_store, mock_notifier, burst_txs, now):
        fetcher.fetch_recent_transactions.return_value = burst_txs
        mock_notifier.send_transition_alert.return_value = False
        scheduler = build_scheduler(fetcher, state_store, mock_notifier, addresses={"0x" + "ab" * 20: "0xababa"})

        events = asyncio.run(scheduler.run_tick(now=now))

        assert len(events) == 1
        assert scheduler.alerts_sent == 0
        assert state_store.get("0x" + "ab" * 20).is_bursting is True

    def test_empty_results_do_not_create_state(self, fetcher, state_store, mock_notifier):
        scheduler = build_scheduler(fetcher, state_store, mock_notifier)

        asyncio.run(scheduler.run_tick())

        assert len(state_store) == 0

    def test_address_added_between_ticks_is_polled(self, fetcher, state_store, mock_notifier):
        tracked = {"0x" + "01" * 20: "a"}
        scheduler = BatchPollScheduler(fetcher, BurstClassifier(), state_store,
                                       lambda: dict(tracked), mock_notifier)

        async def scenario():
            await scheduler.run_tick()
            tracked["0x" + "02" * 20] = "b"
            await scheduler.run_tick()

        asyncio.run(scenario())

        polled = [call.args[0] for call in fetcher.fetch_recent_transactions.await_args_list]
        assert polled == ["0x" + "01" * 20, "0x" + "01" * 20, "0x" + "02" * 20]

    def test_fan_out_limit_bounds_concurrency(self, fetcher, state_store, mock_notifier):
        tracker = {"current": 0, "peak": 0}

        async def fetch(addr):
            tracker["current"] += 1
            tracker["peak"] = max(tracker["peak"], tracker["current"])
            await asyncio.sleep(0.01)
            tracker["current"] -= 1
            return []

        fetcher.fetch_recent_transactions.side_effect = fetch
        scheduler = build_scheduler(fetcher, state_store, mock_notifier, fan_out_limit=2)

        asyncio.run(scheduler.run_tick())

        assert tracker["peak"] == 2
        assert fetcher.fetch_recent_transactions.await_count == 5

    def test_unbounded_fan_out_runs_all_at_once(self, fetcher, state_store, mock_notifier):
        tracker = {"current": 0, "peak": 0}

        async def fetch(addr):
            tracker["current"] += 1
            tracker["peak"] = max(tracker["peak"], tracker["current"])
            await asyncio.sleep(0.01)
            tracker["current"] -= 1
            return []

        fetcher.fetch_recent_transactions.side_effect = fetch
        scheduler = build_scheduler(fetcher, state_store, mock_notifier)

        asyncio.run(scheduler.run_tick())

        assert tracker["peak"] == len(ADDRESSES)


class TestTickIsolation:
    """One address failing must not cost the other addresses their tick."""

    def test_failing_address_does_not_block_others(self, fetcher, state_store, mock_notifier, make_tx, now):
        bad, good = "0x" + "01" * 20, "0x" + "02" * 20
        burst = [make_tx(102, "0xc", recipient=good),
                 make_tx(101, "0xb", recipient=good),
                 make_tx(100, "0xa", recipient=good)]

        async def fetch(addr):
            if addr == bad:
                raise RuntimeError("unexpected body")
            return burst

        fetcher.fetch_recent_transactions.side_effect = fetch
        scheduler = build_scheduler(fetcher, state_store, mock_notifier,
                                    addresses={bad: "bad", good: "good"})

        events = asyncio.run(scheduler.run_tick(now=now))

        assert events == [TickEvent(good, Transition.BURST_STARTED, burst[0])]
        mock_notifier.send_transition_alert.assert_awaited_once()
        assert state_store.get(good).is_bursting is True
        assert state_store.get(bad) is None

    def test_html_answer_for_one_address(self, state_store, mock_notifier, fake_clock, now):
        """A gateway page for one address is retried, then that address sits out the tick."""
        bad, good = "0x" + "01" * 20, "0x" + "02" * 20
        records = [
            {"hash": f"0x{block:x}", "from": "0x" + "cd" * 20, "to": good,
             "value": "0", "blockNumber": str(block), "timeStamp": str(now), "input": "0x"}
            for block in (102, 101, 100)
        ]

        def answer(url, params=None, timeout=None):
            response = MagicMock()
            response.status = 200
            response.raise_for_status = Mock()
            if params["action"] == "eth_blockNumber":
                response.json = AsyncMock(return_value={"jsonrpc": "2.0", "id": 83, "result": "0x67"})
            elif params["address"] == bad:
                response.json = AsyncMock(
                    side_effect=json.JSONDecodeError("Expecting value", "<html>502</html>", 0))
            else:
                response.json = AsyncMock(return_value={"status": "1", "message": "OK", "result": records})
            context = MagicMock()
            context.__aenter__.return_value = response
            context.__aexit__.return_value = False
            return context

        session = MagicMock(closed=False)
        session.get.side_effect = answer

        async def scenario():
            limiter = KeyRotatedRateLimiter(["key"], 0.0, clock=fake_clock, sleep=fake_clock.sleep)
            fetcher = ResilientFetcher(ExplorerClient(session=session), limiter, state_store,
                                       sleep=fake_clock.sleep)
            scheduler = BatchPollScheduler(fetcher, BurstClassifier(), state_store,
                                           lambda: {bad: "bad", good: "good"}, mock_notifier)
            return await scheduler.run_tick(now=now)

        events = asyncio.run(scenario())

        assert [(e.address, e.transition) for e in events] == [(good, Transition.BURST_STARTED)]
        assert state_store.get(bad) is None
        # Backoff applies to the failing address only
        assert fake_clock.sleeps == [1.0, 2.0, 3.0]

    def test_label_fn_supplies_alert_label(self, fetcher, state_store, mock_notifier, burst_txs, now):
        address = "0x" + "ab" * 20
        fetcher.fetch_recent_transactions.return_value = burst_txs
        scheduler = build_scheduler(fetcher, state_store, mock_notifier,
                                    addresses={address: "stale"},
                                    label_fn=lambda addr: "0xababa (renamed)")

        asyncio.run(scheduler.run_tick(now=now))

        assert mock_notifier.send_transition_alert.await_args.args[3] == "0xababa (renamed)"


class TestSummary:

    def test_bursting_summary_reports_lag(self, fetcher, state_store, mock_notifier):
        state = state_store.get_or_create("0x" + "01" * 20)
        state.is_bursting = True
        state.last_tx_block = 90
        state_store.get_or_create("0x" + "02" * 20).last_tx_block = 95
        scheduler = build_scheduler(fetcher, state_store, mock_notifier)

        summary = asyncio.run(scheduler.report_summary())

        assert summary == [("0x" + "01" * 20, 13, 90)]


class TestLifecycle:
    """Tests for run loop, start and stop."""

    def test_start_and_stop(self, fetcher, state_store, mock_notifier):
        scheduler = build_scheduler(fetcher, state_store, mock_notifier,
                                    poll_interval=0.01, summary_interval=60)

        async def scenario():
            stop_event = await scheduler.start()
            await asyncio.sleep(0.05)
            await scheduler.stop()
            return stop_event

        stop_event = asyncio.run(scenario())

        assert stop_event.is_set()
        assert scheduler.ticks >= 1
        assert scheduler._tasks == []

    def test_tick_errors_do_not_stop_loop(self, fetcher, state_store, mock_notifier):
        calls = {"n": 0}

        async def scenario():
            stop_event = asyncio.Event()

            async def flaky_height():
                calls["n"] += 1
                if calls["n"] >= 3:
                    stop_event.set()
                raise RuntimeError("unexpected")

            fetcher.fetch_chain_height.side_effect = flaky_height
            scheduler = build_scheduler(fetcher, state_store, mock_notifier, poll_interval=0.001)
            await scheduler.run(stop_event)
            return scheduler

        scheduler = asyncio.run(scenario())

        assert calls["n"] == 3
        assert scheduler.ticks == 3

    def test_extra_checks_run_after_each_tick(self, fetcher, state_store, mock_notifier):
        check = AsyncMock()

        async def scenario():
            stop_event = asyncio.Event()

            async def check_and_stop():
                await check()
                stop_event.set()

            scheduler = build_scheduler(fetcher, state_store, mock_notifier,
                                        poll_interval=0.001, extra_checks=[check_and_stop])
            await scheduler.run(stop_event)

        asyncio.run(scenario())

        check.assert_awaited_once()
