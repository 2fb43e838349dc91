"""
Batch poll scheduler.

One tick: fetch the chain height once, fetch every tracked address's recent
transactions concurrently, classify each against the frozen height and post
alerts for transitions. Ticks run back to back with a fixed delay and never
overlap. A slower summary sweep reports addresses that are still bursting.
"""

import asyncio
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence, Tuple
import structlog

from wallet_monitor.core.classifier import BurstClassifier
from wallet_monitor.core.fetcher import ResilientFetcher
from wallet_monitor.core.state_store import WalletStateStore
from wallet_monitor.models.wallet import Transaction, Transition
from wallet_monitor.utils.formatting import short_address
from wallet_monitor.utils.logging import bind_tick
from wallet_monitor.utils.notifier import WebhookNotifier

logger = structlog.get_logger(__name__)


@dataclass
class TickEvent:
    """A transition observed during a tick."""
    address: str
    transition: Transition
    transaction: Transaction


class BatchPollScheduler:
    """
    Drives the fetch/classify/notify cycle.

    Features:
    - Single height snapshot per tick
    - Bounded fan-out over tracked addresses
    - Periodic summary of bursting addresses
    - Cooperative shutdown through an asyncio.Event
    """

    def __init__(self,
                 fetcher: ResilientFetcher,
                 classifier: BurstClassifier,
                 state_store: WalletStateStore,
                 addresses_fn: Callable[[], Dict[str, str]],
                 notifier: WebhookNotifier,
                 poll_interval: float = 1.0,
                 summary_interval: float = 300.0,
                 fan_out_limit: Optional[int] = None,
                 extra_checks: Sequence[Callable] = (),
                 label_fn: Optional[Callable[[str], Optional[str]]] = None):
        """
        Args:
            addresses_fn: Returns the tracked lowercase address -> label mapping
            fan_out_limit: Max concurrent address fetches (None = unbounded)
            extra_checks: Coroutine functions run after every tick
            label_fn: Current label for an address at alert time; defaults to
                the label snapshot taken at the start of the tick
        """
        self.fetcher = fetcher
        self.classifier = classifier
        self.state_store = state_store
        self.addresses_fn = addresses_fn
        self.label_fn = label_fn
        self.notifier = notifier
        self.poll_interval = poll_interval
        self.summary_interval = summary_interval
        self.fan_out_limit = fan_out_limit
        self.extra_checks = list(extra_checks)

        self.logger = logger.bind(component="scheduler")
        self._stop_event: Optional[asyncio.Event] = None
        self._tasks: List[asyncio.Task] = []

        # Stats
        self.ticks = 0
        self.skipped_ticks = 0
        self.alerts_sent = 0

    async def _fetch_all(self, addresses: Sequence[str]) -> List[List[Transaction]]:
        """Fetch every address concurrently, bounded by the fan-out limit."""
        limit = self.fan_out_limit or max(1, len(addresses))
        semaphore = asyncio.Semaphore(limit)

        async def fetch_one(address: str) -> List[Transaction]:
            async with semaphore:
                try:
                    return await self.fetcher.fetch_recent_transactions(address)
                except Exception as e:
                    # Isolated to this address for this tick
                    self.logger.error("Address fetch failed",
                                      address=address,
                                      error=str(e) or type(e).__name__)
                    return []

        return await asyncio.gather(*(fetch_one(address) for address in addresses))

    async def run_tick(self, now: Optional[int] = None) -> List[TickEvent]:
        """Run one poll/classify/notify cycle."""
        self.ticks += 1
        bind_tick(self.ticks)

        chain_height = await self.fetcher.fetch_chain_height()
        if chain_height is None or chain_height <= 0:
            self.skipped_ticks += 1
            self.logger.warning("No chain height available, skipping tick")
            return []

        labels = self.addresses_fn()
        addresses = list(labels)
        if not addresses:
            return []

        results = await self._fetch_all(addresses)

        events: List[TickEvent] = []
        for address, transactions in zip(addresses, results):
            if not transactions:
                continue

            transition = self.classifier.evaluate(
                self.state_store, address, transactions, chain_height, now
            )
            if transition is Transition.NO_CHANGE:
                continue

            latest_tx = transactions[0]
            events.append(TickEvent(address, transition, latest_tx))

            label = self.label_fn(address) if self.label_fn else labels.get(address)
            if await self.notifier.send_transition_alert(transition, latest_tx, address, label):
                self.alerts_sent += 1

        return events

    def bursting_summary(self, chain_height: int) -> List[Tuple[str, int, int]]:
        """(address, block lag, last block) for every bursting address."""
        return [
            (address, chain_height - state.last_tx_block, state.last_tx_block)
            for address, state in self.state_store.bursting()
        ]

    async def report_summary(self) -> List[Tuple[str, int, int]]:
        """Log addresses that are still bursting with their block lag."""
        chain_height = await self.fetcher.fetch_chain_height()
        if not chain_height:
            return []

        summary = self.bursting_summary(chain_height)
        for address, lag, last_block in summary:
            self.logger.info("Active spammer status",
                            address=short_address(address),
                            blocks_behind=lag,
                            last_block=last_block,
                            current_block=chain_height)
        return summary

    async def _wait(self, stop_event: asyncio.Event, timeout: float) -> bool:
        """Sleep up to ``timeout``; True if a stop was requested meanwhile."""
        try:
            await asyncio.wait_for(stop_event.wait(), timeout=timeout)
            return True
        except asyncio.TimeoutError:
            return stop_event.is_set()

    async def run(self, stop_event: asyncio.Event) -> None:
        """Poll until ``stop_event`` is set."""
        self.logger.info("Starting poll loop", poll_interval=self.poll_interval)

        while not stop_event.is_set():
            try:
                events = await self.run_tick()
                if events:
                    self.logger.info("Tick produced transitions", count=len(events))

                for check in self.extra_checks:
                    await check()

            except asyncio.CancelledError:
                raise
            except Exception as e:
                self.logger.error("Error in batch monitoring", error=str(e), exc_info=True)

            if await self._wait(stop_event, self.poll_interval):
                break

        self.logger.info("Poll loop stopped", ticks=self.ticks, alerts=self.alerts_sent)

    async def summary_loop(self, stop_event: asyncio.Event) -> None:
        """Report bursting addresses every ``summary_interval`` seconds."""
        while not stop_event.is_set():
            if await self._wait(stop_event, self.summary_interval):
                break
            try:
                await self.report_summary()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                self.logger.error("Error in summary sweep", error=str(e))

    async def start(self) -> asyncio.Event:
        """Start the poll and summary loops as background tasks."""
        self._stop_event = asyncio.Event()
        self._tasks = [
            asyncio.create_task(self.run(self._stop_event)),
            asyncio.create_task(self.summary_loop(self._stop_event)),
        ]
        return self._stop_event

    async def stop(self) -> None:
        """Request shutdown and wait for in-flight work to finish."""
        if self._stop_event is not None:
            self._stop_event.set()

        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

        self._tasks = []
        self.logger.info("Scheduler stopped")
