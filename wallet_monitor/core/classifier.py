"""
Burst classification state machine.

Each tracked address is either Idle or Bursting. An address starts bursting
when its three newest incoming transactions landed within a few blocks of
each other and the newest one is still recent; it stops once no new
transaction arrived for a quiet period measured in blocks.
"""

import time
from typing import Optional, Sequence
import structlog

from wallet_monitor.core.state_store import WalletStateStore
from wallet_monitor.models.wallet import Transaction, Transition, WalletState

logger = structlog.get_logger(__name__)


class BurstClassifier:
    """Decides burst start/stop transitions for one address at a time."""

    def __init__(self,
                 hysteresis_seconds: int = 30,
                 max_block_gap: int = 3,
                 max_recent_blocks: int = 3,
                 quiet_blocks: int = 20,
                 window: int = 3):
        """
        Args:
            hysteresis_seconds: Minimum time between two transitions
            max_block_gap: Largest gap between consecutive burst transactions
            max_recent_blocks: Largest distance from the chain tip for a start
            quiet_blocks: Blocks without activity after which a burst ends
            window: Number of newest transactions considered
        """
        self.hysteresis_seconds = hysteresis_seconds
        self.max_block_gap = max_block_gap
        self.max_recent_blocks = max_recent_blocks
        self.quiet_blocks = quiet_blocks
        self.window = window

    def classify(self,
                 state: WalletState,
                 transactions: Sequence[Transaction],
                 chain_height: int,
                 now: Optional[int] = None) -> Transition:
        """
        Classify the newest transactions of an address and update its state.

        Args:
            state: The address's state, mutated on transition
            transactions: Newest-first incoming transactions
            chain_height: Height snapshot of the current tick
            now: Unix seconds, defaults to the wall clock
        """
        if now is None:
            now = int(time.time())

        recent = sorted(transactions[:self.window], key=lambda tx: tx.block_number, reverse=True)
        if not recent:
            return Transition.NO_CHANGE

        top = recent[0]

        # Already alerted on this transaction
        if top.hash == state.last_notified_hash:
            return Transition.NO_CHANGE

        if now - state.last_state_change_time < self.hysteresis_seconds:
            return Transition.NO_CHANGE

        blocks_since_last_tx = chain_height - top.block_number

        if state.is_bursting:
            # Only the quiet period can end a burst
            if blocks_since_last_tx > self.quiet_blocks:
                state.record_transition(False, top, now)
                return Transition.BURST_STOPPED
            return Transition.NO_CHANGE

        if len(recent) >= self.window and self._is_dense(recent):
            if blocks_since_last_tx <= self.max_recent_blocks:
                state.record_transition(True, top, now)
                return Transition.BURST_STARTED

        state.last_tx_block = top.block_number
        return Transition.NO_CHANGE

    def _is_dense(self, recent: Sequence[Transaction]) -> bool:
        gaps = [
            recent[i].block_number - recent[i + 1].block_number
            for i in range(len(recent) - 1)
        ]
        return all(gap <= self.max_block_gap for gap in gaps)

    def evaluate(self,
                 store: WalletStateStore,
                 address: str,
                 transactions: Sequence[Transaction],
                 chain_height: int,
                 now: Optional[int] = None) -> Transition:
        """Classify against the address's stored state, creating it if needed."""
        state = store.get_or_create(address)
        transition = self.classify(state, transactions, chain_height, now)

        if transition is not Transition.NO_CHANGE:
            logger.info("Burst state changed",
                       address=address,
                       transition=transition.value,
                       block=state.last_tx_block,
                       chain_height=chain_height)

        return transition
