"""Pytest configuration and fixtures for wallet monitor tests."""

import pytest
from typing import List
from unittest.mock import AsyncMock, Mock

from wallet_monitor.core.state_store import WalletStateStore
from wallet_monitor.models.wallet import Transaction


WATCHED = "0x" + "ab" * 20
OTHER = "0x" + "cd" * 20


# ============================================================================
# TIME FIXTURES
# ============================================================================

class FakeClock:
    """Manually advanced clock whose sleep moves time forward."""

    def __init__(self, start: float = 0.0):
        self.now = start
        self.sleeps: List[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture
def fake_clock():
    """Fake monotonic clock starting at 0."""
    return FakeClock()


@pytest.fixture
def now():
    """Fixed unix timestamp for classifier tests."""
    return 1_700_000_000


# ============================================================================
# SAMPLE DATA FIXTURES
# ============================================================================

@pytest.fixture
def watched_address():
    return WATCHED


@pytest.fixture
def make_tx():
    """Factory for incoming transactions to the watched address."""

    def _make(block: int, tx_hash: str = None, recipient: str = WATCHED,
              sender: str = OTHER, value: int = 0, timestamp: int = 0) -> Transaction:
        return Transaction(
            hash=tx_hash or f"0x{block:064x}",
            sender=sender,
            recipient=recipient,
            value=value,
            block_number=block,
            timestamp=timestamp,
        )

    return _make


@pytest.fixture
def burst_txs(make_tx):
    """Three transactions in consecutive blocks, newest first."""
    return [make_tx(102, "0xc"), make_tx(101, "0xb"), make_tx(100, "0xa")]


@pytest.fixture
def sample_txlist_response():
    """Explorer txlist answer with one incoming and one outgoing transaction."""
    return {
        "status": "1",
        "message": "OK",
        "result": [
            {
                "hash": "0xin",
                "from": OTHER,
                "to": WATCHED.upper().replace("0X", "0x"),
                "value": "1000000000000000000",
                "blockNumber": "120",
                "timeStamp": "1700000000",
                "input": "0x",
            },
            {
                "hash": "0xout",
                "from": WATCHED,
                "to": OTHER,
                "value": "0",
                "blockNumber": "119",
                "timeStamp": "1699999990",
                "input": "0xa9059cbb",
            },
        ],
    }


# ============================================================================
# COMPONENT FIXTURES
# ============================================================================

@pytest.fixture
def state_store():
    return WalletStateStore()


@pytest.fixture
def mock_notifier():
    """Notifier whose sends always succeed."""
    notifier = Mock()
    notifier.send_transition_alert = AsyncMock(return_value=True)
    notifier.send_transaction_alert = AsyncMock(return_value=True)
    notifier.send_status_report = AsyncMock(return_value=2)
    notifier.close = AsyncMock()
    return notifier
