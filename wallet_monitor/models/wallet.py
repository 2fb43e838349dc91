"""Wallet and transaction data models."""

from enum import Enum
from typing import Any, Dict
from dataclasses import dataclass


class Transition(str, Enum):
    """Outcome of a single burst classification."""
    NO_CHANGE = "no_change"
    BURST_STARTED = "burst_started"
    BURST_STOPPED = "burst_stopped"


@dataclass(frozen=True)
class Transaction:
    """Explorer transaction, as returned by the txlist endpoint."""
    hash: str
    sender: str
    recipient: str              # empty for contract creation
    value: int                  # wei
    block_number: int
    timestamp: int              # unix seconds
    input: str = ""

    @classmethod
    def from_api(cls, raw: Dict[str, Any]) -> "Transaction":
        """Build from the explorer's string-typed JSON record."""
        return cls(
            hash=raw["hash"],
            sender=raw.get("from") or "",
            recipient=raw.get("to") or "",
            value=int(raw.get("value") or 0),
            block_number=int(raw["blockNumber"]),
            timestamp=int(raw.get("timeStamp") or 0),
            input=raw.get("input") or "",
        )

    def is_incoming(self, address: str) -> bool:
        return self.recipient.lower() == address.lower()

    @property
    def value_eth(self) -> float:
        return self.value / 1e18


@dataclass
class WalletState:
    """Burst classification state for one address."""
    is_bursting: bool = False
    last_tx_block: int = 0
    last_notified_hash: str = ""
    last_state_change_time: int = 0

    def record_transition(self, bursting: bool, tx: Transaction, now: int) -> None:
        """Apply a state transition in one step."""
        self.is_bursting = bursting
        self.last_notified_hash = tx.hash
        self.last_tx_block = tx.block_number
        self.last_state_change_time = max(now, self.last_state_change_time)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "is_bursting": self.is_bursting,
            "last_tx_block": self.last_tx_block,
            "last_notified_hash": self.last_notified_hash,
            "last_state_change_time": self.last_state_change_time,
        }
