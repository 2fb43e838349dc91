"""Per-address burst state store."""

from typing import Dict, Iterator, Optional, Tuple

from wallet_monitor.models.wallet import WalletState


class WalletStateStore:
    """
    Owns one WalletState per observed address.

    States are created lazily on first access and live for the whole
    process; addresses are never untracked. Keys are lowercase.
    """

    def __init__(self):
        self._states: Dict[str, WalletState] = {}

    def get_or_create(self, address: str) -> WalletState:
        key = address.lower()
        state = self._states.get(key)
        if state is None:
            state = WalletState()
            self._states[key] = state
        return state

    def get(self, address: str) -> Optional[WalletState]:
        return self._states.get(address.lower())

    def snapshot(self) -> Dict[str, WalletState]:
        """Shallow copy of the address -> state mapping."""
        return dict(self._states)

    def bursting(self) -> Iterator[Tuple[str, WalletState]]:
        for address, state in self._states.items():
            if state.is_bursting:
                yield address, state

    def max_last_tx_block(self) -> int:
        """Highest block seen across all states, 0 when nothing is known."""
        blocks = [s.last_tx_block for s in self._states.values() if s.last_tx_block > 0]
        return max(blocks) if blocks else 0

    def __len__(self) -> int:
        return len(self._states)

    def __contains__(self, address: str) -> bool:
        return address.lower() in self._states
