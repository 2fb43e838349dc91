"""
Wallet Burst Monitor

Watches EVM addresses through a Basescan/Etherscan-compatible explorer API and
alerts when an address starts or stops receiving bursts of transactions.
"""

__version__ = "1.0.0"
__description__ = "Burst (spam) activity monitor for explorer-indexed EVM wallets"

from wallet_monitor.core.monitor import WalletMonitor
from wallet_monitor.core.classifier import BurstClassifier
from wallet_monitor.core.state_store import WalletStateStore
from wallet_monitor.models.config import MonitorConfig

__all__ = [
    "WalletMonitor",
    "BurstClassifier",
    "WalletStateStore",
    "MonitorConfig",
]
