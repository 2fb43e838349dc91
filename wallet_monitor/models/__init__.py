"""Data models and configuration."""

from wallet_monitor.models.config import MonitorConfig
from wallet_monitor.models.wallet import Transaction, Transition, WalletState

__all__ = [
    "MonitorConfig",
    "Transaction",
    "Transition",
    "WalletState",
]
