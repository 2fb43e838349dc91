"""Core wallet monitoring components."""

from wallet_monitor.core.rate_limiter import KeyRotatedRateLimiter, RotationCursor
from wallet_monitor.core.explorer_client import ExplorerClient, ExplorerAPIError
from wallet_monitor.core.fetcher import ResilientFetcher
from wallet_monitor.core.state_store import WalletStateStore
from wallet_monitor.core.classifier import BurstClassifier
from wallet_monitor.core.scheduler import BatchPollScheduler, TickEvent

__all__ = [
    "KeyRotatedRateLimiter",
    "RotationCursor",
    "ExplorerClient",
    "ExplorerAPIError",
    "ResilientFetcher",
    "WalletStateStore",
    "BurstClassifier",
    "BatchPollScheduler",
    "TickEvent",
]
