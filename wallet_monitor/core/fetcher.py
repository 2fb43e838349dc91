"""Rate-limited, retrying access to the explorer API."""

import asyncio
from typing import Awaitable, Callable, List, Optional, TypeVar
import structlog

from wallet_monitor.core.explorer_client import ExplorerClient
from wallet_monitor.core.rate_limiter import KeyRotatedRateLimiter
from wallet_monitor.core.state_store import WalletStateStore
from wallet_monitor.models.wallet import Transaction

logger = structlog.get_logger(__name__)

T = TypeVar("T")

_MISSING = object()


class ResilientFetcher:
    """
    Wraps explorer calls with key rotation, a timeout and linear backoff.

    Neither public method raises: after ``max_retries`` retries a transaction
    fetch degrades to an empty list and a height fetch to an estimate.
    """

    def __init__(self,
                 client: ExplorerClient,
                 limiter: KeyRotatedRateLimiter,
                 state_store: WalletStateStore,
                 page_size: int = 50,
                 max_retries: int = 3,
                 retry_delay: float = 1.0,
                 request_timeout: float = 10.0,
                 height_floor: Optional[int] = 24_000_000,
                 sleep: Callable[[float], Awaitable[None]] = asyncio.sleep):
        self.client = client
        self.limiter = limiter
        self.state_store = state_store
        self.page_size = page_size
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.request_timeout = request_timeout
        self.height_floor = height_floor
        self._sleep = sleep
        self.logger = logger.bind(component="fetcher")

    async def _call_with_retry(self,
                               operation: str,
                               call: Callable[[str], Awaitable[T]],
                               **log_context):
        """
        Run ``call(api_key)`` until it succeeds or retries are exhausted.

        Returns the call result, or ``_MISSING`` after the final failure.
        """
        attempt = 0
        while True:
            try:
                api_key = await self.limiter.acquire()
                return await asyncio.wait_for(call(api_key), timeout=self.request_timeout)
            except Exception as e:
                # ExplorerAPIError, timeouts and any unexpected client failure
                if attempt >= self.max_retries:
                    self.logger.error("API request failed after retries",
                                      operation=operation,
                                      retries=self.max_retries,
                                      error=str(e) or type(e).__name__,
                                      **log_context)
                    return _MISSING

                attempt += 1
                delay = attempt * self.retry_delay
                self.logger.warning("API request failed, retrying",
                                    operation=operation,
                                    attempt=attempt,
                                    delay=delay,
                                    error=str(e) or type(e).__name__,
                                    **log_context)
                await self._sleep(delay)

    async def fetch_recent_transactions(self, address: str) -> List[Transaction]:
        """Newest-first transactions received by ``address``; empty on failure."""
        result = await self._call_with_retry(
            "txlist",
            lambda api_key: self.client.list_transactions(
                address,
                api_key=api_key,
                page=1,
                offset=self.page_size,
                sort="desc",
            ),
            address=address,
        )
        if result is _MISSING:
            return []

        return [tx for tx in result if tx.is_incoming(address)]

    async def fetch_all_transactions(self, address: str, limit: Optional[int] = None) -> List[Transaction]:
        """Newest-first transactions in either direction; empty on failure."""
        result = await self._call_with_retry(
            "txlist",
            lambda api_key: self.client.list_transactions(
                address,
                api_key=api_key,
                page=1,
                offset=limit or self.page_size,
                sort="desc",
            ),
            address=address,
        )
        return [] if result is _MISSING else list(result)

    async def fetch_chain_height(self) -> Optional[int]:
        """
        Current chain height.

        Falls back to the highest block recorded in any wallet state, then to
        ``height_floor``. Returns None only when neither is available.
        """
        result = await self._call_with_retry("eth_blockNumber", self.client.get_block_number)
        if result is not _MISSING:
            return result

        last_known = self.state_store.max_last_tx_block()
        if last_known > 0:
            self.logger.warning("Using last known block as chain height", height=last_known)
            return last_known

        if self.height_floor is not None:
            self.logger.warning("Using height floor as chain height", height=self.height_floor)
        return self.height_floor
