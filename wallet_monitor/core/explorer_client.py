"""
Explorer API client (Basescan / Etherscan compatible).

Endpoints used:
- module=account&action=txlist      address transaction history
- module=proxy&action=eth_blockNumber current chain height (hex)

API Documentation: https://docs.basescan.org/
"""

import asyncio
from typing import Any, Dict, List, Optional
import aiohttp
import structlog

from wallet_monitor.models.wallet import Transaction

logger = structlog.get_logger(__name__)

NO_TRANSACTIONS_MESSAGE = "No transactions found"


class ExplorerAPIError(Exception):
    """Explorer API specific error."""
    pass


class ExplorerClient:
    """
    Async client for an Etherscan-style explorer API.

    Every call takes the API key explicitly so key rotation stays with the
    caller. Any transport error, HTTP error or non-success explorer answer is
    raised as ``ExplorerAPIError``.
    """

    def __init__(self,
                 base_url: str = "https://api.basescan.org/api",
                 timeout: float = 10.0,
                 session: Optional[aiohttp.ClientSession] = None):
        self.base_url = base_url
        self.timeout = timeout
        self._session = session

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create aiohttp session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(headers={
                "User-Agent": "wallet-monitor/1.0.0",
                "Accept": "application/json",
            })
        return self._session

    async def close(self):
        """Close the session."""
        if self._session and not self._session.closed:
            await self._session.close()

    async def _make_request(self, params: Dict[str, Any]) -> Dict[str, Any]:
        """Issue a GET against the API endpoint and decode the JSON body."""
        try:
            session = await self._get_session()
            async with session.get(self.base_url,
                                   params=params,
                                   timeout=aiohttp.ClientTimeout(total=self.timeout)) as response:
                if response.status == 429:
                    raise ExplorerAPIError("Rate limited (HTTP 429)")
                response.raise_for_status()
                data = await response.json(content_type=None)
        except aiohttp.ClientError as e:
            raise ExplorerAPIError(f"Request failed: {e}") from e
        except asyncio.TimeoutError as e:
            raise ExplorerAPIError("Request timed out") from e
        except ValueError as e:
            # Gateway and proxy error pages arrive as 200 with an HTML body
            raise ExplorerAPIError(f"Invalid JSON response: {e}") from e

        if not isinstance(data, dict):
            raise ExplorerAPIError(f"Unexpected response body: {data!r}")
        return data

    @staticmethod
    def _with_key(params: Dict[str, Any], api_key: str) -> Dict[str, Any]:
        if api_key:
            params["apikey"] = api_key
        return params

    # ==================== Account Methods ====================

    async def list_transactions(self,
                                address: str,
                                api_key: str = "",
                                page: int = 1,
                                offset: int = 50,
                                sort: str = "desc",
                                start_block: int = 0,
                                end_block: int = 99999999) -> List[Transaction]:
        """
        Get one page of an address's normal transactions.

        Args:
            address: Account address
            api_key: Explorer API key for this call
            page: 1-based page number
            offset: Page size
            sort: "asc" or "desc" by block number
        """
        params = self._with_key({
            "module": "account",
            "action": "txlist",
            "address": address,
            "startblock": start_block,
            "endblock": end_block,
            "page": page,
            "offset": offset,
            "sort": sort,
        }, api_key)

        data = await self._make_request(params)
        result = data.get("result")

        if str(data.get("status")) == "1" and isinstance(result, list):
            try:
                return [Transaction.from_api(tx) for tx in result]
            except (KeyError, TypeError, ValueError) as e:
                raise ExplorerAPIError(f"Malformed txlist record: {e}") from e

        message = str(data.get("message") or "")
        if message.startswith(NO_TRANSACTIONS_MESSAGE):
            return []

        raise ExplorerAPIError(f"txlist rejected: {message} ({result})")

    # ==================== Proxy Methods ====================

    async def get_block_number(self, api_key: str = "") -> int:
        """Get current chain height."""
        params = self._with_key({
            "module": "proxy",
            "action": "eth_blockNumber",
        }, api_key)

        data = await self._make_request(params)
        result = data.get("result")

        if not isinstance(result, str) or not result.startswith("0x"):
            logger.error("Block number API response", response=data)
            raise ExplorerAPIError("Invalid eth_blockNumber response")

        try:
            return int(result, 16)
        except ValueError as e:
            raise ExplorerAPIError(f"Invalid block number: {result!r}") from e
