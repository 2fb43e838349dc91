"""New-transaction alerts for deployer wallets."""

import json
from pathlib import Path
from typing import Dict, List, Optional
import structlog

from wallet_monitor.core.fetcher import ResilientFetcher
from wallet_monitor.models.wallet import Transaction
from wallet_monitor.utils.notifier import WebhookNotifier

logger = structlog.get_logger(__name__)

DEPLOYER_PAGE_SIZE = 10


def load_deployer_wallets(path: Optional[str]) -> Dict[str, str]:
    """Read an address -> name JSON object; empty when unset or unreadable."""
    if not path:
        return {}
    try:
        with open(Path(path), "r", encoding="utf-8") as f:
            data = json.load(f)
        return {str(k).lower(): str(v) for k, v in data.items()}
    except (OSError, ValueError, AttributeError) as e:
        logger.error("Error loading deployer wallets", path=path, error=str(e))
        return {}


class DeployerWatch:
    """
    Alerts on every new transaction of a small set of wallets.

    The newest transaction hash per wallet is remembered; a different hash
    (including the very first one observed) triggers one alert.
    """

    def __init__(self,
                 fetcher: ResilientFetcher,
                 notifier: WebhookNotifier,
                 wallets: Dict[str, str]):
        self.fetcher = fetcher
        self.notifier = notifier
        self.wallets = {address.lower(): name for address, name in wallets.items()}
        self.last_seen: Dict[str, str] = {}

    async def check_once(self) -> List[Transaction]:
        """Check every wallet once; returns the transactions alerted on."""
        alerted: List[Transaction] = []

        for address, name in self.wallets.items():
            transactions = await self.fetcher.fetch_all_transactions(address, limit=DEPLOYER_PAGE_SIZE)
            if not transactions:
                continue

            latest = transactions[0]
            if self.last_seen.get(address) == latest.hash:
                continue

            self.last_seen[address] = latest.hash
            logger.info("Deployer transaction detected", wallet=name, tx_hash=latest.hash)
            await self.notifier.send_transaction_alert(latest, name)
            alerted.append(latest)

        return alerted
