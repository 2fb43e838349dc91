"""
Webhook Alerting Module.

Posts embeds to a Discord-compatible webhook. Delivery is best effort:
failures are logged and reported through the return value, never retried.
"""

import asyncio
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from dataclasses import dataclass
from enum import IntEnum
import aiohttp
import structlog

from wallet_monitor.models.config import MonitorConfig
from wallet_monitor.models.wallet import Transaction, Transition
from wallet_monitor.utils.formatting import address_link, split_into_chunks, tx_link

logger = structlog.get_logger(__name__)


class AlertColor(IntEnum):
    """Embed colors."""
    ALERT = 0xFF0000
    CLEAR = 0x00FF00


TRANSITION_TITLES = {
    Transition.BURST_STARTED: "⚠️ Spam Activity Started",
    Transition.BURST_STOPPED: "✅ Spam Activity Stopped",
}

STATUS_POST_DELAY = 0.1


@dataclass
class WebhookConfig:
    """Webhook delivery settings."""

    url: str
    enabled: bool = True

    @classmethod
    def from_settings(cls, config: MonitorConfig) -> 'WebhookConfig':
        """Build from monitor settings; no URL means alerts are disabled."""
        enabled = config.webhook_enabled
        if not config.webhook_url:
            logger.warning("Webhook not configured - alerts disabled")
            enabled = False

        return cls(url=config.webhook_url, enabled=enabled)


class WebhookNotifier:
    """Sends alerts and status reports to a webhook."""

    def __init__(self,
                 config: Optional[WebhookConfig] = None,
                 explorer_url: str = "https://basescan.org",
                 session: Optional[aiohttp.ClientSession] = None):
        self.config = config or WebhookConfig.from_settings(MonitorConfig())
        self.explorer_url = explorer_url
        self._session = session

        if self.config.enabled:
            logger.info("WebhookNotifier initialized", url=self.config.url[:30] + "***")

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create aiohttp session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
        return self._session

    async def close(self):
        """Close the session."""
        if self._session and not self._session.closed:
            await self._session.close()

    async def _send_embeds(self, embeds: List[Dict[str, Any]]) -> bool:
        """Post embeds to the webhook."""
        if not self.config.enabled:
            logger.debug("Webhook disabled, skipping send")
            return False

        try:
            session = await self._get_session()
            async with session.post(self.config.url,
                                    json={"embeds": embeds},
                                    timeout=aiohttp.ClientTimeout(total=30)) as response:
                if response.status >= 400:
                    body = await response.text()
                    logger.error("Webhook API error", status=response.status, body=body[:200])
                    return False
                return True

        except asyncio.TimeoutError:
            logger.error("Webhook request timeout")
            return False
        except aiohttp.ClientError as e:
            logger.error("Webhook request failed", error=str(e))
            return False

    async def post(self,
                   title: Optional[str],
                   fields: Dict[str, str],
                   color: AlertColor,
                   timestamp: Optional[datetime] = None,
                   description: Optional[str] = None) -> bool:
        """
        Send a single embed.

        Args:
            title: Embed title, omitted when None
            fields: Ordered name -> value fields
            color: Alert or clear color
            timestamp: Embed timestamp, defaults to now
            description: Optional free text body

        Returns:
            True if sent successfully
        """
        embed: Dict[str, Any] = {
            "color": int(color),
            "timestamp": (timestamp or datetime.now(timezone.utc)).isoformat(),
            "fields": [{"name": name, "value": value} for name, value in fields.items()],
        }
        if title:
            embed["title"] = title
        if description:
            embed["description"] = description

        return await self._send_embeds([embed])

    async def send_transition_alert(self,
                                    transition: Transition,
                                    tx: Transaction,
                                    address: str,
                                    label: Optional[str]) -> bool:
        """Send a burst started/stopped alert for ``address``."""
        title = TRANSITION_TITLES[transition]
        color = AlertColor.ALERT if transition is Transition.BURST_STARTED else AlertColor.CLEAR

        fields = {
            "Contract": label or "Unknown Contract",
            "View Contract": f"[{address}]({address_link(self.explorer_url, address)})",
            "Latest TX": f"[{tx.hash}]({tx_link(self.explorer_url, tx.hash)})",
            "Block Number": str(tx.block_number),
        }

        sent = await self.post(title, fields, color)
        if sent:
            logger.info("Transition alert sent", address=address, transition=transition.value)
        return sent

    async def send_transaction_alert(self, tx: Transaction, wallet_name: str) -> bool:
        """Send a plain "new transaction" alert (deployer wallets)."""
        fields = {
            "From": f"[{tx.sender}]({address_link(self.explorer_url, tx.sender)})",
            "To": f"[{tx.recipient}]({address_link(self.explorer_url, tx.recipient)})",
            "Value": f"{tx.value_eth:.4f} ETH",
            "TX": f"[View Transaction]({tx_link(self.explorer_url, tx.hash)})",
        }
        return await self.post(f"{wallet_name} Transaction Detected", fields, AlertColor.CLEAR)

    async def send_status_report(self, active: List[str], inactive: List[str]) -> int:
        """
        Send the active/inactive wallet listing, one embed per chunk.

        Returns:
            Number of embeds delivered
        """
        embeds: List[Dict[str, Any]] = []
        now = datetime.now(timezone.utc)

        for index, chunk in enumerate(split_into_chunks(active) or ["None"]):
            embeds.append({
                "title": "Spammer Status" if index == 0 else "Active Spammers (continued)",
                "color": int(AlertColor.CLEAR),
                "timestamp": now.isoformat(),
                "fields": [{"name": "🟢 Active", "value": chunk}],
            })

        for chunk in split_into_chunks(inactive) or ["None"]:
            embeds.append({
                "color": int(AlertColor.CLEAR),
                "fields": [{"name": "🔴 Inactive", "value": chunk}],
            })

        delivered = 0
        for embed in embeds:
            if await self._send_embeds([embed]):
                delivered += 1
            await asyncio.sleep(STATUS_POST_DELAY)

        return delivered
