"""Main wallet monitor orchestrator."""

import asyncio
from typing import Dict, List, Optional, Tuple
import structlog

from wallet_monitor.models.config import MonitorConfig
from wallet_monitor.models.wallet import WalletState
from wallet_monitor.core.classifier import BurstClassifier
from wallet_monitor.core.deployer_watch import DeployerWatch, load_deployer_wallets
from wallet_monitor.core.explorer_client import ExplorerClient
from wallet_monitor.core.fetcher import ResilientFetcher
from wallet_monitor.core.rate_limiter import KeyRotatedRateLimiter
from wallet_monitor.core.registry import AddressRegistry, RegistryError
from wallet_monitor.core.scheduler import BatchPollScheduler
from wallet_monitor.core.state_store import WalletStateStore
from wallet_monitor.utils.formatting import address_link, parse_wallet_label
from wallet_monitor.utils.notifier import WebhookConfig, WebhookNotifier

logger = structlog.get_logger(__name__)

COMMAND_HELP = (
    "Commands available:\n"
    "!status - Check spammer status\n"
    "!add <address> [description] - Add new contract to monitor"
)


class WalletMonitor:
    """Wires the registry, fetch layer, classifier and scheduler together."""

    def __init__(self,
                 config: MonitorConfig,
                 client: Optional[ExplorerClient] = None,
                 notifier: Optional[WebhookNotifier] = None):
        self.config = config
        self.logger = logger.bind(component="wallet_monitor")

        self.state_store = WalletStateStore()
        self.registry = AddressRegistry(config.registry_file)
        self.client = client or ExplorerClient(config.explorer_api_url, timeout=config.request_timeout)
        self.notifier = notifier or WebhookNotifier(
            WebhookConfig.from_settings(config),
            explorer_url=config.explorer_web_url,
        )
        self.limiter = KeyRotatedRateLimiter(config.api_keys, config.key_min_spacing)
        self.fetcher = ResilientFetcher(
            self.client,
            self.limiter,
            self.state_store,
            page_size=config.tx_page_size,
            max_retries=config.max_retries,
            retry_delay=config.retry_delay,
            request_timeout=config.request_timeout,
            height_floor=config.height_floor,
        )
        self.classifier = BurstClassifier(
            hysteresis_seconds=config.hysteresis_seconds,
            max_block_gap=config.max_block_gap,
            max_recent_blocks=config.max_recent_blocks,
            quiet_blocks=config.quiet_blocks,
        )

        deployer_wallets = load_deployer_wallets(config.deployer_wallets_file)
        self.deployer_watch = (
            DeployerWatch(self.fetcher, self.notifier, deployer_wallets) if deployer_wallets else None
        )

        self.scheduler = BatchPollScheduler(
            self.fetcher,
            self.classifier,
            self.state_store,
            self.registry.addresses,
            self.notifier,
            poll_interval=config.poll_interval,
            summary_interval=config.summary_interval,
            fan_out_limit=config.fan_out_limit,
            extra_checks=[self.deployer_watch.check_once] if self.deployer_watch else [],
            label_fn=self.registry.label_for,
        )

        self.logger.info("Wallet monitor initialized",
                        effective_rate=self.limiter.effective_rate,
                        **config.get_source_info())

    def initialize(self) -> int:
        """Load the registry and rewrite labels into canonical form."""
        self.registry.load()
        self.registry.normalize_labels()
        self.logger.info("Initial tracking set up", addresses=len(self.registry))
        return len(self.registry)

    # ==================== Core Interface ====================

    def get_all_wallet_states(self) -> Dict[str, WalletState]:
        """Address -> WalletState for every address observed so far."""
        return self.state_store.snapshot()

    def register_address(self, address: str, description: Optional[str] = None) -> str:
        """
        Start tracking ``address``; the next tick picks it up.

        Raises:
            RegistryError: malformed or duplicate address
        """
        label = self.registry.add(address, description)
        self.logger.info("Added new contract", address=address, label=label)
        return label

    # ==================== Status ====================

    def status_entries(self) -> Tuple[List[str], List[str]]:
        """Formatted (active, inactive) registry entries."""
        active: List[str] = []
        inactive: List[str] = []

        for address, label in self.registry.items():
            short_name, description = parse_wallet_label(label)
            entry = f"• [{short_name}]({address_link(self.config.explorer_web_url, address)})"
            if description:
                entry += f"\n  {description}"

            state = self.state_store.get(address)
            if state is not None and state.is_bursting:
                active.append(entry)
            else:
                inactive.append(entry)

        return active, inactive

    async def send_status(self) -> int:
        active, inactive = self.status_entries()
        return await self.notifier.send_status_report(active, inactive)

    async def handle_command(self, line: str) -> str:
        """Execute one console command and return the text to print."""
        parts = line.strip().split()
        if not parts:
            return ""

        command, args = parts[0], parts[1:]

        if command == "!status":
            sent = await self.send_status()
            return f"Status sent ({sent} messages)"

        if command == "!add":
            if not args:
                return "Usage: !add <contract_address> [description]"
            try:
                label = self.register_address(args[0], " ".join(args[1:]) or None)
            except RegistryError as e:
                return str(e)
            return f"Added new contract: {label}\nAddress: {args[0]}\nMonitoring started for new wallet"

        return COMMAND_HELP

    # ==================== Lifecycle ====================

    async def run(self, stop_event: asyncio.Event) -> None:
        """Run the poll and summary loops until ``stop_event`` is set."""
        self.logger.info("Starting wallet monitoring", addresses=len(self.registry))
        try:
            await asyncio.gather(
                self.scheduler.run(stop_event),
                self.scheduler.summary_loop(stop_event),
            )
        finally:
            await self.close()

    async def close(self) -> None:
        await self.client.close()
        await self.notifier.close()
        self.logger.info("Wallet monitor closed")
