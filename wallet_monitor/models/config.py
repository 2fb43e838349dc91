"""Configuration management using Pydantic settings."""

from typing import List, Literal, Optional
from pydantic import Field
from pydantic_settings import BaseSettings


class MonitorConfig(BaseSettings):
    """Configuration for the wallet burst monitor."""

    # ==================== Explorer API Settings ====================
    explorer_api_url: str = Field(
        default="https://api.basescan.org/api",
        description="Etherscan-compatible explorer API endpoint"
    )
    explorer_web_url: str = Field(
        default="https://basescan.org",
        description="Explorer website used for address and tx links"
    )
    explorer_api_keys: str = Field(
        default="",
        description="Comma separated explorer API keys (rotated round-robin)"
    )
    key_min_spacing: float = Field(
        default=0.05,
        description="Minimum seconds between two calls on the same API key"
    )
    request_timeout: float = Field(default=10.0, description="Request timeout in seconds")
    max_retries: int = Field(default=3, description="Retry attempts for failed requests")
    retry_delay: float = Field(
        default=1.0,
        description="Base retry delay in seconds (attempt N waits N * retry_delay)"
    )
    tx_page_size: int = Field(default=50, description="Transactions requested per address")
    height_floor: Optional[int] = Field(
        default=24_000_000,
        description="Chain height used when the height fetch fails and no state exists"
    )

    # ==================== Notification Settings ====================
    webhook_url: str = Field(default="", description="Discord-compatible webhook URL")
    webhook_enabled: bool = Field(default=True, description="Enable webhook notifications")

    # ==================== Registry Settings ====================
    registry_file: str = Field(default="wallets.json", description="Tracked address registry")
    deployer_wallets_file: Optional[str] = Field(
        default=None,
        description="Optional JSON file of deployer wallets alerted on every new transaction"
    )

    # ==================== Scheduler Settings ====================
    poll_interval: float = Field(default=1.0, description="Seconds between poll ticks")
    summary_interval: float = Field(default=300.0, description="Seconds between summary sweeps")
    fan_out_limit: Optional[int] = Field(
        default=None,
        description="Max concurrent address fetches per tick (None = all at once)"
    )

    # ==================== Classifier Settings ====================
    hysteresis_seconds: int = Field(default=30, description="Minimum dwell time between transitions")
    max_block_gap: int = Field(default=3, description="Max block gap between burst transactions")
    max_recent_blocks: int = Field(default=3, description="Max blocks since the newest burst tx")
    quiet_blocks: int = Field(default=20, description="Quiet blocks that end a burst")

    # ==================== Logging Settings ====================
    log_level: str = Field(default="INFO", description="Logging level")
    log_format: Literal["json", "text"] = Field(default="text", description="Log format (json|text)")
    log_file: Optional[str] = Field(default=None, description="Log file path")
    log_max_size_mb: int = Field(default=50, description="Max log file size in MB")
    log_backup_count: int = Field(default=5, description="Number of log backups")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False
        extra = "ignore"

    @property
    def api_keys(self) -> List[str]:
        """Explorer API keys as a list, blanks dropped."""
        return [key.strip() for key in self.explorer_api_keys.split(",") if key.strip()]

    def get_source_info(self) -> dict:
        """Get a loggable summary of the configured data source."""
        return {
            "api_url": self.explorer_api_url,
            "api_keys": len(self.api_keys),
            "key_min_spacing": self.key_min_spacing,
            "webhook_configured": bool(self.webhook_url),
        }
