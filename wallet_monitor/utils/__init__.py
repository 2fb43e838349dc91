"""Utility functions and helpers."""

from wallet_monitor.utils.logging import setup_logging
from wallet_monitor.utils.formatting import (
    format_wallet_label,
    parse_wallet_label,
    split_into_chunks,
)

__all__ = [
    "setup_logging",
    "format_wallet_label",
    "parse_wallet_label",
    "split_into_chunks",
]
