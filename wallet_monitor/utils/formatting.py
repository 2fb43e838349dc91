"""Label, link and message formatting helpers."""

import re
from typing import List, Optional, Tuple

_LABEL_PATTERN = re.compile(r"^([^(]+?)\s*(?:\((.*)\))?$")

SHORT_ADDRESS_LENGTH = 7  # "0x" plus five hex characters


def format_wallet_label(address: str, description: Optional[str] = None) -> str:
    """Canonical registry label: short address plus optional description."""
    short_address = address[:SHORT_ADDRESS_LENGTH]
    return f"{short_address} ({description})" if description else short_address


def parse_wallet_label(label: str) -> Tuple[str, str]:
    """Split a label into (short name, description)."""
    match = _LABEL_PATTERN.match(label.strip())
    if not match:
        return label, ""
    return match.group(1).strip(), (match.group(2) or "").strip()


def address_link(explorer_url: str, address: str) -> str:
    return f"{explorer_url.rstrip('/')}/address/{address}"


def tx_link(explorer_url: str, tx_hash: str) -> str:
    return f"{explorer_url.rstrip('/')}/tx/{tx_hash}"


def short_address(address: str, length: int = 6) -> str:
    return address[:length]


def split_into_chunks(items: List[str], max_length: int = 800) -> List[str]:
    """
    Join items with blank lines into chunks of roughly ``max_length`` chars.

    An item longer than ``max_length`` gets a chunk of its own.
    """
    chunks: List[str] = []
    current: List[str] = []
    current_length = 0

    for item in items:
        if current and current_length + len(item) > max_length:
            chunks.append("\n\n".join(current))
            current = [item]
            current_length = len(item)
        else:
            current.append(item)
            current_length += len(item) + 2

    if current:
        chunks.append("\n\n".join(current))

    return chunks
