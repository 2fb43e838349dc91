"""JSON file registry of tracked addresses and their labels."""

import re
import json
from pathlib import Path
from typing import Dict, Optional
import structlog

from wallet_monitor.utils.formatting import format_wallet_label, parse_wallet_label

logger = structlog.get_logger(__name__)

ADDRESS_PATTERN = re.compile(r"^0x[a-fA-F0-9]{40}$")


class RegistryError(Exception):
    """Address registry error."""
    pass


class InvalidAddressError(RegistryError):
    """Address is not a 0x-prefixed 20 byte hex string."""
    pass


class DuplicateAddressError(RegistryError):
    """Address is already tracked."""
    pass


def validate_address(address: str) -> str:
    """Return the lowercase address or raise InvalidAddressError."""
    if not ADDRESS_PATTERN.match(address or ""):
        raise InvalidAddressError(f"Invalid address format: {address!r}")
    return address.lower()


class AddressRegistry:
    """
    Address -> label mapping persisted as a JSON object.

    Addresses keep the casing they were added with in the file; lookups are
    case-insensitive.
    """

    def __init__(self, path: str = "wallets.json"):
        self.path = Path(path)
        self._entries: Dict[str, str] = {}
        self._index: Dict[str, str] = {}

    def load(self) -> Dict[str, str]:
        """Read the file; a missing or unreadable file yields an empty registry."""
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
            if not isinstance(data, dict):
                raise ValueError("registry root must be an object")
            entries = {str(k): str(v) for k, v in data.items()}
        except FileNotFoundError:
            logger.warning("Registry file not found, starting empty", path=str(self.path))
            entries = {}
        except (OSError, ValueError) as e:
            logger.error("Error loading registry file", path=str(self.path), error=str(e))
            entries = {}

        self._set_entries(entries)
        logger.info("Registry loaded", path=str(self.path), addresses=len(entries))
        return dict(self._entries)

    def save(self, mapping: Optional[Dict[str, str]] = None) -> bool:
        """Write ``mapping`` (default: current entries) to disk."""
        if mapping is not None:
            self._set_entries(dict(mapping))

        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, "w", encoding="utf-8") as f:
                json.dump(self._entries, f, indent=2)
            logger.info("Registry file updated", path=str(self.path))
            return True
        except OSError as e:
            logger.error("Error saving registry file", path=str(self.path), error=str(e))
            return False

    def _set_entries(self, entries: Dict[str, str]) -> None:
        self._entries = entries
        self._index = {address.lower(): address for address in entries}

    def add(self, address: str, description: Optional[str] = None) -> str:
        """
        Track a new address.

        Returns:
            The stored label

        Raises:
            InvalidAddressError: malformed address
            DuplicateAddressError: address already tracked
        """
        normalized = validate_address(address)
        if normalized in self._index:
            raise DuplicateAddressError(f"Address already monitored: {address}")

        label = format_wallet_label(address, description or None)
        self._entries[address] = label
        self._index[normalized] = address
        self.save()
        return label

    def normalize_labels(self) -> Dict[str, str]:
        """Rewrite every label into the canonical "0xabcde (description)" form."""
        updated = {}
        for address, label in self._entries.items():
            _, description = parse_wallet_label(label)
            updated[address] = format_wallet_label(address, description or None)

        self.save(updated)
        return dict(self._entries)

    def label_for(self, address: str) -> Optional[str]:
        original = self._index.get(address.lower())
        return self._entries.get(original) if original else None

    def addresses(self) -> Dict[str, str]:
        """Lowercase address -> label."""
        return {address.lower(): label for address, label in self._entries.items()}

    def items(self):
        return self._entries.items()

    def __contains__(self, address: str) -> bool:
        return address.lower() in self._index

    def __len__(self) -> int:
        return len(self._entries)
