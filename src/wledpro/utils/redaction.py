from __future__ import annotations

import string
from dataclasses import dataclass, field


@dataclass
class Redactor:
    """Masks addresses and MAC identities for output that gets shared."""

    enabled: bool = True
    _mac_map: dict[str, int] = field(default_factory=dict)
    _mac_counter: int = 0

    def redact_address(self, address: str) -> str:
        if not self.enabled:
            return address
        host, sep, port = address.partition(":")
        parts = host.split(".")
        if len(parts) == 4 and all(part.isdigit() for part in parts):
            return f"x.x.x.{parts[3]}{sep}{port}"
        if host.endswith(".local"):
            return f"xxxx.local{sep}{port}"
        return address

    def redact_mac(self, mac: str) -> str:
        """Keep the vendor prefix, replace the rest with a stable counter."""
        if not self.enabled:
            return mac
        cleaned = mac.replace(":", "").lower()
        if len(cleaned) != 12 or not all(ch in string.hexdigits for ch in cleaned):
            return mac
        counter = self._mac_map.get(cleaned)
        if counter is None:
            self._mac_counter += 1
            counter = self._mac_counter
            self._mac_map[cleaned] = counter
        return f"{cleaned[:6]}xxxx{counter:02d}"
