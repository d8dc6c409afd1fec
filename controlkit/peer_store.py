"""Persistent storage of the paired peer's address and the auto-reconnect setting."""

from __future__ import annotations

import json
import os
import tempfile
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional, Union

MAC_LENGTH = 6

_HAS_SAVED = "has_saved"
_PEER_MAC = "peer_mac"
_AUTO_RECONNECT = "auto_reconnect"


@dataclass(frozen=True)
class PeerRecord:
    """A remembered peer: its 6-byte address and whether to reconnect to it."""

    peer_mac: bytes
    auto_reconnect: bool = True


def _checked_mac(peer_mac: bytes) -> bytes:
    mac = bytes(peer_mac)
    if len(mac) != MAC_LENGTH:
        raise ValueError(f"peer address must be {MAC_LENGTH} bytes, got {len(mac)}")
    return mac


class _PreferenceStore(ABC):
    """A small key/value namespace holding the saved-peer entries."""

    @abstractmethod
    def _read(self) -> dict[str, Any]:
        """Return the stored entries."""

    @abstractmethod
    def _write(self, entries: dict[str, Any]) -> None:
        """Replace the stored entries."""

    def load(self) -> Optional[PeerRecord]:
        """Return the saved peer, or ``None`` when nothing usable was saved."""
        entries = self._read()
        if not entries.get(_HAS_SAVED, False):
            return None
        mac = entries.get(_PEER_MAC)
        if mac is None or len(mac) != MAC_LENGTH:
            return None
        return PeerRecord(bytes(mac), bool(entries.get(_AUTO_RECONNECT, True)))

    def save(self, peer_mac: bytes, auto_reconnect: bool) -> None:
        """Remember ``peer_mac`` and the auto-reconnect setting."""
        entries = self._read()
        entries[_HAS_SAVED] = True
        entries[_PEER_MAC] = _checked_mac(peer_mac)
        entries[_AUTO_RECONNECT] = bool(auto_reconnect)
        self._write(entries)

    def clear(self) -> None:
        """Forget everything stored."""
        self._write({})

    def set_auto_reconnect(self, enabled: bool) -> None:
        """Store only the auto-reconnect setting, leaving the peer untouched."""
        entries = self._read()
        entries[_AUTO_RECONNECT] = bool(enabled)
        self._write(entries)


class MemoryPeerStore(_PreferenceStore):
    """Keeps the saved peer in memory for the lifetime of the object."""

    def __init__(self) -> None:
        self._entries: dict[str, Any] = {}

    def _read(self) -> dict[str, Any]:
        return dict(self._entries)

    def _write(self, entries: dict[str, Any]) -> None:
        self._entries = dict(entries)

    def load(self) -> Optional[PeerRecord]:
        return super().load()

    def save(self, peer_mac: bytes, auto_reconnect: bool) -> None:
        super().save(peer_mac, auto_reconnect)

    def clear(self) -> None:
        super().clear()

    def set_auto_reconnect(self, enabled: bool) -> None:
        super().set_auto_reconnect(enabled)


class JsonPeerStore(_PreferenceStore):
    """Keeps the saved peer in a JSON file; the address is stored as hex text."""

    def __init__(self, path: Union[str, os.PathLike[str]]) -> None:
        self.path = Path(path)

    def _read(self) -> dict[str, Any]:
        try:
            with self.path.open("r", encoding="utf-8") as handle:
                raw = json.load(handle)
        except FileNotFoundError:
            return {}
        if not isinstance(raw, dict):
            raise ValueError(f"{self.path} does not hold a JSON object")
        entries = dict(raw)
        if _PEER_MAC in entries:
            entries[_PEER_MAC] = bytes.fromhex(entries[_PEER_MAC])
        return entries

    def _write(self, entries: dict[str, Any]) -> None:
        document = dict(entries)
        if _PEER_MAC in document:
            document[_PEER_MAC] = bytes(document[_PEER_MAC]).hex()
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, temp_name = tempfile.mkstemp(prefix=self.path.name, dir=self.path.parent)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(document, handle, indent=2, sort_keys=True)
            os.replace(temp_name, self.path)
        except BaseException:
            Path(temp_name).unlink(missing_ok=True)
            raise

    def load(self) -> Optional[PeerRecord]:
        return super().load()

    def save(self, peer_mac: bytes, auto_reconnect: bool) -> None:
        super().save(peer_mac, auto_reconnect)

    def clear(self) -> None:
        super().clear()

    def set_auto_reconnect(self, enabled: bool) -> None:
        super().set_auto_reconnect(enabled)