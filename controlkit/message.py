"""Wire format of the peer-to-peer link messages and MAC address helpers."""

from __future__ import annotations

import re
import struct
from dataclasses import dataclass, field
from enum import IntEnum
from typing import ClassVar, Iterable

CHANNEL = 1
ENCRYPT = 0

SEARCH_INTERVAL_MS = 1000
PAIRING_TIMEOUT_MS = 10000
PING_INTERVAL_MS = 1000
CONNECTION_TIMEOUT_MS = 5000

MAX_RETRIES = 3
MESSAGE_MAGIC = 0xAB

DATA_SIZE = 32
MAX_SCREEN_NAME = 30


class MessageType(IntEnum):
    ANNOUNCE = 0x01
    PAIR_REQUEST = 0x02
    PAIR_RESPONSE = 0x03
    PING = 0x04
    PONG = 0x05
    DISCONNECT = 0x06
    SCREEN_SYNC = 0x07
    BUTTON_DATA = 0x08
    INPUT_EVENT = 0x09


class DeviceRole(IntEnum):
    HANDHELD = 0x10
    BASE_STATION = 0x20


def crc16(data: bytes) -> int:
    """CRC-16 with polynomial 0x1021 and initial value 0xFFFF."""
    crc = 0xFFFF
    for byte in data:
        crc ^= byte << 8
        for _ in range(8):
            if crc & 0x8000:
                crc = ((crc << 1) ^ 0x1021) & 0xFFFF
            else:
                crc = (crc << 1) & 0xFFFF
    return crc


_HEADER = struct.Struct("<BBBII32s")
_WIRE = struct.Struct("<BBBII32sH")
_U32 = struct.Struct("<I")
_U16 = struct.Struct("<H")


@dataclass
class Message:
    """A fixed-size link message; the CRC covers every byte before it."""

    SIZE: ClassVar[int] = _WIRE.size
    CRC_OFFSET: ClassVar[int] = _HEADER.size

    magic: int = MESSAGE_MAGIC
    msg_type: int = 0
    role: int = 0
    sequence: int = 0
    timestamp: int = 0
    data: bytearray = field(default_factory=lambda: bytearray(DATA_SIZE))
    crc: int = 0

    def __post_init__(self) -> None:
        self.data = bytearray(self.data)
        if len(self.data) != DATA_SIZE:
            raise ValueError(f"message data must be {DATA_SIZE} bytes, got {len(self.data)}")

    def _header(self) -> bytes:
        return _HEADER.pack(
            self.magic & 0xFF,
            self.msg_type & 0xFF,
            self.role & 0xFF,
            self.sequence & 0xFFFFFFFF,
            self.timestamp & 0xFFFFFFFF,
            bytes(self.data),
        )

    def pack(self) -> bytes:
        """Encode to the little-endian wire layout."""
        return self._header() + _U16.pack(self.crc & 0xFFFF)

    @classmethod
    def unpack(cls, raw: bytes) -> Message:
        """Decode wire bytes; the length must be exactly :attr:`SIZE`."""
        if len(raw) != cls.SIZE:
            raise ValueError(f"message must be {cls.SIZE} bytes, got {len(raw)}")
        magic, msg_type, role, sequence, timestamp, data, crc = _WIRE.unpack(raw)
        return cls(magic, msg_type, role, sequence, timestamp, bytearray(data), crc)

    def calculate_crc(self) -> int:
        return crc16(self._header())

    def is_valid(self) -> bool:
        """True when the magic byte and the CRC both check out."""
        return self.magic == MESSAGE_MAGIC and self.crc == self.calculate_crc()

    def update_crc(self) -> None:
        self.crc = self.calculate_crc()

    def set_ping_data(self, counter: int) -> None:
        self.msg_type = MessageType.PING
        _U32.pack_into(self.data, 0, counter & 0xFFFFFFFF)
        self.update_crc()

    def set_pong_data(self, counter: int) -> None:
        self.msg_type = MessageType.PONG
        _U32.pack_into(self.data, 0, counter & 0xFFFFFFFF)
        self.update_crc()

    @property
    def ping_pong_counter(self) -> int:
        return _U32.unpack_from(self.data, 0)[0]

    def set_screen_sync(self, screen_id: int, screen_name: str | None) -> None:
        """Store a screen id and a name of at most 30 bytes."""
        self.msg_type = MessageType.SCREEN_SYNC
        name = (screen_name or "").encode("utf-8")[:MAX_SCREEN_NAME]
        self.data[0] = screen_id & 0xFF
        self.data[1] = len(name)
        self.data[2 : 2 + len(name)] = name
        self.update_crc()

    @property
    def screen_id(self) -> int:
        return self.data[0]

    @property
    def screen_name(self) -> str:
        length = min(self.data[1], MAX_SCREEN_NAME)
        return bytes(self.data[2 : 2 + length]).decode("utf-8", errors="replace")

    def set_button_data(self, button_states: int, timestamp: int) -> None:
        self.msg_type = MessageType.BUTTON_DATA
        self.data[0] = button_states & 0xFF
        _U32.pack_into(self.data, 1, timestamp & 0xFFFFFFFF)
        self.update_crc()

    @property
    def button_states(self) -> int:
        return self.data[0]

    @property
    def button_timestamp(self) -> int:
        return _U32.unpack_from(self.data, 1)[0]

    def set_input_event(self, event_type: int, button_id: int, event_data: int) -> None:
        self.msg_type = MessageType.INPUT_EVENT
        self.data[0] = event_type & 0xFF
        self.data[1] = button_id & 0xFF
        _U16.pack_into(self.data, 2, event_data & 0xFFFF)
        self.update_crc()

    @property
    def input_event_type(self) -> int:
        return self.data[0]

    @property
    def input_button_id(self) -> int:
        return self.data[1]

    @property
    def input_event_data(self) -> int:
        return _U16.unpack_from(self.data, 2)[0]


_HEX_FIELD = r"\s*([+-]?(?:0[xX])?[0-9A-Fa-f]+)"
_MAC_PATTERN = re.compile(":".join([_HEX_FIELD] * 6))


def parse_mac_address(text: str) -> bytes:
    """Parse six colon-separated hex values into a 6-byte address.

    Raises :class:`ValueError` when fewer than six values are found or a value
    lies outside 0..255.
    """
    match = _MAC_PATTERN.match(text)
    if match is None:
        raise ValueError(f"not a MAC address: {text!r}")
    values = [int(group, 16) for group in match.groups()]
    if any(not 0 <= value <= 255 for value in values):
        raise ValueError(f"MAC address byte out of range: {text!r}")
    return bytes(values)


def format_mac(mac: Iterable[int]) -> str:
    """Format an address as upper-case ``AA:BB:CC:DD:EE:FF``."""
    return ":".join(f"{byte:02X}" for byte in mac)