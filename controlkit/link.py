"""Pairing and keep-alive logic for a point-to-point link between a handheld and a base station."""

from __future__ import annotations

import logging
import threading
import time
from collections import deque
from dataclasses import dataclass
from enum import IntEnum
from typing import Callable, Optional, Protocol

from controlkit.errors import HalError, NotInitializedError
from controlkit.message import (
    CHANNEL,
    CONNECTION_TIMEOUT_MS,
    PAIRING_TIMEOUT_MS,
    PING_INTERVAL_MS,
    SEARCH_INTERVAL_MS,
    DeviceRole,
    Message,
    MessageType,
    format_mac,
)
from controlkit.peer_store import MemoryPeerStore, PeerRecord
from controlkit.state_manager import StateMachine

_log = logging.getLogger(__name__)

_UINT32 = 0xFFFFFFFF
ZERO_MAC = bytes(6)
BROADCAST_MAC = b"\xff" * 6

MessageCallback = Callable[[Message], None]

_PAIRING_MESSAGES = frozenset({MessageType.ANNOUNCE, MessageType.PAIR_REQUEST, MessageType.PAIR_RESPONSE})


def _monotonic_ms() -> int:
    return int(time.monotonic() * 1000) & _UINT32


def _elapsed(now: int, then: int) -> int:
    return (now - then) & _UINT32


class Transport(Protocol):
    """Radio access used by :class:`LinkManager`. Failures are reported as :class:`OSError`."""

    def open(self) -> bytes:
        """Start the radio and return the device's own 6-byte address."""

    def close(self) -> None: ...

    def has_peer(self, mac: bytes) -> bool: ...

    def add_peer(self, mac: bytes, channel: int) -> None: ...

    def remove_peer(self, mac: bytes) -> None: ...

    def send(self, mac: bytes, data: bytes) -> None: ...


class PeerStore(Protocol):
    def load(self) -> Optional[PeerRecord]: ...

    def save(self, peer_mac: bytes, auto_reconnect: bool) -> None: ...

    def clear(self) -> None: ...

    def set_auto_reconnect(self, enabled: bool) -> None: ...


class LinkState(IntEnum):
    UNINITIALIZED = 0
    SEARCHING = 1
    PAIRING = 2
    PAIRED = 3
    RECONNECTING = 4
    ERROR = 5


@dataclass
class LinkStats:
    messages_sent: int = 0
    messages_received: int = 0
    ping_count: int = 0
    pong_count: int = 0
    last_ping_time: int = 0
    last_pong_time: int = 0
    latency_ms: int = 0
    rssi: int = 0


class LinkManager:
    """Finds, pairs with and keeps alive a single peer.

    The base station announces itself and answers pair requests; the handheld
    waits until :meth:`start_connection` and then answers announcements.
    Incoming frames are handed to :meth:`receive` (from any thread) and are
    processed on the next :meth:`update`.
    """

    MAX_QUEUE = 32
    MAX_PER_UPDATE = 5
    PAIRING_RESPONSE_TIMEOUT_MS = 3000
    RETRY_INTERVAL_MS = 1000
    MAX_RECONNECT_ATTEMPTS = 10
    ERROR_RECOVERY_MS = 5000

    def __init__(
        self,
        role: DeviceRole,
        peer_mac: bytes,
        transport: Transport,
        clock: Callable[[], int] | None = None,
        store: Optional[PeerStore] = None,
    ) -> None:
        peer_mac = bytes(peer_mac)
        if len(peer_mac) != 6:
            raise ValueError(f"peer address must be 6 bytes, got {len(peer_mac)}")
        self.role = DeviceRole(role)
        self._peer_mac = peer_mac
        self._own_mac = ZERO_MAC
        self._transport = transport
        self._clock = clock or _monotonic_ms
        self._store: PeerStore = store if store is not None else MemoryPeerStore()
        self._current = LinkState.UNINITIALIZED
        self._machine: StateMachine[LinkState] = StateMachine("ESPNow", LinkState.UNINITIALIZED, self._clock)
        self._stats = LinkStats()
        self._sequence = 0
        self._ping_counter = 0
        self._last_activity_time = 0
        self._state_timer = 0
        self._connection_start_time = 0
        self._peer_added = False
        self._initialized = False
        self._auto_reconnect = self.role is DeviceRole.BASE_STATION
        self._screen_sync_callback: Optional[MessageCallback] = None
        self._button_data_callback: Optional[MessageCallback] = None
        self._input_event_callback: Optional[MessageCallback] = None
        self._queue: deque[tuple[bytes, Message]] = deque()
        self._queue_lock = threading.Lock()
        self._state_lock = threading.RLock()
        self._last_announce = 0
        self._last_pairing_log = 0
        self._last_ping = 0
        self._reconnect_attempts = 0
        self._last_reconnect = 0

    # -- read-only views -------------------------------------------------

    @property
    def state(self) -> LinkState:
        return self._current

    @property
    def state_string(self) -> str:
        return self._current.name

    @property
    def stats(self) -> LinkStats:
        return self._stats

    @property
    def own_mac(self) -> bytes:
        return self._own_mac

    @property
    def peer_mac(self) -> bytes:
        return self._peer_mac

    @property
    def auto_reconnect(self) -> bool:
        return self._auto_reconnect

    @property
    def initialized(self) -> bool:
        return self._initialized

    @property
    def is_searching(self) -> bool:
        return self._current is LinkState.SEARCHING

    @property
    def is_paired(self) -> bool:
        return self._current is LinkState.PAIRED

    @property
    def is_connected(self) -> bool:
        return self._current is LinkState.PAIRED

    @property
    def is_connecting(self) -> bool:
        return self._current in (LinkState.PAIRING, LinkState.RECONNECTING)

    @property
    def last_activity_time(self) -> int:
        return self._last_activity_time

    @property
    def connection_uptime(self) -> int:
        """Milliseconds since the link was established; 0 when not paired."""
        if self._current is not LinkState.PAIRED or self._connection_start_time == 0:
            return 0
        return _elapsed(self._clock(), self._connection_start_time)

    @property
    def packet_loss_rate(self) -> float:
        """Percentage of pings sent without a matching pong count."""
        sent = self._stats.ping_count
        if sent == 0:
            return 0.0
        lost = max(sent - self._stats.pong_count, 0)
        return lost / sent * 100.0

    # -- life cycle ------------------------------------------------------

    def init(self) -> None:
        """Start the transport and, for the base station, begin searching."""
        _log.info("initializing link")
        if self._peer_mac == ZERO_MAC:
            record = self._store.load()
            if record is not None:
                self._peer_mac = record.peer_mac
                self._auto_reconnect = record.auto_reconnect
                _log.info("using saved peer %s", format_mac(self._peer_mac))

        try:
            own = self._transport.open()
        except OSError as error:
            _log.error("failed to initialize link transport")
            raise HalError("failed to initialize the link transport") from error
        self._own_mac = bytes(own)
        _log.info("own MAC: %s, peer MAC: %s", format_mac(self._own_mac), format_mac(self._peer_mac))

        handlers = {
            LinkState.UNINITIALIZED: self._handle_uninitialized,
            LinkState.SEARCHING: self._handle_searching,
            LinkState.PAIRING: self._handle_pairing,
            LinkState.PAIRED: self._handle_paired,
            LinkState.RECONNECTING: self._handle_reconnecting,
            LinkState.ERROR: self._handle_error,
        }
        for link_state, handler in handlers.items():
            if not self._machine.manager.has_state(int(link_state)):
                self._machine.add_state(link_state, link_state.name, handler)

        self._initialized = True
        if self.role is DeviceRole.BASE_STATION:
            self._transition_to_state(LinkState.SEARCHING)
        else:
            self._current = LinkState.UNINITIALIZED
            self._machine.transition_to(LinkState.UNINITIALIZED)
            _log.info("handheld link initialized but not started (manual mode)")

    def update(self, delta_ms: int) -> None:
        """Process queued frames and run the current state's handler."""
        if not self._initialized:
            raise NotInitializedError("link is not initialized")
        self._process_queue()
        with self._state_lock:
            self._state_timer += delta_ms
            self._machine.update(delta_ms)

    def shutdown(self) -> None:
        if not self._initialized:
            return
        self._remove_peer()
        self._transport.close()
        self._initialized = False

    def start_connection(self) -> None:
        """Begin searching for the peer; does nothing once a connection was started."""
        if not self._initialized:
            _log.error("cannot start connection - not initialized")
            raise NotInitializedError("link is not initialized")
        if self._current is not LinkState.UNINITIALIZED:
            _log.warning("connection already started (state: %s)", self.state_string)
            return
        _log.info("starting connection search")
        self._transition_to_state(LinkState.SEARCHING)

    def stop_connection(self) -> None:
        """Tell the peer goodbye if paired and return to manual mode."""
        if not self._initialized:
            return
        _log.info("stopping connection")
        if self._current is LinkState.PAIRED:
            self._attempt(self.send_disconnect)
        self._remove_peer()
        self._current = LinkState.UNINITIALIZED
        self._machine.transition_to(LinkState.UNINITIALIZED)
        _log.info("connection stopped")

    def disconnect(self) -> None:
        """User-initiated disconnect: notify the peer and go back to searching."""
        if self._current not in (LinkState.PAIRED, LinkState.PAIRING):
            return
        _log.info("user-initiated disconnect")
        if self._current is LinkState.PAIRED and self._peer_added:
            self._attempt(self.send_disconnect)
        self._remove_peer()
        self._transition_to_state(LinkState.SEARCHING)

    # -- persistence -----------------------------------------------------

    def set_auto_reconnect(self, enabled: bool) -> None:
        self._auto_reconnect = bool(enabled)
        self._store.set_auto_reconnect(self._auto_reconnect)
        _log.info("auto-reconnect set to: %s", "enabled" if enabled else "disabled")

    def clear_saved_peer(self) -> None:
        self._store.clear()
        _log.info("cleared saved peer")

    # -- callbacks -------------------------------------------------------

    def set_screen_sync_callback(self, callback: Optional[MessageCallback]) -> None:
        self._screen_sync_callback = callback

    def set_button_data_callback(self, callback: Optional[MessageCallback]) -> None:
        self._button_data_callback = callback

    def set_input_event_callback(self, callback: Optional[MessageCallback]) -> None:
        self._input_event_callback = callback

    # -- sending ---------------------------------------------------------

    def _new_message(self, msg_type: MessageType) -> Message:
        message = Message(msg_type=msg_type, role=self.role, sequence=self._sequence, timestamp=self._clock())
        self._sequence = (self._sequence + 1) & _UINT32
        message.update_crc()
        return message

    def send_message(self, message: Message) -> None:
        """Send ``message`` to the peer; raises :class:`HalError` on failure."""
        if not self._initialized:
            _log.error("cannot send message - not initialized")
            raise NotInitializedError("link is not initialized")
        if message.msg_type not in _PAIRING_MESSAGES and self._current not in (LinkState.PAIRED, LinkState.PAIRING):
            _log.warning("cannot send message in state %s", self.state_string)
            raise HalError(f"cannot send message in state {self.state_string}")
        if not self._peer_added:
            _log.debug("adding peer before sending message")
            self._add_peer()
        _log.debug("sending message type %d to %s", message.msg_type, format_mac(self._peer_mac))
        try:
            self._transport.send(self._peer_mac, message.pack())
        except OSError as error:
            _log.error("send failed: %s", error)
            raise HalError("send failed") from error
        self._stats.messages_sent += 1

    def send_ping(self) -> None:
        message = self._new_message(MessageType.PING)
        message.set_ping_data(self._ping_counter)
        self._ping_counter = (self._ping_counter + 1) & _UINT32
        self._stats.ping_count += 1
        self._stats.last_ping_time = self._clock()
        self.send_message(message)

    def send_pong(self, counter: int) -> None:
        message = self._new_message(MessageType.PONG)
        message.set_pong_data(counter)
        self._stats.pong_count += 1
        self._stats.last_pong_time = self._clock()
        self.send_message(message)

    def send_disconnect(self) -> None:
        self.send_message(self._new_message(MessageType.DISCONNECT))

    def _send_pair_request(self) -> None:
        self.send_message(self._new_message(MessageType.PAIR_REQUEST))

    def _send_pair_response(self) -> None:
        self.send_message(self._new_message(MessageType.PAIR_RESPONSE))

    def _send_announce(self) -> None:
        message = self._new_message(MessageType.ANNOUNCE)
        try:
            if not self._transport.has_peer(BROADCAST_MAC):
                self._transport.add_peer(BROADCAST_MAC, CHANNEL)
            self._transport.send(BROADCAST_MAC, message.pack())
        except OSError as error:
            raise HalError("announce failed") from error

    @staticmethod
    def _attempt(action: Callable[..., None], *args: int) -> bool:
        try:
            action(*args)
        except HalError as error:
            _log.debug("ignored failure: %s", error)
            return False
        return True

    # -- receiving -------------------------------------------------------

    def receive(self, sender_mac: bytes, data: bytes) -> bool:
        """Queue a received frame; returns ``False`` when it was dropped."""
        if len(data) != Message.SIZE:
            return False
        message = Message.unpack(bytes(data))
        with self._queue_lock:
            if len(self._queue) >= self.MAX_QUEUE:
                return False
            self._queue.append((bytes(sender_mac), message))
        return True

    def _process_queue(self) -> None:
        for _ in range(self.MAX_PER_UPDATE):
            with self._queue_lock:
                if not self._queue:
                    return
                sender, message = self._queue.popleft()
            self._process_message(sender, message)

    def _process_message(self, sender: bytes, message: Message) -> None:
        if not message.is_valid():
            _log.warning("invalid message received (magic=%02X, CRC check failed)", message.magic)
            self._stats.messages_received += 1
            return

        self._last_activity_time = self._clock()
        self._stats.messages_received += 1
        from_peer = sender == self._peer_mac
        state = self._current

        try:
            msg_type = MessageType(message.msg_type)
        except ValueError:
            _log.warning("unknown message type: %d", message.msg_type)
            return

        if msg_type is MessageType.ANNOUNCE:
            if state is LinkState.SEARCHING and from_peer:
                _log.info("peer announcement received from %s", format_mac(sender))
                if self.role is DeviceRole.HANDHELD and self._attempt(self._add_peer):
                    _log.info("handheld sending pair request")
                    self._transition_to_state(LinkState.PAIRING)
                    self._attempt(self._send_pair_request)
        elif msg_type is MessageType.PAIR_REQUEST:
            if self.role is DeviceRole.BASE_STATION and state is LinkState.SEARCHING and from_peer:
                _log.info("base station received pair request from %s", format_mac(sender))
                if self._attempt(self._add_peer):
                    self._attempt(self._send_pair_response)
                    self._transition_to_state(LinkState.PAIRED)
                    self._attempt(self.send_ping)
        elif msg_type is MessageType.PAIR_RESPONSE:
            if self.role is DeviceRole.HANDHELD and state is LinkState.PAIRING and from_peer:
                _log.info("handheld received pair response, connection established")
                self._transition_to_state(LinkState.PAIRED)
        elif msg_type is MessageType.PING:
            if state is LinkState.PAIRED:
                counter = message.ping_pong_counter
                self._attempt(self.send_pong, counter)
                _log.debug("ping %d received, sending pong", counter)
        elif msg_type is MessageType.PONG:
            if state is LinkState.PAIRED:
                self._stats.latency_ms = _elapsed(self._clock(), self._stats.last_ping_time)
                _log.debug("pong %d received, latency: %d ms", message.ping_pong_counter, self._stats.latency_ms)
        elif msg_type is MessageType.DISCONNECT:
            if from_peer:
                _log.info("disconnect received from peer")
                self._remove_peer()
                self._transition_to_state(LinkState.SEARCHING)
        else:
            callback = {
                MessageType.SCREEN_SYNC: self._screen_sync_callback,
                MessageType.BUTTON_DATA: self._button_data_callback,
                MessageType.INPUT_EVENT: self._input_event_callback,
            }[msg_type]
            if callback is not None and state is LinkState.PAIRED:
                callback(message)

    # -- peers -----------------------------------------------------------

    def _add_peer(self) -> None:
        if self._peer_added:
            return
        if self._peer_mac == ZERO_MAC:
            _log.error("cannot add peer with zero MAC address")
            raise HalError("cannot add peer with zero MAC address")
        if self._transport.has_peer(self._peer_mac):
            self._peer_added = True
            return
        try:
            self._transport.add_peer(self._peer_mac, CHANNEL)
        except OSError as error:
            _log.error("failed to add peer: %s", error)
            raise HalError("failed to add peer") from error
        _log.info("peer added successfully")
        self._peer_added = True

    def _remove_peer(self) -> None:
        if not self._peer_added:
            return
        self._transport.remove_peer(self._peer_mac)
        self._peer_added = False

    # -- states ----------------------------------------------------------

    def _force_state(self, new_state: LinkState) -> None:
        self._current = new_state
        self._machine.transition_to(new_state)
        self._state_timer = 0

    def _transition_to_state(self, new_state: LinkState) -> None:
        with self._state_lock:
            old = self.state_string
            self._current = new_state
            self._machine.transition_to(new_state)
            role = "BASE" if self.role is DeviceRole.BASE_STATION else "HANDHELD"
            _log.info("[%s] state: %s -> %s", role, old, self.state_string)

            now = self._clock()
            if new_state is LinkState.SEARCHING:
                self._remove_peer()
                self._last_activity_time = now
            elif new_state is LinkState.PAIRING:
                self._last_activity_time = now
            elif new_state is LinkState.PAIRED:
                self._ping_counter = 0
                self._stats.ping_count = 0
                self._stats.pong_count = 0
                self._last_activity_time = now
                self._connection_start_time = now
                _log.info("connection established with peer")
                if self._auto_reconnect:
                    self._store.save(self._peer_mac, self._auto_reconnect)
            self._state_timer = 0

    def _handle_uninitialized(self, delta_ms: int) -> None:
        return None

    def _handle_searching(self, delta_ms: int) -> None:
        now = self._clock()
        if self.role is DeviceRole.BASE_STATION:
            if _elapsed(now, self._last_announce) > SEARCH_INTERVAL_MS:
                self._attempt(self._send_announce)
                self._last_announce = now
                _log.debug("base station searching for peer...")
        elif self._state_timer % 2000 == 0:
            _log.debug("handheld listening for base station...")

        if self._state_timer > PAIRING_TIMEOUT_MS * 3:
            _log.warning("search timeout, restarting")
            self._state_timer = 0

    def _handle_pairing(self, delta_ms: int) -> None:
        if self._state_timer > self.PAIRING_RESPONSE_TIMEOUT_MS:
            _log.warning("pairing timeout, back to searching")
            self._remove_peer()
            self._force_state(LinkState.SEARCHING)
            return
        if self.role is DeviceRole.HANDHELD:
            now = self._clock()
            if _elapsed(now, self._last_pairing_log) > self.RETRY_INTERVAL_MS:
                _log.debug("handheld waiting for pair response...")
                self._last_pairing_log = now

    def _handle_paired(self, delta_ms: int) -> None:
        if self.role is DeviceRole.BASE_STATION:
            if _elapsed(self._clock(), self._last_ping) > PING_INTERVAL_MS:
                if self._attempt(self.send_ping):
                    self._last_ping = self._clock()
                else:
                    _log.error("failed to send ping")

        idle = _elapsed(self._clock(), self._last_activity_time)
        if idle > CONNECTION_TIMEOUT_MS:
            _log.warning("connection timeout after %d ms of inactivity", idle)
            if self._auto_reconnect:
                self._transition_to_state(LinkState.RECONNECTING)
            else:
                self._remove_peer()
                if self.role is DeviceRole.HANDHELD:
                    self._force_state(LinkState.UNINITIALIZED)
                    _log.info("handheld disconnected - manual reconnect required")
                else:
                    self._force_state(LinkState.SEARCHING)

    def _handle_reconnecting(self, delta_ms: int) -> None:
        now = self._clock()
        if _elapsed(now, self._last_reconnect) > self.RETRY_INTERVAL_MS:
            if self.role is DeviceRole.BASE_STATION:
                self._attempt(self._send_announce)
            elif self._attempt(self._add_peer):
                self._attempt(self._send_pair_request)
            self._last_reconnect = now
            self._reconnect_attempts += 1
            _log.info("reconnection attempt %d", self._reconnect_attempts)

        if self._reconnect_attempts > self.MAX_RECONNECT_ATTEMPTS:
            _log.warning("reconnection failed after %d attempts", self._reconnect_attempts)
            self._reconnect_attempts = 0
            self._remove_peer()
            self._force_state(LinkState.SEARCHING)

        now = self._clock()
        if _elapsed(now, self._last_activity_time) < self.RETRY_INTERVAL_MS:
            _log.info("reconnection successful")
            self._reconnect_attempts = 0
            self._force_state(LinkState.PAIRED)
            self._connection_start_time = now

    def _handle_error(self, delta_ms: int) -> None:
        if self._state_timer > self.ERROR_RECOVERY_MS:
            self._force_state(LinkState.SEARCHING)