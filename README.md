# controlkit

This package is the application core of a handheld controller that pairs with a
base station. It contains no drivers. Timing, pins and the radio are passed in
as plain callables and objects, so every piece runs on a desktop and can be
tested there.

## Modules

- `controlkit.errors` defines the `HalStatus` codes and the exceptions raised for
  them: `HalError`, `BusyError`, `StatusTimeoutError`, `InvalidParamError`,
  `NotSupportedError`, `HardwareError` and `NotInitializedError`. It also has
  `error_to_string` and `raise_for_status`.
- `controlkit.formatting` holds text helpers: `format_hex`, `format_binary`,
  `format_time`, `format_uptime`, `format_bytes`, `format_percentage`,
  `format_temperature`, `format_voltage`, `format_frequency`, `bool_to_string`,
  `pad_left`, `pad_right`, `center`, `truncate`, `format_array`, `progress_bar`,
  `bitmap`, `format_log_entry`, `format_debug_dump` and `format_stack_trace`.
  It also has a `TableFormatter` that writes fixed-width tables from `Column`
  definitions, each with an `Alignment`.
- `controlkit.logger` provides `Logger`, which writes levelled lines with
  timestamps to any text stream once `init()` has been called. Levels come from
  `LogLevel`.
- `controlkit.constants` holds the shared timing, pin, memory and messaging
  values: `Timing`, `Hardware`, `Memory`, `Communication` and others.
- `controlkit.state_manager` provides `StateManager`, which is keyed by integers,
  and `StateMachine`, which is keyed by enum members. Each state is a `State`
  with enter, update and exit handlers. A transition requested while another
  one is running is deferred until that one finishes.
- `controlkit.message` defines the 45-byte link `Message` with its CRC-16 and
  little-endian `pack`/`unpack`, along with `MessageType`, `DeviceRole`, `crc16`,
  `parse_mac_address` and `format_mac`.
- `controlkit.buttons` provides `ShiftRegisterInput`, which reads buttons through
  a pin bus you supply, and a debouncing `ButtonManager`. The manager reports
  `ButtonEvent` flags for press, release, long-press and repeat.
- `controlkit.menu` provides `MenuManager`, a list of up to ten `MenuItem`s with
  selection, wrap-around and a scroll window. It raises `MenuFullError` when the
  list is full.
- `controlkit.peer_store` remembers the paired peer. `MemoryPeerStore` keeps it
  in memory and `JsonPeerStore` keeps it in a JSON file. Both return a
  `PeerRecord`.
- `controlkit.link` provides `LinkManager`, the pairing and keep-alive protocol
  between the handheld and the base station. It runs on a transport object you
  supply, and `LinkState` and `LinkStats` describe its progress.
- `controlkit.input_handler` provides `InputHandler`, which handles debouncing,
  press, release, long-press and double-click `InputEvent`s, and
  `ButtonCombination`s. It also has `ButtonMapper` and `button_name` for the
  logical `ButtonId` buttons.

## Examples

```python
from controlkit.formatting import format_uptime, progress_bar
from controlkit.message import DeviceRole, Message

print(format_uptime(3725))     # 01:02:05
print(progress_bar(40, 10))    # [====------]

msg = Message(role=DeviceRole.HANDHELD)
msg.set_ping_data(7)
raw = msg.pack()
assert Message.unpack(raw).is_valid()
assert Message.unpack(raw).ping_pong_counter == 7
```

A state machine:

```python
from controlkit.state_manager import StateManager

sm = StateManager("demo", clock=lambda: 0)
sm.add_state(1, "IDLE", lambda dt: None)
sm.transition_to(1)
sm.update(16)
print(sm.current_state_name, sm.state_time)   # IDLE 16
```

A logger writing to a stream:

```python
import io
from controlkit.logger import Logger

out = io.StringIO()
log = Logger(stream=out, clock=lambda: 0)
log.init()
log.info("main", "started %d tasks", 3)
```

A link needs a transport. This is any object with the methods `open()`, which
returns the device's own 6-byte address, `close()`, `has_peer(mac)`,
`add_peer(mac, channel)`, `remove_peer(mac)` and `send(mac, data)`. Failures
are raised as `OSError`. Incoming frames are handed to
`LinkManager.receive(sender_mac, data)`, and the next `update(delta_ms)`
processes them.

## What the package does not do

- It does not drive any hardware. There is no display drawing, no radio stack
  and no GPIO access. Menus and button managers hold only state; rendering and
  pin access are up to the caller.
- It has no application lifecycle base class, no screen base class and no
  board hardware profiles or pin maps.
- It has no command-line program.

## Running the tests

```
pip install -e .[test]
pytest
```