# canbus

Building blocks for CAN and CAN FD traffic in Python:

- `canbus.types`: the frame record `Msg` and the device settings record `Device`.
  It also holds `ProtoCount`, the `DeviceType`, `ProtoType`, `SendType`, `ArbiBaud`
  and `DataBaud` enumerations, and `get_device_channel_count()`.
- `canbus.buffer`: `MsgBuffer`, a bounded FIFO of frames that is safe to share
  between threads. When it is full, the oldest frames are dropped.
- `canbus.timer`: `Timer`, a stopwatch that counts milliseconds using
  `time.perf_counter`.
- `canbus.matrix`: `Matrix`, which packs signal values into payloads and reads
  them back out, in `MatrixType.MOTOROLA_LSB`, `MOTOROLA_MSB` or `INTEL` bit
  order.
- `canbus.base`: `CanBus`, an abstract bus. It gives every channel a send worker
  thread and a receive worker thread, and raises `CanError` when an operation
  fails.
- `canbus.devices`: `get_support_device_type()` returns the names of the known
  device types, in `DeviceType` order.

The package needs nothing beyond the standard library.

## Installing

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Frames

```python
from canbus.types import Msg, ProtoType

msg = Msg(id=0x123, dlc=3, data=[1, 2, 3])
print(msg)              # [0],[CAN],[0x123],[01:02:03]
msg.set_data([0xAA])    # the rest of the 64-byte payload is set to zero
assert msg == Msg(id=0x123, data=[0xAA])   # equality compares id and payload only
```

## Packing a signal

```python
from canbus.matrix import Matrix, MatrixType

matrix = Matrix(MatrixType.INTEL)
frame = bytearray(8)
matrix.pack(frame, 12, 10, 0x2A5)
assert matrix.unpack(frame, 12, 10) == 0x2A5
```

`MatrixError` (a subclass of `ValueError`) is raised in these cases: the start
bit is outside 0–63, the length is outside 1–64, the value does not fit in the
given length, or the signal extends past the end of the buffer.

## Writing a device

`CanBus` does not talk to hardware. A subclass supplies `open`, `reopen` and
`close`, plus the two frame primitives `_send(msgs, channel)` and
`_recv(size, channel, timeout=10)`. The example below is a loopback bus:

```python
from canbus.base import CanBus
from canbus.types import DeviceType, Msg, SendType


class LoopbackBus(CanBus):
    def __init__(self):
        super().__init__(DeviceType.NULL_CAN)
        self._pending = []

    def open(self, device):
        self.device = device
        self._is_open = True

    def reopen(self):
        self._is_open = True

    def close(self):
        self._is_open = False

    def _send(self, msgs, channel):
        self.process_msg("S", msgs, channel)
        self._pending.extend(msgs)
        return True

    def _recv(self, size, channel, timeout=10):
        taken, self._pending = self._pending[:size], self._pending[size:]
        return taken
```

## Scheduling frames

```python
from canbus.types import Device, Msg, SendType

with LoopbackBus() as bus:
    bus.open(Device())
    bus.add_msg(Msg(id=0x123, data=[1, 2, 3]))                       # cyclic, every 100 ms
    bus.add_periodic(0x200, lambda m: m.set_data([7]), 50)           # proc fills the payload
    bus.add_msg(Msg(id=0x300, send_type=SendType.EVENT, send_count=3))
    bus.start_async_send()
    ...
    frames = bus.recv_msg(10)
```

Leaving the `with` block closes the bus if it is open and then stops the worker
threads, the same as calling `shutdown()`. Other calls:

- `delete_msg(msg_or_id, channel)` and `delete_all_msgs(channel)` remove queued
  frames.
- `stop_async_send()` pauses sending.
- `add_msgs(msgs, channel)` queues several frames at once.
- `add_signal(msg, start, length, data, channel)` packs a value into a copy of
  `msg` using `bus.matrix` and queues the copy. If no matrix is set, it raises
  `CanError`.

How each send type behaves:

- `SendType.CYCLE`: the frame is sent every `send_cycle` ms. Queuing an equal
  frame replaces the one already queued.
- `SendType.EVENT`: the frame is sent `send_count` times and then removed.
  `event_proc` is called after the last send.
- `SendType.CE`: the new frame takes the place of the queued CE frame with the
  same id for `send_count` sends. After that the earlier frame is restored.

## Callbacks and logging

`set_msg_proc(proc, channel)` registers `proc(direction, msg)`. It is called for
every frame that reaches `process_msg` on that channel. If `bus.filter_ids` is
non-empty, only frames whose id is in it are passed on. When `bus.output_log` is
true, each frame is also logged at DEBUG level through the `canbus.base` logger,
in the line format that `format_msg(direction, msg)` produces.

Other helpers:

- `send_msg(msgs, channel)` sends straight away. It raises `CanError` for a
  channel number that is out of range.
- `clear_buffer(channel)` empties the receive buffer.
- `translate_arbi_baud(kbps)` and `translate_data_baud(kbps)` map a rate to its
  enumeration member.
- `get_proto_count(msgs)` counts the CAN frames and the CAN FD frames.

## What this package does not do

No concrete device is included. There is no driver for any of the interfaces
named by `get_support_device_type()`, and there is no ready-made null device.
Opening and closing hardware and moving frames on and off a real bus are the
job of the subclass you write. The package also has no command-line program.