"""Device-independent CAN bus front end with background send and receive workers."""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from datetime import datetime
from typing import Callable, Iterable, Iterator, Optional, Union

from canbus.buffer import MsgBuffer
from canbus.matrix import Matrix
from canbus.timer import Timer
from canbus.types import (
    MAX_QUEUE_BUFFER_SIZE,
    MAX_RECV_BUFFER_SIZE,
    MAX_SEND_BUFFER_SIZE,
    ArbiBaud,
    DataBaud,
    Device,
    Msg,
    ProtoCount,
    ProtoType,
    SendType,
    get_device_channel_count,
)

logger = logging.getLogger(__name__)

SendProc = Callable[[Msg], None]
MsgProc = Callable[[str, Msg], None]

_MAX_BATCH = 100
_SEND_POLL_S = 0.001
_SEND_IDLE_S = 0.1
_RECV_POLL_S = 0.01

_ARBI_BAUDS = {
    50: ArbiBaud.KBPS_50,
    100: ArbiBaud.KBPS_100,
    125: ArbiBaud.KBPS_125,
    200: ArbiBaud.KBPS_200,
    250: ArbiBaud.KBPS_250,
    400: ArbiBaud.KBPS_400,
    500: ArbiBaud.KBPS_500,
    800: ArbiBaud.KBPS_800,
    1000: ArbiBaud.MBPS_1,
}

_DATA_BAUDS = {
    5000: DataBaud.MBPS_5,
    4000: DataBaud.MBPS_4,
    2000: DataBaud.MBPS_2,
    1000: DataBaud.MBPS_1,
    800: DataBaud.KBPS_800,
    500: DataBaud.KBPS_500,
    250: DataBaud.KBPS_250,
    125: DataBaud.KBPS_125,
    100: DataBaud.KBPS_100,
}


class CanError(RuntimeError):
    """Raised when a CAN operation cannot be carried out."""


class CanBus(ABC):
    """Common behaviour of every CAN device.

    Each channel has a receive worker that drains the device into a frame
    buffer, and a send worker that transmits the queued periodic and event
    frames while asynchronous sending is enabled.  Concrete devices implement
    ``open``, ``reopen``, ``close``, ``_send`` and ``_recv``.
    """

    _instances = 0
    _counter_lock = threading.Lock()

    def __init__(self, device_type: int) -> None:
        self.device_type = device_type
        self.channel_count = get_device_channel_count(device_type)
        self.device = Device()
        self.matrix: Optional[Matrix] = None
        self.filter_ids: list[int] = []
        self.output_log = False
        self.support_fd = False
        self._is_open = False
        self._async_send = False
        self._quit = threading.Event()
        self._send_timer = Timer()

        channels = range(self.channel_count)
        self._buffers = [MsgBuffer(MAX_QUEUE_BUFFER_SIZE) for _ in channels]
        self._procs: list[Optional[MsgProc]] = [None for _ in channels]
        self._proc_locks = [threading.Lock() for _ in channels]
        self._send_locks = [threading.Lock() for _ in channels]
        self._recv_locks = [threading.Lock() for _ in channels]
        self._table_locks = [threading.RLock() for _ in channels]
        self._table: list[list[Msg]] = [[] for _ in channels]
        self._backup: list[list[Msg]] = [[] for _ in channels]

        with CanBus._counter_lock:
            self.base_id = CanBus._instances
            CanBus._instances += 1

        self._threads: list[threading.Thread] = []
        for channel in channels:
            for target in (self._send_worker, self._recv_worker):
                thread = threading.Thread(target=target, args=(channel,), daemon=True)
                thread.start()
                self._threads.append(thread)

    # -- lifecycle -------------------------------------------------------

    @abstractmethod
    def open(self, device: Device) -> None:
        """Open the device with the given settings."""

    @abstractmethod
    def reopen(self) -> None:
        """Open the device again with its previous settings."""

    @abstractmethod
    def close(self) -> None:
        """Close the device."""

    def reset(self) -> None:
        """Reset the device; devices without a reset raise CanError."""
        raise CanError("this device does not implement reset")

    @property
    def is_open(self) -> bool:
        """Whether the device is open."""
        return self._is_open

    def shutdown(self) -> None:
        """Stop the background workers; the object is unusable afterwards."""
        if self._quit.is_set():
            return
        self._quit.set()
        for thread in self._threads:
            if thread is not threading.current_thread():
                thread.join()
        with CanBus._counter_lock:
            CanBus._instances -= 1

    def __enter__(self) -> "CanBus":
        return self

    def __exit__(self, *exc_info: object) -> None:
        try:
            if self._is_open:
                self.close()
        finally:
            self.shutdown()

    # -- device primitives -----------------------------------------------

    @abstractmethod
    def _send(self, msgs: list[Msg], channel: int) -> bool:
        """Transmit frames on a channel; return whether it succeeded."""

    @abstractmethod
    def _recv(self, size: int, channel: int, timeout: int = 10) -> list[Msg]:
        """Read up to ``size`` frames from a channel."""

    # -- synchronous traffic ---------------------------------------------

    def _valid_channel(self, channel: int) -> bool:
        return 0 <= channel < self.channel_count

    def send_msg(self, msgs: Iterable[Msg], channel: int = 0) -> bool:
        """Transmit frames immediately on a channel."""
        if not self._valid_channel(channel):
            raise CanError("device channel out of range")
        return self._send(list(msgs), channel)

    def recv_msg(self, size: int, channel: int = 0) -> list[Msg]:
        """Take up to ``size`` received frames from the channel's buffer."""
        if not self._valid_channel(channel):
            return []
        return self._buffers[channel].pop(size)

    def clear_buffer(self, channel: int = 0) -> None:
        """Discard all received frames buffered for a channel."""
        if self._valid_channel(channel):
            self._buffers[channel].clear()

    # -- asynchronous send table -----------------------------------------

    def add_msg(self, msg: Msg, channel: int = 0) -> None:
        """Queue a frame for asynchronous transmission on a channel.

        A cyclic frame equal to one already queued replaces it.  A
        cycle/event frame replaces the queued frame with the same id and
        keeps the old one to restore once its event sends are done; it is
        ignored while a previous event burst for that id is still running.
        """
        if not self._valid_channel(channel):
            return
        with self._table_locks[channel]:
            table = self._table[channel]
            if msg.send_type == SendType.CE:
                for position, entry in enumerate(table):
                    if entry.id == msg.id and entry.send_type == SendType.CE:
                        if entry.send_count > 0:
                            return
                        backup = self._backup[channel]
                        if len(backup) < MAX_SEND_BUFFER_SIZE:
                            backup.append(entry)
                        table[position] = self._entry(msg, channel)
                        return

            for position, entry in enumerate(table):
                if entry.equal(msg) and msg.send_type != SendType.EVENT:
                    table[position] = self._entry(msg, channel)
                    break
            else:
                if len(table) >= MAX_SEND_BUFFER_SIZE:
                    return
                table.append(self._entry(msg, channel))

        if msg.add_interval:
            self._quit.wait(msg.add_interval / 1000.0)

    @staticmethod
    def _entry(msg: Msg, channel: int) -> Msg:
        entry = msg.copy()
        entry.send_valid = True
        entry.channel_index = channel
        return entry

    def add_periodic(
        self,
        msg_id: int,
        proc: Optional[SendProc],
        period: int,
        send_type: SendType = SendType.CYCLE,
        count: int = 0,
        interval: int = 0,
        channel: int = 0,
    ) -> None:
        """Queue an 8-byte frame whose payload ``proc`` fills before each send."""
        self.add_msg(
            Msg(
                id=msg_id,
                dlc=8,
                send_cycle=period,
                send_type=send_type,
                send_count=count,
                add_interval=interval,
                send_proc=proc,
                channel_index=channel,
            ),
            channel,
        )

    def add_msgs(self, msgs: Iterable[Msg], channel: int = 0) -> None:
        """Queue several frames in order."""
        for msg in msgs:
            self.add_msg(msg, channel)

    def add_signal(self, msg: Msg, start: int, length: int, data: int, channel: int = 0) -> None:
        """Pack a signal value into a copy of ``msg`` with the matrix and queue it."""
        if self.matrix is None:
            raise CanError("no matrix is set")
        packed = msg.copy()
        self.matrix.pack(packed.data, start, length, data)
        self.add_msg(packed, channel)

    def delete_msg(self, msg: Union[Msg, int], channel: int = 0) -> None:
        """Stop sending the first queued frame with the given id (or frame's id)."""
        if not self._valid_channel(channel):
            return
        msg_id = msg.id if isinstance(msg, Msg) else msg
        with self._table_locks[channel]:
            table = self._table[channel]
            for position, entry in enumerate(table):
                if entry.id == msg_id:
                    del table[position]
                    break

    def delete_all_msgs(self, channel: int = 0) -> None:
        """Stop sending every queued frame on a channel."""
        if not self._valid_channel(channel):
            return
        with self._table_locks[channel]:
            self._table[channel].clear()

    def start_async_send(self) -> None:
        """Let the send workers transmit the queued frames."""
        self._async_send = True

    def stop_async_send(self) -> None:
        """Pause transmission of the queued frames."""
        self._async_send = False

    # -- frame callbacks and logging -------------------------------------

    def set_msg_proc(self, proc: Optional[MsgProc] = None, channel: int = 0) -> None:
        """Set the callback that sees frames processed on a channel."""
        if not self._valid_channel(channel):
            return
        with self._proc_locks[channel]:
            self._procs[channel] = proc

    def get_msg_proc(self, channel: int = 0) -> Optional[MsgProc]:
        """The callback set for a channel, if any."""
        if not self._valid_channel(channel):
            return None
        return self._procs[channel]

    def format_msg(self, direction: str, msg: Msg) -> str:
        """One log line describing a frame, stamped with the local time."""
        now = datetime.now()
        payload = ":".join(f"{byte:02x}" for byte in msg.data[: max(msg.dlc, 0)])
        proto = "CAN" if msg.proto_type == ProtoType.CAN else "CANFD"
        return (
            f"[{now:%H:%M:%S}.{now.microsecond // 1000:03d}],"
            f"[{self.base_id}],"
            f"[{msg.channel_index}],"
            f"[{direction}],"
            f"[{proto}],"
            f"[0x{msg.id:x}],"
            f"[{payload}],"
            f"[{msg.time_stamp:06d}],"
            f"[{'true' if msg.exp_frame else 'false'}],"
            f"[{'true' if msg.rem_frame else 'false'}]\n"
        )

    def process_msg(self, direction: str, msgs: Iterable[Msg], channel: int) -> None:
        """Log frames and hand them to the channel callback, honouring the id filter."""
        if not self._valid_channel(channel):
            return
        for msg in msgs:
            if self.filter_ids and msg.id not in self.filter_ids:
                continue
            if self.output_log:
                logger.debug(self.format_msg(direction, msg).rstrip("\n"))
            with self._proc_locks[channel]:
                proc = self._procs[channel]
                if proc is not None and msg.channel_index == channel:
                    proc(direction, msg)

    # -- helpers for devices ---------------------------------------------

    def translate_arbi_baud(self, value: int) -> ArbiBaud:
        """Arbitration baud rate for a rate in kbit/s; unknown rates give 0 kbit/s."""
        return _ARBI_BAUDS.get(value, ArbiBaud.KBPS_0)

    def translate_data_baud(self, value: int) -> DataBaud:
        """Data baud rate for a rate in kbit/s; unknown rates give 0 kbit/s."""
        return _DATA_BAUDS.get(value, DataBaud.KBPS_0)

    def get_proto_count(self, msgs: Iterable[Msg]) -> ProtoCount:
        """Count classic CAN and CAN FD frames."""
        count = ProtoCount()
        for msg in msgs:
            if msg.proto_type == ProtoType.CAN:
                count.can += 1
            else:
                count.canfd += 1
        return count

    @staticmethod
    def _get_dlc(msg: Msg) -> int:
        return 8 if msg.dlc == 0 else msg.dlc

    @contextmanager
    def _closing(self, channel: int) -> Iterator[None]:
        """Hold off the workers of a channel while it is being closed."""
        if not self._valid_channel(channel):
            yield
            return
        with self._send_locks[channel], self._recv_locks[channel]:
            yield

    # -- workers ---------------------------------------------------------

    def _collect_due(self, channel: int) -> list[Msg]:
        now = int(self._send_timer.elapsed_ms())
        batch: list[Msg] = []
        with self._table_locks[channel]:
            table = self._table[channel]
            for entry in list(table):
                if now - entry.send_time < entry.send_cycle:
                    continue
                entry.send_time = now
                if entry.send_proc is not None:
                    entry.send_proc(entry)
                batch.append(entry.copy())
                if entry.send_type == SendType.EVENT:
                    entry.send_count -= 1
                    if entry.send_count <= 0:
                        entry.send_valid = False
                        table.remove(entry)
                        if entry.event_proc is not None:
                            entry.event_proc(entry)
                elif entry.send_type == SendType.CE and entry.send_count > 0:
                    entry.send_count -= 1
                    if entry.send_count <= 0:
                        if entry.event_proc is not None:
                            entry.event_proc(entry)
                        self._restore(channel, entry)
                if len(batch) >= _MAX_BATCH:
                    break
        return batch

    def _restore(self, channel: int, entry: Msg) -> None:
        backup = self._backup[channel]
        table = self._table[channel]
        for position, saved in enumerate(backup):
            if saved.id == entry.id:
                del backup[position]
                table[table.index(entry)] = saved
                return

    def _send_worker(self, channel: int) -> None:
        while not self._quit.is_set():
            while self._is_open and self._async_send and not self._quit.is_set():
                try:
                    batch = self._collect_due(channel)
                    if batch:
                        with self._send_locks[channel]:
                            if self.device.enable_channel[channel]:
                                self._send(batch, channel)
                except Exception:
                    logger.exception("asynchronous send failed on channel %d", channel)
                self._quit.wait(_SEND_POLL_S)
            self._quit.wait(_SEND_IDLE_S)

    def _recv_worker(self, channel: int) -> None:
        while not self._quit.is_set():
            if self._is_open:
                try:
                    with self._recv_locks[channel]:
                        if self.device.enable_channel[channel]:
                            msgs = self._recv(MAX_RECV_BUFFER_SIZE, channel)
                            if msgs:
                                self._buffers[channel].push(msgs)
                except Exception:
                    logger.exception("receive failed on channel %d", channel)
            self._quit.wait(_RECV_POLL_S)