"""Core CAN data types: frames, device settings and enumerations."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Callable, Iterable, Optional

MAX_CHANNEL_COUNT = 8
MAX_MSG_DATA_SIZE = 64
MAX_RECV_BUFFER_SIZE = 128
MAX_SEND_BUFFER_SIZE = 128
MAX_QUEUE_BUFFER_SIZE = 4096


class DeviceType(IntEnum):
    """Supported CAN interface devices."""

    NULL_CAN = 0
    ZLG_USBCAN1 = 1
    ZLG_USBCAN2 = 2
    ZLG_USBCANFDMINI = 3
    ZLG_USBCANFD100U = 4
    ZLG_USBCANFD200U = 5
    ZLG_USBCANFD400U = 6
    ZLG_USBCANFD800U = 7
    ZLG_NETCANFD200U = 8
    ZLG_NETCANFD400U = 9
    ZLG_NETCANFD800U = 10
    GC_USBCANFD = 11


class ProtoType(IntEnum):
    """Frame protocol: classic CAN or CAN FD."""

    CAN = 0
    CANFD = 1


class ArbiBaud(IntEnum):
    """Arbitration phase baud rates."""

    MBPS_1 = 0
    KBPS_800 = 1
    KBPS_500 = 2
    KBPS_400 = 3
    KBPS_250 = 4
    KBPS_200 = 5
    KBPS_125 = 6
    KBPS_100 = 7
    KBPS_50 = 8
    KBPS_0 = 9


class DataBaud(IntEnum):
    """Data phase baud rates (CAN FD only)."""

    MBPS_5 = 0
    MBPS_4 = 1
    MBPS_2 = 2
    MBPS_1 = 3
    KBPS_800 = 4
    KBPS_500 = 5
    KBPS_250 = 6
    KBPS_125 = 7
    KBPS_100 = 8
    KBPS_0 = 9


class SendType(IntEnum):
    """How a queued frame is transmitted."""

    CYCLE = 0
    EVENT = 1
    CE = 2
    IFACTIVE = 3


def _normalize_data(data: Iterable[int]) -> bytearray:
    raw = bytearray(bytes(data)[:MAX_MSG_DATA_SIZE])
    raw.extend(bytes(MAX_MSG_DATA_SIZE - len(raw)))
    return raw


@dataclass(eq=False)
class Msg:
    """A CAN or CAN FD frame together with its transmit scheduling state.

    Two frames compare equal when their identifiers and payloads match.
    """

    id: int = 0
    dlc: int = 8
    data: bytearray = field(default_factory=lambda: bytearray(MAX_MSG_DATA_SIZE))
    send_cycle: int = 100
    send_type: SendType = SendType.CYCLE
    send_count: int = 0
    add_interval: int = 0
    send_proc: Optional[Callable[["Msg"], None]] = None
    channel_index: int = 0
    proto_type: ProtoType = ProtoType.CAN
    exp_frame: bool = False
    rem_frame: bool = False
    time_stamp: int = 0
    send_valid: bool = False
    send_time: int = 0
    event_proc: Optional[Callable[["Msg"], None]] = None

    def __post_init__(self) -> None:
        self.data = _normalize_data(self.data)

    def copy(self) -> "Msg":
        """Return an independent copy of this frame."""
        duplicate = Msg.__new__(Msg)
        duplicate.__dict__.update(self.__dict__)
        duplicate.data = bytearray(self.data)
        return duplicate

    def equal(self, other: "Msg") -> bool:
        """True when identifier and full payload match."""
        return self.id == other.id and self.data == other.data

    def is_empty(self) -> bool:
        """True when the identifier is zero and the payload is all zero."""
        return self.id == 0 and not any(self.data)

    def set_data(self, data: Iterable[int]) -> None:
        """Replace the payload, zero-filling the remainder."""
        self.data = _normalize_data(data)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Msg):
            return NotImplemented
        return self.equal(other)

    __hash__ = None  # type: ignore[assignment]

    def __str__(self) -> str:
        payload = ":".join(f"{byte:02x}" for byte in self.data[: max(self.dlc, 0)])
        proto = "CAN" if self.proto_type == ProtoType.CAN else "CANFD"
        return f"[{self.channel_index}],[{proto}],[0x{self.id:x}],[{payload}]"


@dataclass
class Device:
    """Settings used when opening a CAN device."""

    device_index: int = 0
    enable_channel: list[bool] = field(
        default_factory=lambda: [True] + [False] * (MAX_CHANNEL_COUNT - 1)
    )
    arbi_baud: list[int] = field(default_factory=lambda: [500] * MAX_CHANNEL_COUNT)
    data_baud: list[int] = field(default_factory=lambda: [2000] * MAX_CHANNEL_COUNT)
    is_expand_frame: bool = False
    bind_address: Optional[str] = None
    peer_address: Optional[str] = None
    peer_port: int = 8000
    connect_timeout: int = 100


@dataclass
class ProtoCount:
    """Number of classic CAN and CAN FD frames in a batch."""

    can: int = 0
    canfd: int = 0


_CHANNEL_COUNTS = {
    DeviceType.NULL_CAN: 1,
    DeviceType.ZLG_USBCAN1: 1,
    DeviceType.ZLG_USBCAN2: 2,
    DeviceType.ZLG_USBCANFDMINI: 1,
    DeviceType.ZLG_USBCANFD100U: 1,
    DeviceType.ZLG_USBCANFD200U: 2,
    DeviceType.ZLG_USBCANFD400U: 4,
    DeviceType.ZLG_USBCANFD800U: 8,
    DeviceType.ZLG_NETCANFD200U: 2,
    DeviceType.ZLG_NETCANFD400U: 4,
    DeviceType.ZLG_NETCANFD800U: 8,
    DeviceType.GC_USBCANFD: 2,
}


def get_device_channel_count(device_type: int) -> int:
    """Number of channels a device type provides; unknown types have one."""
    return _CHANNEL_COUNTS.get(device_type, 1)