import pytest

from canbus.types import (
    MAX_CHANNEL_COUNT,
    MAX_MSG_DATA_SIZE,
    Device,
    DeviceType,
    Msg,
    ProtoCount,
    ProtoType,
    SendType,
    get_device_channel_count,
)


def test_msg_defaults():
    msg = Msg()
    assert msg.dlc == 8
    assert msg.send_cycle == 100
    assert msg.send_type is SendType.CYCLE
    assert msg.proto_type is ProtoType.CAN
    assert len(msg.data) == MAX_MSG_DATA_SIZE
    assert not any(msg.data)
    assert msg.send_valid is False


def test_msg_data_is_padded_and_truncated():
    short = Msg(data=[1, 2, 3])
    assert len(short.data) == MAX_MSG_DATA_SIZE
    assert list(short.data[:3]) == [1, 2, 3]
    assert not any(short.data[3:])

    long = Msg(data=range(100))
    assert len(long.data) == MAX_MSG_DATA_SIZE
    assert list(long.data) == list(range(MAX_MSG_DATA_SIZE))


def test_equality_uses_id_and_data_only():
    a = Msg(id=0x10, data=[1, 2], send_cycle=10, channel_index=1)
    b = Msg(id=0x10, data=[1, 2], send_cycle=50, channel_index=3)
    assert a.equal(b)
    assert a == b
    assert not (a != b)


@pytest.mark.parametrize(
    "other",
    [Msg(id=0x11, data=[1, 2]), Msg(id=0x10, data=[1, 3]), Msg(id=0x10, data=[1, 2, 0, 0, 5])],
)
def test_inequality(other):
    base = Msg(id=0x10, data=[1, 2])
    assert not base.equal(other)
    assert base != other


def test_copy_is_independent():
    original = Msg(id=7, data=[9, 9], send_count=3)
    duplicate = original.copy()
    assert duplicate == original
    assert duplicate.send_count == original.send_count
    duplicate.data[0] = 1
    duplicate.send_count = 0
    assert original.data[0] == 9
    assert original.send_count == 3


def test_is_empty():
    assert Msg().is_empty()
    assert not Msg(id=1).is_empty()
    assert not Msg(data=[0, 0, 0, 0, 0, 0, 0, 0, 0, 0, 4]).is_empty()


def test_set_data_replaces_whole_payload():
    msg = Msg(data=[5] * 20)
    msg.set_data([1, 2])
    assert list(msg.data[:2]) == [1, 2]
    assert not any(msg.data[2:])
    assert len(msg.data) == MAX_MSG_DATA_SIZE


def test_str_format():
    msg = Msg(id=0x123, dlc=2, data=[1, 0xAB])
    assert str(msg) == "[0],[CAN],[0x123],[01:ab]"
    fd = Msg(id=0x1, dlc=1, data=[0xFF], proto_type=ProtoType.CANFD, channel_index=2)
    assert "[CANFD]" in str(fd)
    assert str(fd).startswith("[2],")


def test_msg_is_unhashable():
    with pytest.raises(TypeError):
        hash(Msg())


def test_device_defaults():
    device = Device()
    assert device.enable_channel[0] is True
    assert not any(device.enable_channel[1:])
    assert len(device.enable_channel) == MAX_CHANNEL_COUNT
    assert device.arbi_baud == [500] * MAX_CHANNEL_COUNT
    assert device.data_baud == [2000] * MAX_CHANNEL_COUNT
    assert device.peer_port == 8000
    assert device.connect_timeout == 100
    assert device.bind_address is None


def test_devices_do_not_share_lists():
    first, second = Device(), Device()
    first.enable_channel[1] = True
    assert second.enable_channel[1] is False


def test_proto_count_defaults():
    count = ProtoCount()
    assert (count.can, count.canfd) == (0, 0)


@pytest.mark.parametrize(
    "device_type, expected",
    [
        (DeviceType.NULL_CAN, 1),
        (DeviceType.ZLG_USBCAN1, 1),
        (DeviceType.ZLG_USBCAN2, 2),
        (DeviceType.ZLG_USBCANFDMINI, 1),
        (DeviceType.ZLG_USBCANFD100U, 1),
        (DeviceType.ZLG_USBCANFD200U, 2),
        (DeviceType.ZLG_USBCANFD400U, 4),
        (DeviceType.ZLG_USBCANFD800U, 8),
        (DeviceType.ZLG_NETCANFD200U, 2),
        (DeviceType.ZLG_NETCANFD400U, 4),
        (DeviceType.ZLG_NETCANFD800U, 8),
        (DeviceType.GC_USBCANFD, 2),
    ],
)
def test_channel_counts(device_type, expected):
    assert get_device_channel_count(device_type) == expected


def test_unknown_device_has_one_channel():
    assert get_device_channel_count(99) == 1