import pytest

from controlkit.message import (
    MESSAGE_MAGIC,
    Message,
    MessageType,
    DeviceRole,
    crc16,
    format_mac,
    parse_mac_address,
)


def test_crc16_check_value():
    assert crc16(b"123456789") == 0x29B1


def test_crc16_of_nothing_is_initial_value():
    assert crc16(b"") == 0xFFFF


def test_default_message_layout():
    msg = Message()
    raw = msg.pack()
    assert len(raw) == Message.SIZE
    assert raw[0] == MESSAGE_MAGIC
    assert msg.data == bytearray(32)
    assert Message.CRC_OFFSET == Message.SIZE - 2


def test_pack_unpack_round_trip():
    msg = Message(msg_type=MessageType.ANNOUNCE, role=DeviceRole.BASE_STATION, sequence=7, timestamp=123456)
    msg.update_crc()
    decoded = Message.unpack(msg.pack())
    assert decoded == msg
    assert decoded.msg_type == MessageType.ANNOUNCE
    assert decoded.role == DeviceRole.BASE_STATION
    assert decoded.is_valid()


def test_unpack_rejects_wrong_length():
    with pytest.raises(ValueError):
        Message.unpack(b"\x00" * (Message.SIZE - 1))


def test_data_must_have_fixed_size():
    with pytest.raises(ValueError):
        Message(data=bytearray(5))


def test_message_without_crc_update_is_invalid():
    msg = Message(msg_type=MessageType.PING, sequence=1)
    assert msg.crc != msg.calculate_crc() or msg.calculate_crc() == 0
    assert not msg.is_valid()


def test_corrupted_message_fails_validation():
    msg = Message(msg_type=MessageType.PAIR_REQUEST)
    msg.update_crc()
    raw = bytearray(msg.pack())
    raw[5] ^= 0x01
    assert not Message.unpack(bytes(raw)).is_valid()


def test_wrong_magic_is_invalid():
    msg = Message(magic=0x00)
    msg.update_crc()
    assert not msg.is_valid()


def test_crc_ignores_crc_field():
    msg = Message(sequence=3)
    before = msg.calculate_crc()
    msg.crc = 0x1234
    assert msg.calculate_crc() == before


def test_ping_data_little_endian():
    msg = Message()
    msg.set_ping_data(0x01020304)
    assert msg.msg_type == MessageType.PING
    assert bytes(msg.data[:4]) == bytes([0x04, 0x03, 0x02, 0x01])
    assert msg.ping_pong_counter == 0x01020304
    assert msg.is_valid()


def test_pong_round_trip():
    msg = Message()
    msg.set_pong_data(42)
    decoded = Message.unpack(msg.pack())
    assert decoded.msg_type == MessageType.PONG
    assert decoded.ping_pong_counter == 42
    assert decoded.is_valid()


def test_screen_sync_round_trip():
    msg = Message()
    msg.set_screen_sync(3, "Settings")
    decoded = Message.unpack(msg.pack())
    assert decoded.msg_type == MessageType.SCREEN_SYNC
    assert decoded.screen_id == 3
    assert decoded.screen_name == "Settings"
    assert decoded.is_valid()


def test_screen_name_is_limited_to_thirty_bytes():
    msg = Message()
    msg.set_screen_sync(1, "x" * 40)
    assert msg.screen_name == "x" * 30
    assert msg.data[1] == 30


def test_screen_sync_without_name():
    msg = Message()
    msg.set_screen_sync(2, None)
    assert msg.screen_name == ""
    assert msg.screen_id == 2


def test_button_data_round_trip():
    msg = Message()
    msg.set_button_data(0b1010_0101, 987654)
    decoded = Message.unpack(msg.pack())
    assert decoded.msg_type == MessageType.BUTTON_DATA
    assert decoded.button_states == 0b1010_0101
    assert decoded.button_timestamp == 987654
    assert decoded.is_valid()


def test_input_event_round_trip():
    msg = Message()
    msg.set_input_event(2, 5, 0xBEEF)
    decoded = Message.unpack(msg.pack())
    assert decoded.msg_type == MessageType.INPUT_EVENT
    assert decoded.input_event_type == 2
    assert decoded.input_button_id == 5
    assert decoded.input_event_data == 0xBEEF
    assert decoded.is_valid()


def test_parse_mac_address():
    assert parse_mac_address("02:00:00:00:00:0a") == bytes([0x02, 0, 0, 0, 0, 0x0A])


def test_parse_mac_accepts_prefix_and_spaces():
    assert parse_mac_address(" 0x02: 0x00:00:00:00:01") == bytes([2, 0, 0, 0, 0, 1])


@pytest.mark.parametrize("text", ["02:00:00", "100:00:00:00:00:00", "zz:00:00:00:00:00", ""])
def test_parse_mac_rejects_bad_input(text):
    with pytest.raises(ValueError):
        parse_mac_address(text)


def test_format_and_parse_round_trip():
    mac = bytes([0x02, 0xAB, 0xCD, 0x00, 0x11, 0xFF])
    text = format_mac(mac)
    assert text == "02:AB:CD:00:11:FF"
    assert parse_mac_address(text) == mac