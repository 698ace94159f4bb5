"""Tests for SMP serial framing and the serial transport."""

import base64
from unittest.mock import MagicMock

import pytest

from smp_dfu.protocol.smp_transport import (
    FRAME_CONTINUE,
    FRAME_START,
    MAX_LINE_LENGTH,
    SerialSMPTransport,
    SMPProtocolError,
    SMPTimeout,
    SMPTransportError,
    crc16_xmodem,
    decode_serial_frames,
    encode_serial_frames,
)


PACKET = bytes.fromhex("000000010000000aa0")


def _lines(framed: bytes):
    return [line + b"\n" for line in framed.split(b"\n") if line]


class TestCrc16:
    def test_check_value(self):
        assert crc16_xmodem(b"123456789") == 0x31C3

    def test_empty(self):
        assert crc16_xmodem(b"") == 0


class TestFraming:
    def test_short_packet_single_line(self):
        framed = encode_serial_frames(PACKET)
        lines = _lines(framed)

        assert len(lines) == 1
        assert lines[0].startswith(FRAME_START)
        assert framed.endswith(b"\n")

        body = base64.b64decode(lines[0][2:-1])
        assert int.from_bytes(body[:2], "big") == len(PACKET) + 2
        assert body[2:-2] == PACKET
        assert int.from_bytes(body[-2:], "big") == crc16_xmodem(PACKET)

    def test_long_packet_split_into_marked_lines(self):
        packet = bytes(range(256)) * 2
        lines = _lines(encode_serial_frames(packet))

        assert len(lines) > 1
        assert lines[0].startswith(FRAME_START)
        assert all(line.startswith(FRAME_CONTINUE) for line in lines[1:])
        assert all(len(line) <= MAX_LINE_LENGTH for line in lines)
        assert decode_serial_frames(lines) == packet

    def test_console_output_is_ignored(self):
        lines = [b"uart:~$ booting\r\n"] + _lines(encode_serial_frames(PACKET))
        assert decode_serial_frames(lines) == PACKET

    def test_missing_start_marker(self):
        with pytest.raises(SMPProtocolError, match="start marker"):
            decode_serial_frames([b"hello\n"])

    def test_crc_mismatch(self):
        body = (len(PACKET) + 2).to_bytes(2, "big") + PACKET + b"\x00\x00"
        line = FRAME_START + base64.b64encode(body) + b"\n"
        with pytest.raises(SMPProtocolError, match="CRC16"):
            decode_serial_frames([line])

    def test_length_mismatch(self):
        body = b"\x00\x40" + PACKET + crc16_xmodem(PACKET).to_bytes(2, "big")
        line = FRAME_START + base64.b64encode(body) + b"\n"
        with pytest.raises(SMPProtocolError, match="length"):
            decode_serial_frames([line])


class TestSerialSMPTransport:
    def _transport(self, *lines) -> SerialSMPTransport:
        transport = SerialSMPTransport("/dev/null", timeout=0.1)
        transport.ser = MagicMock()
        transport.ser.is_open = True
        transport.ser.readline.side_effect = list(lines)
        return transport

    def test_transceive_writes_frame_and_returns_response(self):
        response = bytes.fromhex("010000020000000aa0bf")
        transport = self._transport(b"log line\n", *_lines(encode_serial_frames(response)))

        assert transport.transceive(PACKET) == response
        transport.ser.write.assert_called_once_with(encode_serial_frames(PACKET))

    def test_multi_line_response(self):
        response = b"\x01\x00" + bytes(300)
        transport = self._transport(*_lines(encode_serial_frames(response)))
        assert transport.transceive(PACKET) == response

    def test_timeout_on_empty_read(self):
        transport = self._transport(b"")
        with pytest.raises(SMPTimeout):
            transport.transceive(PACKET)

    def test_not_open(self):
        with pytest.raises(SMPTransportError, match="not open"):
            SerialSMPTransport("/dev/null").transceive(PACKET)
