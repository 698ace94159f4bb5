"""
SMP serial transport

Handles the console/UART framing used by mcumgr over a serial port.

This module provides:
- Serial port initialization and configuration
- Packet framing (length + CRC16 + base64, split into marked lines)
- Request/response exchange with timeout handling

Frame layout:
    first line:         06 09 | base64 chunk | \\n
    continuation lines: 04 14 | base64 chunk | \\n
    decoded body:       len_be_u16 | smp packet | crc16_be_u16
"""

import base64
import logging
from typing import Iterable, List, Optional

try:
    import serial
except ImportError:
    raise ImportError("PySerial required: pip install pyserial")

logger = logging.getLogger(__name__)


FRAME_START = b"\x06\x09"
FRAME_CONTINUE = b"\x04\x14"
MAX_LINE_LENGTH = 127


class SMPError(Exception):
    """Base exception for SMP communication errors"""
    pass


class SMPTransportError(SMPError):
    """Serial port could not be used"""
    pass


class SMPTimeout(SMPTransportError):
    """Device did not respond in time"""
    pass


class SMPProtocolError(SMPError):
    """Malformed frame, bad CRC or unexpected response"""
    pass


def crc16_xmodem(data: bytes, init: int = 0) -> int:
    """CRC16-CCITT, poly 0x1021, init 0 (the XMODEM variant used by SMP serial)."""
    crc = init & 0xFFFF
    for b in data:
        crc ^= (b & 0xFF) << 8
        for _ in range(8):
            if crc & 0x8000:
                crc = ((crc << 1) ^ 0x1021) & 0xFFFF
            else:
                crc = (crc << 1) & 0xFFFF
    return crc


def encode_serial_frames(packet: bytes, max_line: int = MAX_LINE_LENGTH) -> bytes:
    """
    Wrap an SMP packet into serial console lines.

    Args:
        packet: Complete SMP packet (header + CBOR payload)
        max_line: Maximum line length including marker and newline

    Returns:
        Bytes ready to be written to the port
    """
    if len(packet) + 2 > 0xFFFF:
        raise SMPProtocolError("packet too large for serial framing")

    body = (len(packet) + 2).to_bytes(2, "big") + packet + crc16_xmodem(packet).to_bytes(2, "big")
    encoded = base64.b64encode(body)

    # Base64 chunks must stay 4-byte aligned so each line decodes on its own.
    chunk = ((max_line - len(FRAME_START) - 1) // 4) * 4
    out = bytearray()
    for i in range(0, len(encoded), chunk):
        out += FRAME_START if i == 0 else FRAME_CONTINUE
        out += encoded[i:i + chunk]
        out += b"\n"
    return bytes(out)


def decode_serial_frames(lines: Iterable[bytes]) -> bytes:
    """
    Reassemble one SMP packet from received lines.

    Lines without a frame marker (console output) are ignored.

    Raises:
        SMPProtocolError: If the frame is incomplete or the CRC does not match
    """
    encoded = bytearray()
    started = False
    for line in lines:
        line = line.rstrip(b"\r\n")
        if line.startswith(FRAME_START):
            encoded = bytearray(line[len(FRAME_START):])
            started = True
        elif line.startswith(FRAME_CONTINUE) and started:
            encoded += line[len(FRAME_CONTINUE):]
    if not started:
        raise SMPProtocolError("no SMP frame start marker received")

    try:
        body = base64.b64decode(bytes(encoded), validate=True)
    except ValueError as e:
        raise SMPProtocolError(f"invalid base64 in frame: {e}")

    if len(body) < 4:
        raise SMPProtocolError("frame too short")
    length = int.from_bytes(body[:2], "big")
    if length != len(body) - 2:
        raise SMPProtocolError(f"frame length mismatch: header {length}, got {len(body) - 2}")

    packet, crc = body[2:-2], int.from_bytes(body[-2:], "big")
    if crc16_xmodem(packet) != crc:
        raise SMPProtocolError(
            f"CRC16 mismatch: got 0x{crc16_xmodem(packet):04X}, want 0x{crc:04X}"
        )
    return packet


def _frame_complete(lines: List[bytes]) -> bool:
    """True once the accumulated lines hold the whole announced body."""
    encoded = b"".join(line.rstrip(b"\r\n")[2:] for line in lines)
    usable = len(encoded) - len(encoded) % 4
    if usable < 4:
        return False
    try:
        body = base64.b64decode(encoded[:usable])
    except ValueError:
        return False
    return len(body) >= 2 and len(body) - 2 >= int.from_bytes(body[:2], "big")


class SerialSMPTransport:
    """
    SMP transport over a serial port.

    Example:
        with SerialSMPTransport(port="/dev/ttyACM0") as transport:
            response = transport.transceive(packet)
    """

    def __init__(
        self,
        port: str,
        baudrate: int = 115200,
        timeout: float = 5.0,
        max_line: int = MAX_LINE_LENGTH,
    ):
        """
        Initialize transport layer.

        Args:
            port: Serial port (e.g., "/dev/ttyACM0", "COM3")
            baudrate: Serial baud rate (default 115200)
            timeout: Response timeout in seconds (default 5.0)
            max_line: Maximum framed line length (default 127)
        """
        self.port = port
        self.baudrate = baudrate
        self.timeout = timeout
        self.max_line = max_line
        self.ser: Optional[serial.Serial] = None

    def open(self) -> None:
        """
        Open serial port.

        Raises:
            SMPTransportError: If port cannot be opened
        """
        try:
            self.ser = serial.Serial(
                port=self.port,
                baudrate=self.baudrate,
                bytesize=8,
                parity='N',
                stopbits=1,
                timeout=self.timeout,
                write_timeout=self.timeout,
            )
            self.ser.reset_input_buffer()
            self.ser.reset_output_buffer()
            logger.debug(f"Opened {self.port} at {self.baudrate} bps (timeout={self.timeout}s)")
        except serial.SerialException as e:
            raise SMPTransportError(f"Cannot open port {self.port}: {e}")

    def close(self) -> None:
        """Close serial port."""
        if self.ser and self.ser.is_open:
            self.ser.close()
            logger.debug(f"Closed {self.port}")

    def __enter__(self) -> "SerialSMPTransport":
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def transceive(self, packet: bytes) -> bytes:
        """
        Send one SMP packet and wait for the framed response.

        Raises:
            SMPTransportError: On serial failures
            SMPTimeout: If no complete frame arrives within the timeout
            SMPProtocolError: If the response frame is malformed
        """
        if not self.ser or not self.ser.is_open:
            raise SMPTransportError("Serial port not open")

        frames = encode_serial_frames(packet, self.max_line)
        try:
            self.ser.write(frames)
            self.ser.flush()
            logger.debug(f">>> {packet.hex().upper()}")

            lines: List[bytes] = []
            while True:
                line = self.ser.readline()
                if not line:
                    raise SMPTimeout("Device did not respond (timeout)")
                if line.startswith(FRAME_START):
                    lines = [line]
                elif line.startswith(FRAME_CONTINUE) and lines:
                    lines.append(line)
                else:
                    logger.debug(f"Ignoring console output: {line!r}")
                    continue
                if _frame_complete(lines):
                    break
        except serial.SerialException as e:
            raise SMPTransportError(f"Serial error: {e}")

        response = decode_serial_frames(lines)
        logger.debug(f"<<< {response.hex().upper()}")
        return response
