"""SMP protocol layer - serial framing and management requests."""

from .smp_transport import (
    SerialSMPTransport,
    SMPError,
    SMPTransportError,
    SMPTimeout,
    SMPProtocolError,
    crc16_xmodem,
    encode_serial_frames,
    decode_serial_frames,
)
from .smp_client import (
    SMPClient,
    SMPErrorResponse,
    SMPHeader,
    BootloaderInfoResponse,
    BOOTLOADER_INFO_QUERY_BOOTLOADER,
    BOOTLOADER_INFO_QUERY_MODE,
)

__all__ = [
    # Transport
    "SerialSMPTransport",
    "SMPError",
    "SMPTransportError",
    "SMPTimeout",
    "SMPProtocolError",
    "crc16_xmodem",
    "encode_serial_frames",
    "decode_serial_frames",
    # Client
    "SMPClient",
    "SMPErrorResponse",
    "SMPHeader",
    "BootloaderInfoResponse",
    "BOOTLOADER_INFO_QUERY_BOOTLOADER",
    "BOOTLOADER_INFO_QUERY_MODE",
]
