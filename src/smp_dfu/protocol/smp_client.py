"""
SMP management client.

Encodes requests (8-byte header + CBOR map), matches responses to requests and
exposes the two queries the upgrade planner needs:

- bootloader_info(): default group, bootloader information command
- list_images(): image group, image state command
"""

import logging
import struct
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import cbor2

from smp_dfu.models.images import SlotRecord
from .smp_transport import SMPError, SMPProtocolError

logger = logging.getLogger(__name__)


OP_READ = 0
OP_READ_RSP = 1
OP_WRITE = 2
OP_WRITE_RSP = 3

GROUP_DEFAULT = 0
GROUP_IMAGE = 1

ID_BOOTLOADER_INFO = 8
ID_IMAGE_STATE = 0

HEADER_FORMAT = ">BBHHBB"
HEADER_SIZE = struct.calcsize(HEADER_FORMAT)

BOOTLOADER_INFO_QUERY_BOOTLOADER = None
BOOTLOADER_INFO_QUERY_MODE = "mode"


class SMPErrorResponse(SMPError):
    """
    Device answered with a non-zero return code.

    Attributes:
        rc: Management return code
        group: Group that produced the error (SMP v2 only)
    """
    def __init__(self, rc: int, group: Optional[int] = None):
        self.rc = rc
        self.group = group
        where = f" (group {group})" if group is not None else ""
        super().__init__(f"Device returned error rc={rc}{where}")


@dataclass(frozen=True)
class SMPHeader:
    """SMP packet header."""
    op: int
    flags: int
    length: int
    group: int
    sequence: int
    command_id: int
    version: int = 1

    def pack(self) -> bytes:
        return struct.pack(
            HEADER_FORMAT,
            (self.op & 0x07) | ((self.version & 0x03) << 3),
            self.flags,
            self.length,
            self.group,
            self.sequence,
            self.command_id,
        )

    @classmethod
    def unpack(cls, blob: bytes) -> "SMPHeader":
        if len(blob) < HEADER_SIZE:
            raise SMPProtocolError(f"SMP packet too short: {len(blob)} bytes")
        op_ver, flags, length, group, seq, cmd = struct.unpack_from(HEADER_FORMAT, blob, 0)
        return cls(
            op=op_ver & 0x07,
            flags=flags,
            length=length,
            group=group,
            sequence=seq,
            command_id=cmd,
            version=(op_ver >> 3) & 0x03,
        )


@dataclass(frozen=True)
class BootloaderInfoResponse:
    """Decoded bootloader info response."""
    bootloader: Optional[str] = None
    mode: Optional[int] = None
    no_downgrade: bool = False


def check_return_code(payload: Dict[str, Any]) -> None:
    """Raise SMPErrorResponse for SMP v1 "rc" or SMP v2 "err" payloads."""
    err = payload.get("err")
    if isinstance(err, dict) and err.get("rc", 0):
        raise SMPErrorResponse(int(err["rc"]), err.get("group"))
    rc = payload.get("rc", 0)
    if rc:
        raise SMPErrorResponse(int(rc))


class SMPClient:
    """
    Request/response client on top of a transport with a
    `transceive(packet: bytes) -> bytes` method.

    One request is in flight at a time.
    """

    def __init__(self, transport, version: int = 1):
        self.transport = transport
        self.version = version
        self._sequence = 0

    def _next_sequence(self) -> int:
        seq = self._sequence
        self._sequence = (self._sequence + 1) & 0xFF
        return seq

    def request(
        self,
        op: int,
        group: int,
        command_id: int,
        payload: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """
        Send one management request and return the decoded response map.

        Raises:
            SMPError: Transport failure, malformed response or error return code
        """
        body = cbor2.dumps(payload or {})
        header = SMPHeader(
            op=op,
            flags=0,
            length=len(body),
            group=group,
            sequence=self._next_sequence(),
            command_id=command_id,
            version=self.version,
        )
        logger.debug(f"SMP request: group={group} id={command_id} seq={header.sequence} {payload or {}}")

        raw = self.transport.transceive(header.pack() + body)

        rsp = SMPHeader.unpack(raw)
        if rsp.op != op + 1:
            raise SMPProtocolError(f"unexpected response op {rsp.op} for request op {op}")
        if (rsp.group, rsp.sequence, rsp.command_id) != (group, header.sequence, command_id):
            raise SMPProtocolError(
                f"response does not match request: group={rsp.group} seq={rsp.sequence} id={rsp.command_id}"
            )
        data = raw[HEADER_SIZE:HEADER_SIZE + rsp.length]
        if len(data) != rsp.length:
            raise SMPProtocolError(f"truncated payload: {len(data)}/{rsp.length} bytes")

        try:
            decoded = cbor2.loads(data) if data else {}
        except cbor2.CBORDecodeError as e:
            raise SMPProtocolError(f"invalid CBOR payload: {e}")
        if not isinstance(decoded, dict):
            raise SMPProtocolError("response payload is not a map")

        logger.debug(f"SMP response: {decoded}")
        check_return_code(decoded)
        return decoded

    def bootloader_info(self, query: Optional[str] = BOOTLOADER_INFO_QUERY_BOOTLOADER) -> BootloaderInfoResponse:
        """
        Query bootloader information.

        Args:
            query: None for the bootloader identity, "mode" for the MCUboot mode
        """
        payload = {"query": query} if query else {}
        rsp = self.request(OP_READ, GROUP_DEFAULT, ID_BOOTLOADER_INFO, payload)
        mode = rsp.get("mode")
        if mode is not None and not isinstance(mode, int):
            raise SMPProtocolError(f"invalid bootloader mode {mode!r}")
        return BootloaderInfoResponse(
            bootloader=rsp.get("bootloader"),
            mode=mode,
            no_downgrade=bool(rsp.get("no-downgrade", False)),
        )

    def list_images(self) -> Optional[List[SlotRecord]]:
        """
        Read the image state of all slots.

        Returns:
            Slot records in device order, or None if the response carried no
            "images" entry
        """
        rsp = self.request(OP_READ, GROUP_IMAGE, ID_IMAGE_STATE)
        images = rsp.get("images")
        if images is None:
            return None
        if not isinstance(images, list):
            raise SMPProtocolError(f"malformed image state: images is a {type(images).__name__}")
        try:
            return [SlotRecord.from_response(entry) for entry in images]
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise SMPProtocolError(f"malformed image state entry: {e}")
