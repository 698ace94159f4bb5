"""
Firmware image containers for SMP DFU.

Every image handed to the planner carries its binary payload and the hash the
device reports for it in the image state listing. This module knows how to
obtain that hash for the formats we upload:

- MCUboot images: the SHA TLV in the image trailer
- SUIT envelopes: the digest in the authentication wrapper
- Raw images: hash supplied by the caller
"""

from __future__ import annotations

import struct
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Tuple

import cbor2


IMAGE_MAGIC = 0x96F3B83D
IMAGE_HEADER_SIZE = 32
TLV_INFO_MAGIC = 0x6907
TLV_PROT_INFO_MAGIC = 0x6908
TLV_INFO_SIZE = 4
TLV_HEADER_SIZE = 4

IMAGE_TLV_SHA256 = 0x10
IMAGE_TLV_SHA384 = 0x11
IMAGE_TLV_SHA512 = 0x12
HASH_TLV_TYPES = (IMAGE_TLV_SHA256, IMAGE_TLV_SHA384, IMAGE_TLV_SHA512)

SUIT_ENVELOPE_TAG = 107
SUIT_AUTHENTICATION_WRAPPER = 2


class FirmwareImageError(Exception):
    """Raised when an image cannot be parsed or has no usable hash."""


@dataclass(frozen=True)
class ImageVersion:
    """MCUboot semantic version stored in the image header."""

    major: int
    minor: int
    revision: int
    build: int

    def __str__(self) -> str:
        return f"{self.major}.{self.minor}.{self.revision}.{self.build}"


@dataclass(frozen=True)
class McuBootHeader:
    """Fields of the 32-byte little-endian MCUboot image header."""

    load_addr: int
    hdr_size: int
    protect_tlv_size: int
    img_size: int
    flags: int
    version: ImageVersion


@dataclass(frozen=True)
class FirmwareImage:
    """
    Binary payload plus the hash the device will report once it is stored.

    Attributes:
        data: Bytes sent with the upload command
        hash: Digest matched byte-for-byte against slot hashes
    """

    data: bytes = field(repr=False)
    hash: bytes

    # MCUboot images run once after TEST and revert unless confirmed.
    needs_confirmation = True
    # Formats that self-activate but still need an explicit hash-less confirm.
    requires_activation = False

    def __post_init__(self) -> None:
        if not self.hash:
            raise FirmwareImageError("image hash must not be empty")

    @property
    def size(self) -> int:
        return len(self.data)


def parse_mcuboot_header(blob: bytes) -> McuBootHeader:
    """Parse the MCUboot image header at the start of `blob`."""
    if len(blob) < IMAGE_HEADER_SIZE:
        raise FirmwareImageError(
            f"image too small for MCUboot header: {len(blob)} bytes"
        )
    (
        magic,
        load_addr,
        hdr_size,
        protect_tlv_size,
        img_size,
        flags,
        major,
        minor,
        revision,
        build,
    ) = struct.unpack_from("<IIHHIIBBHI", blob, 0)
    if magic != IMAGE_MAGIC:
        raise FirmwareImageError(f"bad MCUboot magic 0x{magic:08X}")
    if hdr_size < IMAGE_HEADER_SIZE:
        raise FirmwareImageError(f"invalid header size {hdr_size}")
    return McuBootHeader(
        load_addr=load_addr,
        hdr_size=hdr_size,
        protect_tlv_size=protect_tlv_size,
        img_size=img_size,
        flags=flags,
        version=ImageVersion(major, minor, revision, build),
    )


def _read_tlv_area(blob: bytes, offset: int, magic: int) -> Tuple[Optional[bytes], int]:
    """
    Scan one TLV area for a hash entry.

    Returns:
        Tuple of (hash or None, offset just past the area)
    """
    if offset + TLV_INFO_SIZE > len(blob):
        raise FirmwareImageError("TLV info header beyond end of image")
    got_magic, total_len = struct.unpack_from("<HH", blob, offset)
    if got_magic != magic:
        raise FirmwareImageError(
            f"bad TLV magic 0x{got_magic:04X} (expected 0x{magic:04X})"
        )
    end = offset + total_len
    if end > len(blob):
        raise FirmwareImageError("TLV area extends beyond end of image")

    pos = offset + TLV_INFO_SIZE
    found = None
    while pos + TLV_HEADER_SIZE <= end:
        tlv_type, tlv_len = struct.unpack_from("<HH", blob, pos)
        pos += TLV_HEADER_SIZE
        if pos + tlv_len > end:
            raise FirmwareImageError(f"TLV 0x{tlv_type:02X} overruns TLV area")
        if found is None and tlv_type in HASH_TLV_TYPES:
            found = bytes(blob[pos:pos + tlv_len])
        pos += tlv_len
    return found, end


@dataclass(frozen=True)
class McuBootImage(FirmwareImage):
    """Signed MCUboot application image."""

    header: Optional[McuBootHeader] = None

    @classmethod
    def from_bytes(cls, blob: bytes) -> "McuBootImage":
        header = parse_mcuboot_header(blob)
        offset = header.hdr_size + header.img_size

        image_hash = None
        if header.protect_tlv_size:
            image_hash, offset = _read_tlv_area(blob, offset, TLV_PROT_INFO_MAGIC)
        unprotected_hash, _ = _read_tlv_area(blob, offset, TLV_INFO_MAGIC)
        image_hash = image_hash or unprotected_hash
        if image_hash is None:
            raise FirmwareImageError("MCUboot image has no SHA TLV")
        return cls(data=bytes(blob), hash=image_hash, header=header)

    @property
    def version(self) -> Optional[ImageVersion]:
        return self.header.version if self.header else None


@dataclass(frozen=True)
class SuitEnvelope(FirmwareImage):
    """SUIT envelope; activated by a hash-less confirm instead of test/confirm."""

    needs_confirmation = False
    requires_activation = True

    @classmethod
    def from_bytes(cls, blob: bytes) -> "SuitEnvelope":
        try:
            envelope = cbor2.loads(blob)
            if isinstance(envelope, cbor2.CBORTag):
                if envelope.tag != SUIT_ENVELOPE_TAG:
                    raise FirmwareImageError(f"unexpected CBOR tag {envelope.tag}")
                envelope = envelope.value
            wrapper = cbor2.loads(envelope[SUIT_AUTHENTICATION_WRAPPER])
            digest = cbor2.loads(wrapper[0])
        except (cbor2.CBORDecodeError, KeyError, IndexError, TypeError) as exc:
            raise FirmwareImageError(f"invalid SUIT envelope: {exc}") from exc
        if not isinstance(digest, list) or len(digest) != 2:
            raise FirmwareImageError("SUIT digest must be [algorithm, bytes]")
        return cls(data=bytes(blob), hash=bytes(digest[1]))


@dataclass(frozen=True)
class RawImage(FirmwareImage):
    """Image whose hash is known up front (e.g. from a release manifest)."""

    confirm: bool = True

    @property
    def needs_confirmation(self) -> bool:  # type: ignore[override]
        return self.confirm


def load_firmware_image(path: str | Path) -> FirmwareImage:
    """Load an image file, picking the format from its suffix."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Image not found: {path}")
    blob = path.read_bytes()
    if path.suffix.lower() in (".suit", ".envelope"):
        return SuitEnvelope.from_bytes(blob)
    return McuBootImage.from_bytes(blob)
