"""Tests for firmware image parsing and hash extraction."""

import struct

import cbor2
import pytest

from smp_dfu.firmware_image import (
    IMAGE_MAGIC,
    IMAGE_TLV_SHA256,
    TLV_INFO_MAGIC,
    TLV_PROT_INFO_MAGIC,
    FirmwareImageError,
    McuBootImage,
    RawImage,
    SuitEnvelope,
    load_firmware_image,
    parse_mcuboot_header,
)


SHA = bytes(range(32))
BODY = b"\xAA" * 64


def _tlv(tlv_type: int, value: bytes) -> bytes:
    return struct.pack("<HH", tlv_type, len(value)) + value


def _tlv_area(magic: int, *entries: bytes) -> bytes:
    payload = b"".join(entries)
    return struct.pack("<HH", magic, 4 + len(payload)) + payload


def build_mcuboot_image(
    body: bytes = BODY,
    tlvs=None,
    protected=b"",
    magic: int = IMAGE_MAGIC,
    version=(1, 2, 3, 4),
) -> bytes:
    """Assemble a minimal MCUboot image: header, body, optional protected TLVs, TLVs."""
    if tlvs is None:
        tlvs = [_tlv(IMAGE_TLV_SHA256, SHA)]
    header = struct.pack(
        "<IIHHIIBBHI",
        magic,
        0,
        32,
        len(protected),
        len(body),
        0,
        *version,
    ).ljust(32, b"\x00")
    return header + body + protected + _tlv_area(TLV_INFO_MAGIC, *tlvs)


def build_suit_envelope(digest: bytes = SHA) -> bytes:
    wrapper = cbor2.dumps([cbor2.dumps([-16, digest])])
    return cbor2.dumps(cbor2.CBORTag(107, {2: wrapper, 3: b"manifest"}))


class TestMcuBootImage:
    def test_header_fields(self):
        header = parse_mcuboot_header(build_mcuboot_image())
        assert header.hdr_size == 32
        assert header.img_size == len(BODY)
        assert str(header.version) == "1.2.3.4"

    def test_hash_from_tlv(self):
        blob = build_mcuboot_image()
        image = McuBootImage.from_bytes(blob)
        assert image.hash == SHA
        assert image.data == blob
        assert image.size == len(blob)
        assert image.needs_confirmation
        assert not image.requires_activation

    def test_hash_after_other_tlvs(self):
        blob = build_mcuboot_image(tlvs=[_tlv(0x01, b"\x00" * 32), _tlv(IMAGE_TLV_SHA256, SHA)])
        assert McuBootImage.from_bytes(blob).hash == SHA

    def test_protected_tlv_area_is_skipped(self):
        protected = _tlv_area(TLV_PROT_INFO_MAGIC, _tlv(0x50, b"\x01\x00\x00\x00"))
        blob = build_mcuboot_image(protected=protected)
        assert McuBootImage.from_bytes(blob).hash == SHA

    def test_bad_magic(self):
        with pytest.raises(FirmwareImageError, match="magic"):
            McuBootImage.from_bytes(build_mcuboot_image(magic=0x12345678))

    def test_too_short(self):
        with pytest.raises(FirmwareImageError, match="too small"):
            McuBootImage.from_bytes(b"\x3d\xb8\xf3\x96")

    def test_no_hash_tlv(self):
        with pytest.raises(FirmwareImageError, match="no SHA TLV"):
            McuBootImage.from_bytes(build_mcuboot_image(tlvs=[_tlv(0x01, b"\x00" * 32)]))

    def test_truncated_tlv_area(self):
        blob = build_mcuboot_image()
        with pytest.raises(FirmwareImageError):
            McuBootImage.from_bytes(blob[:-8])


class TestSuitEnvelope:
    def test_digest_from_auth_wrapper(self):
        envelope = SuitEnvelope.from_bytes(build_suit_envelope())
        assert envelope.hash == SHA
        assert not envelope.needs_confirmation
        assert envelope.requires_activation

    def test_untagged_envelope(self):
        wrapper = cbor2.dumps([cbor2.dumps([-16, SHA])])
        assert SuitEnvelope.from_bytes(cbor2.dumps({2: wrapper})).hash == SHA

    def test_missing_wrapper(self):
        with pytest.raises(FirmwareImageError, match="invalid SUIT envelope"):
            SuitEnvelope.from_bytes(cbor2.dumps({3: b"manifest"}))


class TestRawImage:
    def test_confirm_flag(self):
        assert RawImage(data=b"x", hash=SHA).needs_confirmation
        assert not RawImage(data=b"x", hash=SHA, confirm=False).needs_confirmation

    def test_empty_hash_rejected(self):
        with pytest.raises(FirmwareImageError):
            RawImage(data=b"x", hash=b"")


class TestLoadFirmwareImage:
    def test_mcuboot_file(self, tmp_path):
        path = tmp_path / "app.signed.bin"
        path.write_bytes(build_mcuboot_image())
        image = load_firmware_image(path)
        assert isinstance(image, McuBootImage)
        assert image.version is not None

    def test_suit_file(self, tmp_path):
        path = tmp_path / "root.suit"
        path.write_bytes(build_suit_envelope())
        assert isinstance(load_firmware_image(str(path)), SuitEnvelope)

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_firmware_image(tmp_path / "nope.bin")
