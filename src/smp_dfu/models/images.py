"""
Target images, cache images and device-reported slot records.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterator, List, Optional

from smp_dfu.firmware_image import FirmwareImage


PRIMARY_SLOT = 0
SECONDARY_SLOT = 1


class UpgradeMode(Enum):
    """Caller-selected test/confirm policy."""
    NONE = "none"                         # Upload only, then reset
    TEST_ONLY = "test"                    # Test, reset; the app confirms itself
    CONFIRM_ONLY = "confirm"              # Confirm, reset; no revert possible
    TEST_AND_CONFIRM = "test-and-confirm"  # Test, reset, confirm


@dataclass
class UpgradeSettings:
    """Options consulted while planning an upgrade."""
    erase_app_settings: bool = False
    upgrade_mode: UpgradeMode = UpgradeMode.TEST_AND_CONFIRM


@dataclass(frozen=True)
class TargetImage:
    """
    One firmware image the caller wants present on the device.

    Attributes:
        image_index: Core / independently updatable image the payload targets
        image: Payload and hash
        slot: Slot (within that core) the image should end up in
    """
    image_index: int
    image: FirmwareImage
    slot: int = SECONDARY_SLOT

    @property
    def hash(self) -> bytes:
        return self.image.hash


@dataclass(frozen=True)
class CacheImage:
    """Raw payload for a cache partition; always uploaded, no slot semantics."""
    partition_id: int
    data: bytes = field(repr=False)


@dataclass(frozen=True)
class SlotRecord:
    """
    One physical slot as reported by the image state command.

    Attributes:
        image_index: Core the slot belongs to
        slot: Slot number within that core
        hash: Digest of the stored image
        active: Image is currently running
        pending: TEST was issued, takes effect on next reset
        permanent: CONFIRM was issued, stays active across reset
        confirmed: Image booted and confirmed itself
    """
    image_index: int
    slot: int
    hash: bytes = b""
    version: str = ""
    active: bool = False
    pending: bool = False
    permanent: bool = False
    confirmed: bool = False
    bootable: bool = False

    @classmethod
    def from_response(cls, entry: Dict) -> "SlotRecord":
        """
        Build from one entry of the image state response "images" list.

        Raises:
            TypeError: If the entry is not a map or the hash is not a byte string
            KeyError: If the slot number is missing
        """
        if not isinstance(entry, dict):
            raise TypeError(f"image state entry is a {type(entry).__name__}, not a map")
        image_hash = entry.get("hash", b"")
        if not isinstance(image_hash, (bytes, bytearray)):
            raise TypeError(f"slot hash must be bytes, got {type(image_hash).__name__}")
        return cls(
            image_index=int(entry.get("image", 0)),
            slot=int(entry["slot"]),
            hash=bytes(image_hash),
            version=str(entry.get("version", "")),
            active=bool(entry.get("active", False)),
            pending=bool(entry.get("pending", False)),
            permanent=bool(entry.get("permanent", False)),
            confirmed=bool(entry.get("confirmed", False)),
            bootable=bool(entry.get("bootable", False)),
        )

    @property
    def flags(self) -> str:
        names = ("active", "pending", "permanent", "confirmed", "bootable")
        return ",".join(n for n in names if getattr(self, n)) or "-"


class ImageSet:
    """
    Ordered collection of target images plus cache images.

    Multiple target images only make sense when several cores are updated, or
    when a Direct XIP bootloader gets one image per slot of the same core.
    """

    def __init__(
        self,
        images: Optional[List[TargetImage]] = None,
        cache_images: Optional[List[CacheImage]] = None,
    ) -> None:
        self._images: List[TargetImage] = []
        self._cache_images: List[CacheImage] = list(cache_images or [])
        for image in images or []:
            self.add(image)

    @property
    def images(self) -> List[TargetImage]:
        return list(self._images)

    @property
    def cache_images(self) -> List[CacheImage]:
        return list(self._cache_images)

    def add(self, target: TargetImage) -> "ImageSet":
        for existing in self._images:
            if (existing.image_index, existing.slot) == (target.image_index, target.slot):
                raise ValueError(
                    f"Duplicate target for image {target.image_index}, slot {target.slot}"
                )
        self._images.append(target)
        return self

    def add_image(
        self,
        image: FirmwareImage,
        image_index: int = 0,
        slot: int = SECONDARY_SLOT,
    ) -> "ImageSet":
        return self.add(TargetImage(image_index=image_index, image=image, slot=slot))

    def add_cache_image(self, partition_id: int, data: bytes) -> "ImageSet":
        self._cache_images.append(CacheImage(partition_id=partition_id, data=data))
        return self

    def remove_images_with_image_index(self, image_index: int) -> None:
        self._images = [i for i in self._images if i.image_index != image_index]

    def image_indices(self) -> List[int]:
        seen: List[int] = []
        for image in self._images:
            if image.image_index not in seen:
                seen.append(image.image_index)
        return seen

    def copy(self) -> "ImageSet":
        return ImageSet(self._images, self._cache_images)

    def __iter__(self) -> Iterator[TargetImage]:
        return iter(list(self._images))

    def __len__(self) -> int:
        return len(self._images)

    def __repr__(self) -> str:
        return f"ImageSet(images={self._images!r}, cache_images={len(self._cache_images)})"
