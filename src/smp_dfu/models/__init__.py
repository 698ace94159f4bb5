"""
Data model for SMP DFU planning.

Provides the bootloader mode registry and the image / slot records the
planner reconciles.
"""

from .bootloader import (
    MCUBOOT_NAME,
    BootloaderMode,
    BootloaderCapabilities,
    DEFAULT_CAPABILITIES,
    MODE_LABELS,
    mode_label,
)
from .images import (
    PRIMARY_SLOT,
    SECONDARY_SLOT,
    UpgradeMode,
    UpgradeSettings,
    TargetImage,
    CacheImage,
    SlotRecord,
    ImageSet,
)

__all__ = [
    "MCUBOOT_NAME",
    "BootloaderMode",
    "BootloaderCapabilities",
    "DEFAULT_CAPABILITIES",
    "MODE_LABELS",
    "mode_label",
    "PRIMARY_SLOT",
    "SECONDARY_SLOT",
    "UpgradeMode",
    "UpgradeSettings",
    "TargetImage",
    "CacheImage",
    "SlotRecord",
    "ImageSet",
]
