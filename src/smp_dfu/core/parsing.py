"""
Centralized parsing helpers for CLI values.

Image targets, cache partitions and upgrade modes are parsed here so any
front end accepts the same syntax.
"""

from typing import Tuple

from smp_dfu.models import SECONDARY_SLOT, UpgradeMode


UPGRADE_MODE_ALIASES = {
    "none": UpgradeMode.NONE,
    "upload": UpgradeMode.NONE,
    "test": UpgradeMode.TEST_ONLY,
    "test-only": UpgradeMode.TEST_ONLY,
    "confirm": UpgradeMode.CONFIRM_ONLY,
    "confirm-only": UpgradeMode.CONFIRM_ONLY,
    "test-and-confirm": UpgradeMode.TEST_AND_CONFIRM,
}


def parse_int(value: str) -> int:
    """
    Parse an integer, supporting decimal and hex.

    Accepts:
        - Decimal: "1"
        - Hex with 0x prefix: "0x1" or "0X1"

    Raises:
        ValueError: If value cannot be parsed.
    """
    value = value.strip()
    try:
        if value.lower().startswith("0x"):
            return int(value, 16)
        return int(value)
    except ValueError:
        raise ValueError(f"Invalid number '{value}'. Use decimal (1) or hex (0x1).")


def parse_upgrade_mode(value: str) -> UpgradeMode:
    """
    Parse an upgrade mode from a user-friendly string.

    Accepts canonical enum names ("TEST_AND_CONFIRM") and aliases
    ("test-and-confirm", "test", "confirm", "none").

    Raises:
        ValueError: If mode is not recognized.
    """
    if not value or not value.strip():
        raise ValueError("Upgrade mode must not be empty")
    key = value.strip()
    if key.upper() in UpgradeMode.__members__:
        return UpgradeMode[key.upper()]
    key = key.lower().replace("_", "-")
    if key in UPGRADE_MODE_ALIASES:
        return UPGRADE_MODE_ALIASES[key]
    raise ValueError(
        f"Unknown upgrade mode '{value}'. Valid: {', '.join(sorted(UPGRADE_MODE_ALIASES))}"
    )


def parse_image_target(value: str) -> Tuple[int, int, str]:
    """
    Parse an image argument in `[INDEX[:SLOT]=]PATH` form.

    Examples:
        "app.bin"        -> (0, 1, "app.bin")
        "1=net.bin"      -> (1, 1, "net.bin")
        "0:0=app.bin"    -> (0, 0, "app.bin")

    Returns:
        Tuple of (image_index, slot, path)

    Raises:
        ValueError: If the prefix is malformed or the path is empty
    """
    value = value.strip()
    image_index, slot, path = 0, SECONDARY_SLOT, value
    if "=" in value:
        prefix, path = value.split("=", 1)
        parts = prefix.split(":")
        if len(parts) > 2 or not parts[0]:
            raise ValueError(f"Invalid image target '{value}'. Use [INDEX[:SLOT]=]PATH.")
        image_index = parse_int(parts[0])
        if len(parts) == 2:
            slot = parse_int(parts[1])
    if not path:
        raise ValueError(f"Missing image path in '{value}'")
    if image_index < 0 or slot < 0:
        raise ValueError(f"Image index and slot must be >= 0 in '{value}'")
    return image_index, slot, path


def parse_cache_target(value: str) -> Tuple[int, str]:
    """
    Parse a cache image argument in `PARTITION=PATH` form.

    Raises:
        ValueError: If the partition id or path is missing
    """
    if "=" not in value:
        raise ValueError(f"Invalid cache image '{value}'. Use PARTITION=PATH.")
    partition, path = value.split("=", 1)
    if not path.strip():
        raise ValueError(f"Missing cache image path in '{value}'")
    return parse_int(partition), path.strip()

