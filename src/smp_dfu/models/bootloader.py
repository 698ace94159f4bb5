"""
Bootloader mode registry.

Single source of truth for the MCUboot operating modes reported by the
bootloader info command, and for the capabilities derived from them:

- no_swap: slots are executed in place (Direct XIP), nothing is swapped on reset
- allow_revert: the bootloader supports TEST followed by CONFIRM

Usage:
    from smp_dfu.models import BootloaderCapabilities, mode_label

    caps = BootloaderCapabilities.from_mode("MCUboot", 5)
    label = mode_label(caps.mode)
"""

from dataclasses import dataclass
from enum import IntEnum
from typing import Dict, Optional


MCUBOOT_NAME = "MCUboot"


class BootloaderMode(IntEnum):
    """MCUboot mode codes reported by the bootloader info "mode" query."""
    SINGLE_APP = 0
    SWAP_SCRATCH = 1
    OVERWRITE_ONLY = 2
    SWAP_WITHOUT_SCRATCH = 3
    DIRECT_XIP = 4
    DIRECT_XIP_WITH_REVERT = 5
    RAM_LOADER = 6


MODE_LABELS: Dict[BootloaderMode, str] = {
    BootloaderMode.SINGLE_APP: "Single App",
    BootloaderMode.SWAP_SCRATCH: "Swap Scratch",
    BootloaderMode.OVERWRITE_ONLY: "Overwrite-only",
    BootloaderMode.SWAP_WITHOUT_SCRATCH: "Swap Without Scratch",
    BootloaderMode.DIRECT_XIP: "Direct XIP Without Revert",
    BootloaderMode.DIRECT_XIP_WITH_REVERT: "Direct XIP With Revert",
    BootloaderMode.RAM_LOADER: "RAM Loader",
}

NO_SWAP_MODES = frozenset({BootloaderMode.DIRECT_XIP, BootloaderMode.DIRECT_XIP_WITH_REVERT})
NO_REVERT_MODES = frozenset({BootloaderMode.DIRECT_XIP})


def mode_label(mode: Optional[int]) -> str:
    """Human readable label for a mode code."""
    if mode is None:
        return "Not reported"
    try:
        return MODE_LABELS[BootloaderMode(mode)]
    except ValueError:
        return f"Unknown ({mode})"


@dataclass(frozen=True)
class BootloaderCapabilities:
    """
    Capability snapshot used by one planning run.

    The defaults reproduce the behaviour of devices that predate the
    bootloader info command: swap on reset, test/confirm supported.

    Attributes:
        no_swap: Direct XIP addressing, no swap on reset
        allow_revert: Device supports the test/confirm two-phase commit
        bootloader: Bootloader name, if the device reported one
        mode: Raw mode code, if queried
        no_downgrade: Bootloader refuses images with a lower version
    """
    no_swap: bool = False
    allow_revert: bool = True
    bootloader: Optional[str] = None
    mode: Optional[int] = None
    no_downgrade: bool = False

    @classmethod
    def from_mode(
        cls,
        bootloader: str,
        mode: Optional[int],
        no_downgrade: bool = False,
    ) -> "BootloaderCapabilities":
        """Derive capabilities from an MCUboot mode code."""
        return cls(
            no_swap=mode in NO_SWAP_MODES,
            allow_revert=mode not in NO_REVERT_MODES,
            bootloader=bootloader,
            mode=mode,
            no_downgrade=no_downgrade,
        )

    @property
    def mode_label(self) -> str:
        return mode_label(self.mode)

    @property
    def is_fallback(self) -> bool:
        """True when no mode was obtained and the legacy defaults apply."""
        return self.mode is None

    def to_dict(self) -> Dict:
        return {
            "bootloader": self.bootloader,
            "mode": self.mode,
            "mode_label": self.mode_label,
            "no_swap": self.no_swap,
            "allow_revert": self.allow_revert,
            "no_downgrade": self.no_downgrade,
        }


DEFAULT_CAPABILITIES = BootloaderCapabilities()
