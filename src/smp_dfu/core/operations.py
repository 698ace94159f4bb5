"""
Operations emitted by the upgrade planner.

Operations are plain values: they carry no identity beyond their type and
parameters. Executing them belongs to the task sequencer. Each type has a
fixed priority; the sequencer runs lower priorities first, so the emission
order inside a plan does not matter.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import ClassVar, Optional


class UpgradeState(Enum):
    """States of the firmware upgrade state machine."""
    NONE = "none"
    VALIDATE = "validate"
    UPLOAD = "upload"
    TEST = "test"
    RESET = "reset"
    CONFIRM = "confirm"
    SUCCESS = "success"


PRIORITY_VALIDATE = 0
PRIORITY_RESET_INITIAL = 1
PRIORITY_UPLOAD = 2
PRIORITY_TEST_AFTER_UPLOAD = 3
PRIORITY_CONFIRM_AFTER_UPLOAD = 3
PRIORITY_ERASE_SETTINGS = 4
PRIORITY_RESET = 5
PRIORITY_CONFIRM_AFTER_RESET = 6


def _short_hash(value: Optional[bytes]) -> str:
    return value.hex()[:16] if value else "-"


@dataclass(frozen=True)
class Operation:
    """Base class; subclasses set `priority` and `state`."""
    priority: ClassVar[int] = PRIORITY_VALIDATE
    state: ClassVar[UpgradeState] = UpgradeState.NONE

    @property
    def name(self) -> str:
        return type(self).__name__

    def describe(self) -> str:
        return self.name


@dataclass(frozen=True)
class EraseStorage(Operation):
    """Erase the application settings partition before the final reset."""
    priority: ClassVar[int] = PRIORITY_ERASE_SETTINGS
    state: ClassVar[UpgradeState] = UpgradeState.RESET


@dataclass(frozen=True)
class Upload(Operation):
    """
    Upload a payload.

    `target` is the image index for slot images, or the partition id for
    cache images.
    """
    data: bytes = field(repr=False, default=b"")
    target: int = 0
    priority: ClassVar[int] = PRIORITY_UPLOAD
    state: ClassVar[UpgradeState] = UpgradeState.UPLOAD

    def describe(self) -> str:
        return f"Upload {len(self.data):,} bytes to target {self.target}"


@dataclass(frozen=True)
class Test(Operation):
    """Mark an image as pending: it runs once after reset, reverts unless confirmed."""
    hash: bytes = b""
    priority: ClassVar[int] = PRIORITY_TEST_AFTER_UPLOAD
    state: ClassVar[UpgradeState] = UpgradeState.TEST

    def describe(self) -> str:
        return f"Test {_short_hash(self.hash)}"


@dataclass(frozen=True)
class Confirm(Operation):
    """Make an image permanent. Without a hash, activates a SUIT upload."""
    hash: Optional[bytes] = None
    priority: ClassVar[int] = PRIORITY_CONFIRM_AFTER_UPLOAD
    state: ClassVar[UpgradeState] = UpgradeState.CONFIRM

    def describe(self) -> str:
        return f"Confirm {_short_hash(self.hash)}"


@dataclass(frozen=True)
class ConfirmAfterReset(Operation):
    """Confirm an image once the reset that boots it has completed."""
    hash: bytes = b""
    priority: ClassVar[int] = PRIORITY_CONFIRM_AFTER_RESET
    state: ClassVar[UpgradeState] = UpgradeState.CONFIRM

    def describe(self) -> str:
        return f"Confirm after reset {_short_hash(self.hash)}"


@dataclass(frozen=True)
class ResetBeforeUpload(Operation):
    """Reset to clear a stale pending/confirmed slot before writing to it."""
    no_swap: bool = False
    priority: ClassVar[int] = PRIORITY_RESET_INITIAL
    state: ClassVar[UpgradeState] = UpgradeState.RESET

    def describe(self) -> str:
        return f"Reset before upload (no_swap={self.no_swap})"


@dataclass(frozen=True)
class Reset(Operation):
    """Reset so the new image(s) take effect."""
    no_swap: bool = False
    priority: ClassVar[int] = PRIORITY_RESET
    state: ClassVar[UpgradeState] = UpgradeState.RESET

    def describe(self) -> str:
        return f"Reset (no_swap={self.no_swap})"
