"""
Standardized plan warnings for SMP DFU.

Provides structured warning items with stable codes so the CLI (and any
other front end) can display planning notes consistently.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional, Any


class MessageLevel(Enum):
    """Severity level for messages."""
    INFO = "info"
    WARN = "warn"
    ERROR = "error"


class WarningCode(Enum):
    """Stable warning codes for known planning conditions."""
    W_BOOTLOADER_FALLBACK = "W_BOOTLOADER_FALLBACK"
    W_CORE_UP_TO_DATE = "W_CORE_UP_TO_DATE"
    W_IMAGE_SKIPPED = "W_IMAGE_SKIPPED"
    W_RESET_BEFORE_UPLOAD = "W_RESET_BEFORE_UPLOAD"
    W_NO_REVERT = "W_NO_REVERT"
    W_NO_ACTIVATION = "W_NO_ACTIVATION"
    W_SLOT_QUERY_FAILED = "W_SLOT_QUERY_FAILED"


WARNING_TITLES: Dict[WarningCode, str] = {
    WarningCode.W_BOOTLOADER_FALLBACK: "Bootloader mode unknown, assuming swap with revert",
    WarningCode.W_CORE_UP_TO_DATE: "Core already runs the requested firmware",
    WarningCode.W_IMAGE_SKIPPED: "Target slot is active, image skipped",
    WarningCode.W_RESET_BEFORE_UPLOAD: "Device will be reset before uploading",
    WarningCode.W_NO_REVERT: "Bootloader cannot revert, image is activated by reset only",
    WarningCode.W_NO_ACTIVATION: "Image needs no confirmation and has no activation step",
    WarningCode.W_SLOT_QUERY_FAILED: "Could not read image slots",
}

WARNING_REMEDIATIONS: Dict[WarningCode, str] = {
    WarningCode.W_BOOTLOADER_FALLBACK:
        "Older firmware does not support bootloader info. Legacy swap behaviour is used.",
    WarningCode.W_CORE_UP_TO_DATE:
        "Nothing to do for this core. Remove the image to silence this note.",
    WarningCode.W_IMAGE_SKIPPED:
        "Run the plan again after the device has booted from the other slot.",
    WarningCode.W_RESET_BEFORE_UPLOAD:
        "A previous test or confirm was never followed by a reset. The reset clears it.",
    WarningCode.W_NO_REVERT:
        "Verify the image on a spare device first; a bad image cannot be rolled back.",
    WarningCode.W_NO_ACTIVATION:
        "The image is only uploaded. Reset the device manually if the format requires it.",
    WarningCode.W_SLOT_QUERY_FAILED:
        "Check the connection and that the image management group is enabled.",
}


@dataclass
class WarningItem:
    """
    Structured warning message with stable code.

    Attributes:
        level: Severity (INFO, WARN, ERROR)
        code: Stable warning code for programmatic handling
        title: Short, user-facing title
        detail: Longer explanation of the issue
        remediation: Suggested action to resolve the issue
    """
    level: MessageLevel
    code: WarningCode
    title: str
    detail: str = ""
    remediation: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "level": self.level.value,
            "code": self.code.value,
            "title": self.title,
            "detail": self.detail,
            "remediation": self.remediation,
        }


def make_warning(
    code: WarningCode,
    detail: str = "",
    level: MessageLevel = MessageLevel.WARN,
    title: Optional[str] = None,
) -> WarningItem:
    """Create a WarningItem with the default title and remediation for `code`."""
    return WarningItem(
        level=level,
        code=code,
        title=title or WARNING_TITLES[code],
        detail=detail,
        remediation=WARNING_REMEDIATIONS.get(code, ""),
    )
