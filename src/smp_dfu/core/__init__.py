"""
Core module for SMP DFU.

This module provides the single source of truth for:
- Operations and their execution priorities (operations.py)
- Bootloader capability probing (probe.py)
- Upgrade planning against the device slot state (planner.py)
- The VALIDATE step wiring probe, slot query and planner (actions.py)
- Priority task queue (sequencer.py)
- Result objects and structured warnings (results.py, messages.py)
- Argument parsing (parsing.py)

Front ends should call into this module rather than implementing their own
logic.
"""

from .operations import (
    UpgradeState,
    Operation,
    EraseStorage,
    Upload,
    Test,
    Confirm,
    ConfirmAfterReset,
    ResetBeforeUpload,
    Reset,
)
from .messages import MessageLevel, WarningCode, WarningItem, make_warning
from .results import PlanResult
from .probe import probe_capabilities
from .planner import (
    PlanningError,
    ImageDecision,
    find_up_to_date_cores,
    scan_slots,
    decide_operations,
    plan_upgrade,
)
from .sequencer import TaskPerformer, TaskQueue
from .actions import validate
from .parsing import (
    parse_int,
    parse_upgrade_mode,
    parse_image_target,
    parse_cache_target,
)

__all__ = [
    # Operations
    "UpgradeState",
    "Operation",
    "EraseStorage",
    "Upload",
    "Test",
    "Confirm",
    "ConfirmAfterReset",
    "ResetBeforeUpload",
    "Reset",
    # Messages
    "MessageLevel",
    "WarningCode",
    "WarningItem",
    "make_warning",
    # Results
    "PlanResult",
    # Planning
    "probe_capabilities",
    "PlanningError",
    "ImageDecision",
    "find_up_to_date_cores",
    "scan_slots",
    "decide_operations",
    "plan_upgrade",
    "TaskPerformer",
    "TaskQueue",
    "validate",
    # Parsing
    "parse_int",
    "parse_upgrade_mode",
    "parse_image_target",
    "parse_cache_target",
]
