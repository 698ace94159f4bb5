"""
Result objects for planning runs.

Provides a unified result structure that the CLI (or any caller driving a
task sequencer) can use to display and act on a plan.
"""

from dataclasses import dataclass, field
from typing import List, Dict, Any, Optional

from smp_dfu.models import BootloaderCapabilities, DEFAULT_CAPABILITIES, TargetImage
from .messages import WarningItem
from .operations import Operation


@dataclass
class PlanResult:
    """
    Outcome of one planning pass.

    Attributes:
        ok: Whether planning completed
        operation: Name of the step that produced the result
        operations: Operations in emission order
        capabilities: Capability snapshot the plan was computed with
        images: Working set after already-active cores were removed
        up_to_date: Image indices found running the requested firmware
        skipped: Images dropped because their target slot is active
        warnings: Structured planning notes
        errors: Error messages that caused failure
        error: Original exception for failed runs
        logs: Captured log lines from the run
    """
    ok: bool
    operation: str = "validate"
    operations: List[Operation] = field(default_factory=list)
    capabilities: BootloaderCapabilities = DEFAULT_CAPABILITIES
    images: List[TargetImage] = field(default_factory=list)
    up_to_date: List[int] = field(default_factory=list)
    skipped: List[TargetImage] = field(default_factory=list)
    warnings: List[WarningItem] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    error: Optional[Exception] = None
    logs: List[str] = field(default_factory=list)

    def add_warning(self, warning: WarningItem) -> None:
        """Add a structured warning."""
        self.warnings.append(warning)

    def add_error(self, message: str) -> None:
        """Add an error message and mark result as failed."""
        self.errors.append(message)
        self.ok = False

    def count(self, op_type: type) -> int:
        """Number of emitted operations of the given type."""
        return sum(1 for op in self.operations if type(op) is op_type)

    def to_summary(self) -> str:
        """
        Generate a human-readable summary string.

        Suitable for CLI output or simple logging.
        """
        status = "SUCCESS" if self.ok else "FAILED"
        lines = [f"[{status}] {self.operation}"]

        caps = self.capabilities
        lines.append(
            f"  Bootloader: {caps.bootloader or 'unknown'} ({caps.mode_label}), "
            f"no_swap={caps.no_swap}, allow_revert={caps.allow_revert}"
        )
        if self.up_to_date:
            lines.append(f"  Up to date: {', '.join(str(i) for i in self.up_to_date)}")

        if self.operations:
            lines.append("  Operations:")
            for op in sorted(self.operations, key=lambda o: o.priority):
                lines.append(f"    - {op.describe()}")

        if self.warnings:
            lines.append("  Warnings:")
            for warn in self.warnings:
                lines.append(f"    - [{warn.code.value}] {warn.title}")

        if self.errors:
            lines.append("  Errors:")
            for err in self.errors:
                lines.append(f"    - {err}")

        return "\n".join(lines)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "ok": self.ok,
            "operation": self.operation,
            "operations": [
                {"type": op.name, "priority": op.priority, "description": op.describe()}
                for op in self.operations
            ],
            "capabilities": self.capabilities.to_dict(),
            "up_to_date": self.up_to_date,
            "skipped": [
                {"image_index": t.image_index, "slot": t.slot, "hash": t.hash.hex()}
                for t in self.skipped
            ],
            "warnings": [w.to_dict() for w in self.warnings],
            "errors": self.errors,
            "logs": self.logs,
        }

    @classmethod
    def success(cls, operation: str = "validate", **kwargs) -> "PlanResult":
        """Create a successful result."""
        return cls(ok=True, operation=operation, **kwargs)

    @classmethod
    def failure(
        cls,
        error: Exception,
        operation: str = "validate",
        **kwargs,
    ) -> "PlanResult":
        """Create a failed result carrying the original exception."""
        result = cls(ok=False, operation=operation, error=error, **kwargs)
        result.add_error(str(error))
        return result
