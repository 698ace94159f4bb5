"""
Core workflow actions for SMP DFU.

`validate` is the VALIDATE state of the upgrade: it probes the bootloader,
reads the slot state, plans, and hands the operations to the task sequencer.
"""

import logging
from contextlib import contextmanager
from typing import Optional

from smp_dfu.models import ImageSet, UpgradeMode
from smp_dfu.protocol import SMPError
from .messages import MessageLevel, WarningCode, make_warning
from .planner import plan_upgrade
from .probe import probe_capabilities
from .results import PlanResult
from .operations import UpgradeState
from .sequencer import TaskPerformer

logger = logging.getLogger(__name__)


class _ListLogHandler(logging.Handler):
    """Capture log records into a list of formatted strings."""

    def __init__(self, level: int = logging.DEBUG) -> None:
        super().__init__(level)
        self.records = []
        self.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))

    def emit(self, record: logging.LogRecord) -> None:
        self.records.append(self.format(record))


@contextmanager
def _capture_logs(logger_name: str = "smp_dfu"):
    """Capture logs for core operations into a list."""
    target_logger = logging.getLogger(logger_name)
    handler = _ListLogHandler()
    previous_level = target_logger.level
    if previous_level in (logging.NOTSET, logging.WARNING, logging.ERROR, logging.CRITICAL):
        target_logger.setLevel(logging.INFO)
    target_logger.addHandler(handler)
    try:
        yield handler.records
    finally:
        target_logger.removeHandler(handler)
        target_logger.setLevel(previous_level)


def validate(
    performer: TaskPerformer,
    images: ImageSet,
    mode: Optional[UpgradeMode] = None,
) -> PlanResult:
    """
    Run the VALIDATE step against the performer's device.

    Args:
        performer: Task sequencer exposing `client`, `settings`, `enqueue`,
                   `on_task_completed` and `on_task_failed`
        images: Requested images
        mode: Test/confirm policy (default: performer.settings.upgrade_mode)

    Returns:
        PlanResult with:
            - ok: True if planning completed and operations were enqueued
            - operations: operations handed to the performer
            - error: the slot query error for failed runs
            - logs: log lines captured during the step
    """
    settings = performer.settings
    mode = mode or settings.upgrade_mode
    if hasattr(performer, "state"):
        performer.state = UpgradeState.VALIDATE

    with _capture_logs() as logs:
        capabilities = probe_capabilities(performer.client)

        try:
            slots = performer.client.list_images()
        except SMPError as e:
            logger.debug(f"Image state query failed: {e}")
            result = PlanResult.failure(e, capabilities=capabilities)
            result.add_warning(make_warning(
                WarningCode.W_SLOT_QUERY_FAILED, detail=str(e), level=MessageLevel.ERROR
            ))
        else:
            result = plan_upgrade(images, slots, capabilities, mode, settings)

        if result.ok:
            for operation in result.operations:
                performer.enqueue(operation)
            performer.on_task_completed()
        else:
            performer.on_task_failed(result.error)

    result.logs = list(logs)
    return result
